"""Repository list and environment settings."""
