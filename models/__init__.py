"""Data models for repositories, clone jobs and outcomes."""
