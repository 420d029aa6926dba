"""Backup run orchestration and command line interface."""
