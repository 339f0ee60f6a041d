"""Logging and security utilities."""
