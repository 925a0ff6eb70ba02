"""Logging setup and request middleware."""
