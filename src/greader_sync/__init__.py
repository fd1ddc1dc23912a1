"""Offline Google Reader API client with a local SQLite cache."""

__version__ = "0.1.0"
