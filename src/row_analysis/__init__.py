"""Concurrent row classification against a remote analysis endpoint."""

__version__ = "0.1.0"
