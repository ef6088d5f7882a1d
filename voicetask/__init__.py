"""Offline voice-to-task inference backend."""

__version__ = "1.0.0"
