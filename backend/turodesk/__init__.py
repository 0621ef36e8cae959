"""Turodesk - local backend of the desktop chat assistant."""

__version__ = "0.1.0"
