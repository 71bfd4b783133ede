"""Concurrent harvester for USAspending award records."""

__version__ = "0.1.0"
