"""Napkin AI visual generation bridge with pluggable storage sinks."""

__version__ = "0.1.0"
