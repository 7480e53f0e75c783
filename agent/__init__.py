"""Sync agent: keeps a local directory tree replicated through a relay."""

__version__ = "1.0.0"
