"""Multi-tenant relay server for replicated file trees."""

__version__ = "1.0.0"
