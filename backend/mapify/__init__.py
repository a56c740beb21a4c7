"""Mapify: API keys and key-authenticated nearby POI search."""

__version__ = "0.1.0"
