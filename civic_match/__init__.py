"""Civic Match: API, UI shell and offline caching worker."""

__version__ = "0.1.0"
