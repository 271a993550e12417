"""Masonry tile gallery with paginated loading and viewport virtualization."""

__version__ = "0.1.0"
