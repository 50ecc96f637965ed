"""Yearbird: year-at-a-glance calendar fetching and event categorization."""

__version__ = "0.1.0"
