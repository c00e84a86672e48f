"""Circular Sync: keep a local database in step with a school portal's circulars feed."""

__version__ = "0.1.0"
