"""Clinic report ingestion: HTML exports to CSV, CSV to destination tables."""

__version__ = "0.3.0"
