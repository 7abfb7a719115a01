"""Weighted concurrent load benchmark for Iceberg REST catalogs."""

__version__ = "0.1.0"
