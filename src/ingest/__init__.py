"""CSV upload ingestion.

This package reads upload sources and validates CSV rows.
It hands typed records to the store's whole-collection replace.
"""
