"""Spreadsheet bulk importer for the business data store."""

__version__ = "0.1.0"
