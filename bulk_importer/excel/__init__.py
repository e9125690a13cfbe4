"""Spreadsheet decoding and templates."""
