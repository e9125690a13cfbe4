"""Logging setup and error reports."""
