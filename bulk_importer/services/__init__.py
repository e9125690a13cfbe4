"""Import services."""
