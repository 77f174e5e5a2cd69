"""Config-driven spreadsheet to database importer."""

__version__ = "0.1.0"
