"""Officeholder spreadsheet import: read, validate, reconcile and report."""

__version__ = "0.1.0"
