"""Catalog, validation, reconciliation and run orchestration."""
