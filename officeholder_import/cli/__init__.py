"""Command line interface (officeholder-import)."""
