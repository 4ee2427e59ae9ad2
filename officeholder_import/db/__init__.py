"""PostgreSQL connection, catalog loader and registry."""
