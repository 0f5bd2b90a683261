"""Core infrastructure: errors, logging, database, cache and audit."""
