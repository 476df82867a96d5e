"""Core infrastructure: configuration, clock, database, errors and observability."""
