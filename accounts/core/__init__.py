"""Core infrastructure: configuration, database, errors, sessions and email."""
