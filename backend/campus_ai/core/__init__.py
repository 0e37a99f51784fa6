"""Core infrastructure: configuration, database, errors and provider plumbing."""
