"""Core infrastructure: logging, configuration, hashing, caching, graph validation."""
