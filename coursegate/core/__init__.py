"""Core infrastructure: configuration of logging, request context, storage."""
