"""External service clients and the local state store."""
