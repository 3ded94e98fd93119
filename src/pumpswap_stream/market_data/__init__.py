"""Market data: upstream stream, pool registry and storage."""
