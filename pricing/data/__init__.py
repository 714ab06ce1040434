"""Read-only repositories over the backing store."""
