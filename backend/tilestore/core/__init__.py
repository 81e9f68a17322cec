"""Core configuration, error types and logging setup for the tile store."""
