"""Blob store facade and event notification services."""
