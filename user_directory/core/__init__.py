"""Core configuration, storage and encryption."""
