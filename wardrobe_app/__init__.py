"""Wardrobe ingestion service bootstrap, configuration and logging."""
