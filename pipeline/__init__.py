"""Merge-or-create resolution and batch ingestion."""
