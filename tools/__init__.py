"""Adapters for external capabilities: images, Gemini and storage."""
