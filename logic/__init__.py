"""Signature, merge and error-classification logic."""
