"""Hardened ingestion of endpoint definitions."""
