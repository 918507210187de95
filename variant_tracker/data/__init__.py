"""Snapshot records, JSON loading and the shared snapshot context."""
