"""Shared constants, time keys and the data-quality warning taxonomy."""
