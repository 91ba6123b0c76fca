"""Kernel domain: pure value objects with zero I/O (clock, validation)."""
