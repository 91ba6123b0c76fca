"""Kernel services: flush-only writers that never commit."""
