"""Job runner and in-process scheduler."""
