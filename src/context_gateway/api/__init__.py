"""API HTTP du Context Pruning Gateway."""
