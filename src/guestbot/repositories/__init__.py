"""Document-store access helpers."""
