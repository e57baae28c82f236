"""Error hierarchies and handling helpers."""
