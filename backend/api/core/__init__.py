"""API core utilities."""
