"""Command-line interface for regnet."""
