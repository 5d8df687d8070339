"""Command-line interface for keygate."""
