"""Command-line tools for Civic Match."""
