"""Command-line tools for xPL networks."""
