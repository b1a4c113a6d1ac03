"""Command-line tools for speechhmm."""
