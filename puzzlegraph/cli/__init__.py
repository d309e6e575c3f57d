"""Command line interface for the puzzle dependency graph engine."""
