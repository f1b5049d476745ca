"""Command-line maintenance tasks."""
