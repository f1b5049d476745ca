"""HTTP API for the comment service."""
