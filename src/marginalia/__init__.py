"""Anonymous comment service for a blog platform."""

__version__ = "0.1.0"
