"""Neural Feed Studio API: content editing and version history."""

__version__ = "1.0.0"
