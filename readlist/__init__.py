"""Reading-list manager for browser bookmark exports."""

__version__ = "0.3.0"
