"""Reading session tracking and analytics for sectioned documents."""

__version__ = "0.1.0"
