"""Main entry point for the readingtracker package."""

from .cli import app

if __name__ == "__main__":
    app()
