"""Command-line interface for microsim."""

from .app import app

__all__ = ["app"]
