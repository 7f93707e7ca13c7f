"""Command-line interface for the EventBus registry."""

from .main import app, main

__all__ = ["app", "main"]
