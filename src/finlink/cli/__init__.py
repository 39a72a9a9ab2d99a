"""finlink CLI package.

This package provides the command-line interface for syncing provider
connections, managing the local store and running the webhook server.
"""

from .main import app, main

__all__ = ["app", "main"]
