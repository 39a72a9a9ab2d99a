"""HTTP server for provider webhooks."""

from .app import create_app

__all__ = ["create_app"]
