"""Webhook server command for the finlink CLI."""

import logging

import typer
import uvicorn

from finlink.config import get_settings
from finlink.server.app import create_app

logger = logging.getLogger(__name__)


def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port"),
) -> None:
    """Run the HTTP server that receives provider webhooks."""
    settings = get_settings()
    bind_host = host or settings.server.host
    bind_port = port or settings.server.port

    logger.info(f"🚀 Serving webhooks on http://{bind_host}:{bind_port}{settings.server.webhook_path}")
    uvicorn.run(create_app(settings), host=bind_host, port=bind_port, log_config=None)
