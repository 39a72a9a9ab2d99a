"""Connect-token command for the finlink CLI."""

import logging
from typing import Any

import typer

from finlink.config import get_settings
from finlink.exceptions import FinlinkError
from finlink.provider.client import PluggyClient

logger = logging.getLogger(__name__)


def create_connect_token(
    item_id: str | None = typer.Option(
        None, "--item-id", help="Existing item to update instead of linking a new one"
    ),
    webhook_url: str | None = typer.Option(
        None, "--webhook-url", help="URL the provider should send webhooks to"
    ),
    client_user_id: str | None = typer.Option(
        None, "--client-user-id", help="Your identifier for the end user"
    ),
) -> None:
    """Issue a connect token for the provider's connect widget.

    The token is printed on stdout so it can be piped into other tools.
    """
    options: dict[str, Any] = {}
    if webhook_url:
        options["webhookUrl"] = webhook_url
    if client_user_id:
        options["clientUserId"] = client_user_id

    try:
        client = PluggyClient(get_settings().provider)
        token = client.create_connect_token(item_id=item_id, options=options or None)
    except FinlinkError as e:
        logger.error(f"❌ Could not create connect token: {e}")
        raise typer.Exit(1) from e

    typer.echo(token.access_token)
