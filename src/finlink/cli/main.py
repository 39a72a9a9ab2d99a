"""Main CLI application for finlink.

This module provides the unified entry point for all finlink CLI operations,
organizing commands into groups for syncing, database management and serving
provider webhooks.
"""

import logging
from typing import Annotated

import typer
from dotenv import load_dotenv

from ..config import get_settings
from ..exceptions import ConfigurationError
from ..logging import LoggingConfig, setup_logging
from .commands import connect, db, serve, sync

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="finlink",
    help="finlink: Open-Finance connection sync engine",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose debug logging",
        ),
    ] = False,
) -> None:
    """Global options for the finlink CLI.

    Credentials are read from the environment or a .env file
    (PLUGGY_CLIENT_ID, PLUGGY_CLIENT_SECRET, or FINLINK_PROVIDER__* variables).
    """
    # Unprefixed variables in .env are not seen by pydantic-settings
    load_dotenv()
    try:
        settings = get_settings()
    except ConfigurationError as e:
        setup_logging(cli_mode=True, verbose=verbose)
        logger.error(f"❌ {e}")
        raise typer.Exit(1) from e

    setup_logging(
        config=LoggingConfig.from_settings(settings), cli_mode=True, verbose=verbose
    )


app.add_typer(sync.app, name="sync", help="Sync provider connections")
app.add_typer(db.app, name="db", help="Local database commands")
app.command("connect-token")(connect.create_connect_token)
app.command("serve")(serve.serve)


def main() -> None:
    """Entry point for the finlink CLI application."""
    app()


if __name__ == "__main__":
    main()
