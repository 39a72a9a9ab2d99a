"""Database commands for the finlink CLI."""

import logging
from pathlib import Path

import typer

from finlink.config import get_database_path
from finlink.exceptions import PersistenceError
from finlink.storage.database import Database

app = typer.Typer(help="Local database commands")
logger = logging.getLogger(__name__)


@app.command("init")
def init_db(
    database: Path | None = typer.Option(
        None,
        "--database",
        "-d",
        help="Path to DuckDB database file (default: configured path)",
    ),
) -> None:
    """Create the database file and its tables."""
    if database is None:
        database = get_database_path()

    try:
        with Database(database):
            pass
    except PersistenceError as e:
        logger.error(f"❌ Database initialization failed: {e}")
        raise typer.Exit(1) from e

    logger.info(f"✅ Database ready at {database}")


@app.command("status")
def db_status(
    database: Path | None = typer.Option(
        None,
        "--database",
        "-d",
        help="Path to DuckDB database file (default: configured path)",
    ),
) -> None:
    """Show the row count of every table."""
    if database is None:
        database = get_database_path()

    if not database.exists():
        logger.error(f"❌ Database file not found: {database}")
        logger.info("💡 Run 'finlink db init' to create it")
        raise typer.Exit(1)

    try:
        with Database(database, create_dirs=False) as db:
            counts = db.table_counts()
    except PersistenceError as e:
        logger.error(f"❌ Cannot read database: {e}")
        raise typer.Exit(1) from e

    logger.info(f"📊 {database}")
    for table_name, count in counts.items():
        logger.info(f"   {table_name:<25} {count:>8}")
