"""Sync commands for the finlink CLI.

These commands run sync passes on demand, outside of webhook delivery.
"""

import logging

import typer

from finlink.config import get_settings
from finlink.exceptions import FinlinkError, SyncError
from finlink.provider.client import PluggyClient
from finlink.storage.database import Database
from finlink.storage.repositories import Store
from finlink.sync.orchestrator import SyncOrchestrator
from finlink.sync.report import SyncReport

app = typer.Typer(help="Sync provider connections into the local store")
logger = logging.getLogger(__name__)


def build_orchestrator() -> SyncOrchestrator:
    """Create an orchestrator from the process settings."""
    settings = get_settings()
    provider = PluggyClient(settings.provider)
    database = Database(settings.database.path, create_dirs=settings.database.create_dirs)
    return SyncOrchestrator(provider, Store(database))


def _log_report(report: SyncReport) -> None:
    summary = report.summary()
    logger.info(
        f"   accounts: {summary['accounts']}, transactions: {summary['transactions']}, "
        f"bills: {summary['credit_card_bills']}"
    )
    logger.info(
        f"   investments: {summary['investments']} "
        f"({summary['investment_transactions']} movements), loans: {summary['loans']}, "
        f"identity: {'yes' if report.identity_found else 'no'}"
    )
    for failure in report.failures:
        target = f" ({failure.parent_id})" if failure.parent_id else ""
        logger.warning(f"⚠️  {failure.entity}{target}: {failure.message}")


@app.command("item")
def sync_item(
    item_id: str = typer.Argument(..., help="Provider item (connection) id"),
    accounts_only: bool = typer.Option(
        False,
        "--accounts-only",
        help="Only refresh accounts and their transactions",
    ),
) -> None:
    """Sync one connection from the provider.

    The connection row is refreshed first, then a full sync pass runs. With
    --accounts-only, only accounts and their transactions are refreshed.

    Examples:
        finlink sync item 3f1c2a7e-...
        finlink sync item 3f1c2a7e-... --accounts-only
    """
    try:
        orchestrator = build_orchestrator()
        if accounts_only:
            logger.info(f"🔄 Refreshing accounts of {item_id}...")
            report = orchestrator.sync_accounts_only(item_id)
        else:
            logger.info(f"🔄 Syncing connection {item_id}...")
            orchestrator.refresh_connection(item_id)
            report = orchestrator.sync_connection(item_id)
    except SyncError as e:
        logger.error(f"❌ Sync failed: {e}")
        _log_report(e.report)
        raise typer.Exit(1) from e
    except FinlinkError as e:
        logger.error(f"❌ Sync failed: {e}")
        raise typer.Exit(1) from e

    if report.ok:
        logger.info("✅ Sync completed successfully")
    else:
        logger.warning(f"⚠️  Sync completed with {len(report.failures)} failed branch(es)")
    _log_report(report)


@app.command("all")
def sync_all() -> None:
    """Run a full sync pass for every stored connection."""
    try:
        orchestrator = build_orchestrator()
        connections = orchestrator.store.connections.list_all()
    except FinlinkError as e:
        logger.error(f"❌ Sync failed: {e}")
        raise typer.Exit(1) from e

    if not connections:
        logger.warning("No connections stored yet")
        logger.info("💡 Run 'finlink sync item <item-id>' to add one")
        return

    failed = 0
    for connection in connections:
        logger.info(f"🔄 Syncing {connection.institution_name or connection.item_id}...")
        try:
            report = orchestrator.sync_connection(connection.item_id)
        except FinlinkError as e:
            failed += 1
            logger.error(f"❌ {connection.item_id}: {e}")
            continue
        _log_report(report)

    if failed:
        logger.error(f"❌ {failed} of {len(connections)} connection(s) failed")
        raise typer.Exit(1)
    logger.info(f"✅ Synced {len(connections)} connection(s)")
