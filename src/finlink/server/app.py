"""HTTP boundary: webhook receiver and item deletion.

The app is built by ``create_app``; collaborators are created lazily on first
use so that a missing credential surfaces on the first request that needs the
provider rather than at import time.
"""

import logging
from functools import cached_property
from typing import Any

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from ..config import FinlinkSettings, get_settings
from ..exceptions import InvalidWebhookError, NotFoundError
from ..provider.client import PluggyClient, ProviderClient
from ..storage.database import Database
from ..storage.repositories import Store
from ..sync.orchestrator import SyncOrchestrator
from ..webhooks.envelope import parse_envelope
from ..webhooks.router import WebhookRouter

logger = logging.getLogger(__name__)


class AppServices:
    """Process-wide collaborators shared by every request."""

    def __init__(
        self,
        settings: FinlinkSettings,
        provider: ProviderClient | None = None,
        store: Store | None = None,
    ):
        self.settings = settings
        self._provider = provider
        self._store = store

    @cached_property
    def provider(self) -> ProviderClient:
        if self._provider is None:
            self._provider = PluggyClient(self.settings.provider)
        return self._provider

    @cached_property
    def store(self) -> Store:
        if self._store is None:
            database = Database(
                self.settings.database.path,
                create_dirs=self.settings.database.create_dirs,
            )
            self._store = Store(database)
        return self._store

    @cached_property
    def orchestrator(self) -> SyncOrchestrator:
        return SyncOrchestrator(self.provider, self.store)

    @cached_property
    def router(self) -> WebhookRouter:
        return WebhookRouter(self.orchestrator, self.store)


def create_app(
    settings: FinlinkSettings | None = None,
    provider: ProviderClient | None = None,
    store: Store | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Application settings. Defaults to the process settings.
        provider: Provider client to use instead of a lazily built PluggyClient
        store: Store to use instead of one opened from the configured path

    Returns:
        FastAPI: The configured application
    """
    settings = settings or get_settings()
    services = AppServices(settings, provider=provider, store=store)

    app = FastAPI(title="finlink", version="0.1.0")
    app.state.services = services

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post(settings.server.webhook_path)
    async def receive_webhook(request: Request) -> JSONResponse:
        try:
            payload: Any = await request.json()
        except ValueError:
            logger.warning("Rejected webhook with a non-JSON body")
            return JSONResponse(
                status_code=400,
                content={"received": False, "error": "Body must be valid JSON"},
            )

        try:
            envelope = parse_envelope(payload)
            action = await run_in_threadpool(services.router.dispatch, envelope)
        except InvalidWebhookError as e:
            logger.warning(f"Rejected webhook: {e}")
            return JSONResponse(
                status_code=400, content={"received": False, "error": str(e)}
            )
        except Exception as e:
            logger.exception(f"Webhook {payload.get('event')} failed")
            return JSONResponse(
                status_code=500,
                content={"received": True, "processed": False, "error": str(e)},
            )

        logger.info(f"Webhook {envelope.event} ({envelope.event_id}) handled: {action}")
        return JSONResponse(
            status_code=200, content={"received": True, "processed": True}
        )

    @app.delete("/api/items/{item_id}")
    def delete_item(item_id: str) -> dict[str, Any]:
        warnings: list[str] = []
        try:
            services.provider.delete_connection(item_id)
        except NotFoundError:
            warnings.append(f"Item {item_id} was already gone at the provider")
            logger.warning(warnings[-1])

        deleted = services.store.connections.delete(item_id)
        if not deleted:
            warnings.append(f"Item {item_id} was not stored locally")

        return {
            "success": True,
            "message": f"Item {item_id} deleted",
            "itemId": item_id,
            "warnings": warnings,
        }

    return app
