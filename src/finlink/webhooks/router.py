"""Dispatch of provider webhook events.

Every event is handled on its own; nothing is persisted about deliveries
themselves, so a redelivered event is simply handled again. Handler errors
are never swallowed here: they propagate so the HTTP layer can ask the
provider to redeliver.
"""

import logging
from collections.abc import Callable
from enum import StrEnum

from ..models import ConnectionStatus
from ..storage.repositories import Store
from ..sync.orchestrator import SyncOrchestrator
from .envelope import WebhookEnvelope, WebhookEventType

logger = logging.getLogger(__name__)


class WebhookAction(StrEnum):
    """What the router did with an event."""

    CONNECTION_SYNCED = "connection_synced"
    STATUS_PATCHED = "status_patched"
    STATUS_PATCH_SKIPPED = "status_patch_skipped"
    CONNECTION_DELETED = "connection_deleted"
    ACCOUNT_TRANSACTIONS_SYNCED = "account_transactions_synced"
    TRANSACTIONS_DELETE_IGNORED = "transactions_delete_ignored"
    CONNECTOR_STATUS_LOGGED = "connector_status_logged"
    IGNORED = "ignored"


STATUS_BY_EVENT: dict[WebhookEventType, ConnectionStatus] = {
    WebhookEventType.ITEM_ERROR: ConnectionStatus.LOGIN_ERROR,
    WebhookEventType.ITEM_WAITING_USER_INPUT: ConnectionStatus.WAITING_USER_INPUT,
}


class WebhookRouter:
    """Routes a validated envelope to the handler for its event kind."""

    def __init__(self, orchestrator: SyncOrchestrator, store: Store):
        self.orchestrator = orchestrator
        self.store = store
        self._handlers: dict[
            WebhookEventType, Callable[[WebhookEnvelope], WebhookAction]
        ] = {
            WebhookEventType.ITEM_CREATED: self._handle_connection_refresh,
            WebhookEventType.ITEM_UPDATED: self._handle_connection_refresh,
            WebhookEventType.ITEM_LOGIN_SUCCEEDED: self._handle_connection_refresh,
            WebhookEventType.ITEM_ERROR: self._handle_status_patch,
            WebhookEventType.ITEM_WAITING_USER_INPUT: self._handle_status_patch,
            WebhookEventType.ITEM_DELETED: self._handle_connection_deleted,
            WebhookEventType.TRANSACTIONS_CREATED: self._handle_transactions_changed,
            WebhookEventType.TRANSACTIONS_UPDATED: self._handle_transactions_changed,
            WebhookEventType.TRANSACTIONS_DELETED: self._handle_transactions_deleted,
            WebhookEventType.CONNECTOR_STATUS_UPDATED: self._handle_connector_status,
        }

    def dispatch(self, envelope: WebhookEnvelope) -> WebhookAction:
        """Handle one webhook event.

        Args:
            envelope: Validated envelope

        Returns:
            WebhookAction: The action taken

        Raises:
            InvalidWebhookError: If an item or transactions event has no
                resolvable connection id
        """
        event_type = envelope.event_type
        if event_type is None:
            logger.warning(
                f"Ignoring unknown webhook event {envelope.event} ({envelope.event_id})"
            )
            return WebhookAction.IGNORED

        if event_type is not WebhookEventType.CONNECTOR_STATUS_UPDATED:
            # Reject before any handler runs
            envelope.require_connection_id()

        logger.info(
            f"Handling webhook {event_type} ({envelope.event_id}) "
            f"for connection {envelope.connection_id}"
        )
        return self._handlers[event_type](envelope)

    # Handlers

    def _handle_connection_refresh(self, envelope: WebhookEnvelope) -> WebhookAction:
        connection_id = envelope.require_connection_id()
        self.orchestrator.refresh_connection(connection_id)
        self.orchestrator.sync_connection(connection_id)
        return WebhookAction.CONNECTION_SYNCED

    def _handle_status_patch(self, envelope: WebhookEnvelope) -> WebhookAction:
        connection_id = envelope.require_connection_id()
        status = STATUS_BY_EVENT[WebhookEventType(envelope.event)]

        existing = self.store.connections.get_by_id(connection_id)
        if existing is None:
            logger.info(
                f"Connection {connection_id} is not stored, skipping {status} update"
            )
            return WebhookAction.STATUS_PATCH_SKIPPED

        self.store.connections.upsert(existing.model_copy(update={"status": status.value}))
        logger.info(f"Connection {connection_id} status set to {status}")
        return WebhookAction.STATUS_PATCHED

    def _handle_connection_deleted(self, envelope: WebhookEnvelope) -> WebhookAction:
        connection_id = envelope.require_connection_id()
        self.store.connections.delete(connection_id)
        return WebhookAction.CONNECTION_DELETED

    def _handle_transactions_changed(self, envelope: WebhookEnvelope) -> WebhookAction:
        connection_id = envelope.require_connection_id()
        account_id = envelope.account_id

        if account_id is None:
            logger.info(
                f"{envelope.event} for connection {connection_id} names no account, "
                "running a full sync"
            )
            self.orchestrator.sync_connection(connection_id)
            return WebhookAction.CONNECTION_SYNCED

        if self.store.accounts.get_by_id(account_id) is None:
            logger.info(
                f"Account {account_id} is not stored yet, refreshing accounts of "
                f"connection {connection_id}"
            )
            self.orchestrator.sync_accounts_only(connection_id)

        if envelope.event_type is WebhookEventType.TRANSACTIONS_CREATED:
            saved = self.orchestrator.sync_account_transactions(
                account_id, created_at_from=envelope.transactions_created_at_from
            )
        else:
            saved = self.orchestrator.sync_account_transactions(
                account_id, transaction_ids=envelope.transaction_ids or None
            )

        logger.info(f"Saved {saved} transactions for account {account_id}")
        return WebhookAction.ACCOUNT_TRANSACTIONS_SYNCED

    def _handle_transactions_deleted(self, envelope: WebhookEnvelope) -> WebhookAction:
        # Deleted provider transactions are not removed from the store. Whether
        # deletions should be modelled at all is still undecided.
        # TODO: delete the listed transaction ids once deletion semantics are agreed
        logger.info(
            f"Received deletion of {len(envelope.transaction_ids)} transaction(s) "
            f"for connection {envelope.connection_id}; not applied"
        )
        return WebhookAction.TRANSACTIONS_DELETE_IGNORED

    def _handle_connector_status(self, envelope: WebhookEnvelope) -> WebhookAction:
        data = envelope.data or {}
        logger.info(
            f"Connector status updated ({envelope.event_id}): "
            f"connector {data.get('connectorId') or data.get('id')} "
            f"status {data.get('status')}"
        )
        return WebhookAction.CONNECTOR_STATUS_LOGGED
