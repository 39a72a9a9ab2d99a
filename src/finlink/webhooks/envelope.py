"""Inbound webhook envelope.

The provider posts JSON envelopes of the form
``{event, eventId, itemId?, id?, accountId?, transactionIds?, data?}``.
Which field carries the connection id depends on the event kind, so it is
resolved in one fixed order, first non-empty string wins:

    itemId, item_id, id, data.itemId, data.item_id, data.id
"""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..exceptions import InvalidWebhookError

CONNECTION_ID_FIELDS: tuple[str, ...] = ("itemId", "item_id", "id")


class WebhookEventType(StrEnum):
    """Event kinds the router knows how to handle."""

    ITEM_CREATED = "item/created"
    ITEM_UPDATED = "item/updated"
    ITEM_LOGIN_SUCCEEDED = "item/login_succeeded"
    ITEM_ERROR = "item/error"
    ITEM_WAITING_USER_INPUT = "item/waiting_user_input"
    ITEM_DELETED = "item/deleted"
    TRANSACTIONS_CREATED = "transactions/created"
    TRANSACTIONS_UPDATED = "transactions/updated"
    TRANSACTIONS_DELETED = "transactions/deleted"
    CONNECTOR_STATUS_UPDATED = "connector/status_updated"


class WebhookEnvelope(BaseModel):
    """Validated webhook envelope; unknown top-level fields are kept."""

    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    event: str
    event_id: str = Field(alias="eventId")
    data: dict[str, Any] | None = None

    @field_validator("event", "event_id")
    @classmethod
    def require_non_empty(cls, v: str) -> str:
        """Reject blank discriminators."""
        if not v.strip():
            raise ValueError("must not be empty")
        return v

    def _lookup(self, *names: str) -> Any:
        """Return the first non-empty value under ``names``, top level first."""
        extra = self.model_extra or {}
        for source in (extra, self.data or {}):
            for name in names:
                value = source.get(name)
                if value not in (None, "", []):
                    return value
        return None

    @property
    def event_type(self) -> WebhookEventType | None:
        """The event kind, or None when the router does not know it."""
        try:
            return WebhookEventType(self.event)
        except ValueError:
            return None

    @property
    def connection_id(self) -> str | None:
        """Connection id resolved in the documented fallback order."""
        value = self._lookup(*CONNECTION_ID_FIELDS)
        return value if isinstance(value, str) else None

    @property
    def account_id(self) -> str | None:
        value = self._lookup("accountId", "account_id")
        return value if isinstance(value, str) else None

    @property
    def transaction_ids(self) -> list[str]:
        value = self._lookup("transactionIds", "transaction_ids")
        if not isinstance(value, list):
            return []
        return [str(v) for v in value]

    @property
    def transactions_created_at_from(self) -> str | None:
        value = self._lookup("transactionsCreatedAtFrom", "createdAtFrom")
        return value if isinstance(value, str) else None

    def require_connection_id(self) -> str:
        """Return the connection id or reject the envelope.

        Raises:
            InvalidWebhookError: If no connection id field resolves
        """
        connection_id = self.connection_id
        if connection_id is None:
            raise InvalidWebhookError(
                f"Webhook {self.event} ({self.event_id}) carries no connection id"
            )
        return connection_id


def parse_envelope(payload: Any) -> WebhookEnvelope:
    """Validate a decoded JSON body as a webhook envelope.

    Raises:
        InvalidWebhookError: If the body is not an object or lacks event/eventId
    """
    if not isinstance(payload, dict):
        raise InvalidWebhookError("Webhook body must be a JSON object")
    try:
        return WebhookEnvelope.model_validate(payload)
    except ValidationError as e:
        fields = ", ".join(
            ".".join(str(part) for part in error["loc"]) for error in e.errors()
        )
        raise InvalidWebhookError(f"Malformed webhook envelope: {fields}") from e
