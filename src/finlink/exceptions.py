"""Exception hierarchy for finlink.

Configuration problems are fatal and raised at construction time. A missing
resource is a normal outcome and is kept apart from genuine failures so that
callers can tell "absent" from "failed".
"""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .sync.report import SyncReport


class FinlinkError(Exception):
    """Base class for all finlink errors."""


class ConfigurationError(FinlinkError, ValueError):
    """Missing or invalid provider/store configuration."""


class NotFoundError(FinlinkError):
    """The requested resource does not exist."""

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} '{identifier}' not found")


class ProviderError(FinlinkError):
    """The provider API failed to serve a request."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
        details: Any = None,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details
        prefix = f"[{status_code}] " if status_code is not None else ""
        super().__init__(f"{prefix}{message}")

    @property
    def is_transient(self) -> bool:
        """Whether retrying the same request may succeed."""
        if self.status_code is None:
            return True
        return self.status_code == 429 or self.status_code >= 500


class PersistenceError(FinlinkError):
    """The durable store rejected an operation."""


class InvalidWebhookError(FinlinkError):
    """An inbound webhook envelope cannot be dispatched."""


class SyncError(FinlinkError):
    """A sync pass failed on its hard dependency (the accounts branch)."""

    def __init__(self, message: str, report: "SyncReport"):
        self.report = report
        super().__init__(message)
