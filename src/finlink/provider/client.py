"""Pluggy Open-Finance API client.

This module wraps the provider's REST API with one method per fetch
operation. Responses are validated into the schemas from ``schemas`` and
list endpoints are walked page by page.
"""

import logging
import threading
import time
from typing import Any, Protocol, TypeVar

import requests
from pydantic import BaseModel, ValidationError

from ..config import ProviderConfig, get_provider_config
from ..exceptions import ConfigurationError, NotFoundError, ProviderError
from .schemas import (
    ConnectToken,
    PageResponse,
    ProviderAccount,
    ProviderCreditCardBill,
    ProviderIdentity,
    ProviderInvestment,
    ProviderInvestmentTransaction,
    ProviderItem,
    ProviderLoan,
    ProviderTransaction,
)

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class ProviderClient(Protocol):
    """Operations the sync engine needs from the Open-Finance provider."""

    def fetch_connection(self, connection_id: str) -> ProviderItem:
        """Return the provider's current view of a connection."""
        ...

    def fetch_accounts(self, connection_id: str) -> list[ProviderAccount]:
        """Return every account under a connection."""
        ...

    def fetch_transactions(
        self,
        account_id: str,
        created_at_from: str | None = None,
        transaction_ids: list[str] | None = None,
    ) -> list[ProviderTransaction]:
        """Return an account's transactions, optionally filtered."""
        ...

    def fetch_investments(self, connection_id: str) -> list[ProviderInvestment]:
        """Return every investment under a connection."""
        ...

    def fetch_investment_transactions(
        self, investment_id: str
    ) -> list[ProviderInvestmentTransaction]:
        """Return the movements of one investment."""
        ...

    def fetch_loans(self, connection_id: str) -> list[ProviderLoan]:
        """Return every loan under a connection."""
        ...

    def fetch_credit_card_bills(
        self, account_id: str
    ) -> list[ProviderCreditCardBill]:
        """Return the bills of a CREDIT account."""
        ...

    def fetch_identity(self, connection_id: str) -> ProviderIdentity:
        """Return the connection's identity; raise NotFoundError when absent."""
        ...

    def create_connect_token(
        self, item_id: str | None = None, options: dict[str, Any] | None = None
    ) -> ConnectToken:
        """Issue a connect-widget token."""
        ...

    def delete_connection(self, connection_id: str) -> None:
        """Delete a connection at the provider."""
        ...


class PluggyClient:
    """REST client for the Pluggy API.

    The client authenticates lazily with the configured client credentials and
    caches the resulting API key. Credentials are validated at construction so
    a misconfigured process fails before any request is attempted. Instances
    hold no per-sync state and may be shared between concurrent sync passes.
    """

    def __init__(
        self,
        config: ProviderConfig | None = None,
        session: requests.Session | None = None,
    ):
        """Initialize the client.

        Args:
            config: Provider settings. Defaults to the process settings.
            session: Optional pre-built HTTP session (mostly for tests)

        Raises:
            ConfigurationError: If client id or secret is missing
        """
        self.config = config or get_provider_config()

        missing = [
            name
            for name, value in (
                ("client_id", self.config.client_id),
                ("client_secret", self.config.client_secret),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Provider client requires credentials: missing {', '.join(missing)}"
            )

        self.session = session or requests.Session()
        self._api_key: str | None = None
        self._auth_lock = threading.Lock()

        logger.debug(f"Initialized provider client for {self.config.base_url}")

    # Transport

    def _authenticate(self) -> str:
        """Exchange client credentials for an API key."""
        with self._auth_lock:
            if self._api_key is not None:
                return self._api_key

            logger.debug("Authenticating with provider")
            try:
                response = self.session.post(
                    f"{self.config.base_url}/auth",
                    json={
                        "clientId": self.config.client_id,
                        "clientSecret": self.config.client_secret,
                    },
                    timeout=self.config.timeout,
                )
            except requests.RequestException as e:
                raise ProviderError(f"Authentication request failed: {e}") from e

            if not response.ok:
                raise self._error_from_response(response, "Authentication failed")

            api_key = response.json().get("apiKey")
            if not isinstance(api_key, str) or not api_key:
                raise ProviderError("Authentication response did not include an apiKey")

            self._api_key = api_key
            return api_key

    @staticmethod
    def _error_from_response(
        response: requests.Response, fallback: str
    ) -> ProviderError:
        """Build a ProviderError from a non-2xx response body."""
        code: str | None = None
        message = fallback
        details: Any = None
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict):
            message = str(body.get("message") or fallback)
            raw_code = body.get("code") or body.get("codeDescription")
            code = str(raw_code) if raw_code is not None else None
            details = body.get("details")
        elif response.text:
            message = f"{fallback}: {response.text[:200]}"

        return ProviderError(
            message, status_code=response.status_code, code=code, details=details
        )

    def _request(
        self,
        method: str,
        path: str,
        *,
        resource: str,
        identifier: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """Send an authenticated request with retries on transient failures.

        Args:
            method: HTTP method
            path: API path starting with a slash
            resource: Resource name used in not-found errors and logs
            identifier: Resource identifier used in not-found errors and logs
            params: Query string parameters
            json: JSON request body

        Returns:
            Any: Decoded JSON body, or None for empty responses

        Raises:
            NotFoundError: If the provider answers 404
            ProviderError: If the request fails after all retries
        """
        url = f"{self.config.base_url}{path}"
        reauthenticated = False
        attempt = 0

        while True:
            headers = {"X-API-KEY": self._authenticate()}
            try:
                response = self.session.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    headers=headers,
                    timeout=self.config.timeout,
                )
            except requests.RequestException as e:
                error = ProviderError(f"{method} {path} failed: {e}")
            else:
                if response.status_code == 404:
                    raise NotFoundError(resource, identifier)

                if response.status_code == 401 and not reauthenticated:
                    # API keys expire; fetch a fresh one once per request
                    logger.debug("Provider API key rejected, re-authenticating")
                    with self._auth_lock:
                        self._api_key = None
                    reauthenticated = True
                    continue

                if response.ok:
                    if not response.content:
                        return None
                    return response.json()

                error = self._error_from_response(
                    response, f"{method} {path} returned {response.status_code}"
                )

            if error.is_transient and attempt < self.config.max_retries:
                attempt += 1
                logger.warning(
                    f"Transient provider error on {resource} {identifier} "
                    f"(attempt {attempt}/{self.config.max_retries}): {error}"
                )
                time.sleep(self.config.retry_delay)
                continue

            raise error

    @staticmethod
    def _parse(schema: type[SchemaT], payload: Any, resource: str) -> SchemaT:
        try:
            return schema.model_validate(payload)
        except ValidationError as e:
            raise ProviderError(f"Malformed {resource} response: {e}") from e

    def _list(
        self, schema: type[SchemaT], payload: Any, resource: str
    ) -> list[SchemaT]:
        page = self._parse(PageResponse, payload or {}, resource)
        return [self._parse(schema, item, resource) for item in page.results]

    def _fetch_all_pages(
        self,
        schema: type[SchemaT],
        path: str,
        *,
        resource: str,
        identifier: str,
        params: dict[str, Any] | None = None,
    ) -> list[SchemaT]:
        """Walk a paged list endpoint until the last page."""
        records: list[SchemaT] = []
        page_number = 1

        while True:
            query = dict(params or {})
            query.update({"page": page_number, "pageSize": self.config.page_size})
            payload = self._request(
                "GET", path, resource=resource, identifier=identifier, params=query
            )
            page = self._parse(PageResponse, payload or {}, resource)
            records.extend(self._parse(schema, item, resource) for item in page.results)

            if page.total_pages is not None:
                if page_number >= page.total_pages:
                    break
            elif len(page.results) < self.config.page_size:
                break
            page_number += 1

        logger.debug(
            f"Fetched {len(records)} {resource} records for {identifier} "
            f"in {page_number} page(s)"
        )
        return records

    # Fetch operations

    def fetch_connection(self, connection_id: str) -> ProviderItem:
        """Fetch an item by id.

        Raises:
            NotFoundError: If the item does not exist
        """
        payload = self._request(
            "GET",
            f"/items/{connection_id}",
            resource="connection",
            identifier=connection_id,
        )
        return self._parse(ProviderItem, payload, "connection")

    def fetch_accounts(self, connection_id: str) -> list[ProviderAccount]:
        """Fetch every account of an item."""
        payload = self._request(
            "GET",
            "/accounts",
            resource="accounts",
            identifier=connection_id,
            params={"itemId": connection_id},
        )
        return self._list(ProviderAccount, payload, "accounts")

    def fetch_transactions(
        self,
        account_id: str,
        created_at_from: str | None = None,
        transaction_ids: list[str] | None = None,
    ) -> list[ProviderTransaction]:
        """Fetch an account's transactions across all pages.

        Args:
            account_id: Provider account id
            created_at_from: Only transactions created at or after this instant
            transaction_ids: Only these transactions

        Returns:
            list[ProviderTransaction]: Transactions in provider order
        """
        params: dict[str, Any] = {"accountId": account_id}
        if created_at_from:
            params["createdAtFrom"] = created_at_from
        if transaction_ids:
            params["ids"] = ",".join(transaction_ids)

        return self._fetch_all_pages(
            ProviderTransaction,
            "/transactions",
            resource="transactions",
            identifier=account_id,
            params=params,
        )

    def fetch_investments(self, connection_id: str) -> list[ProviderInvestment]:
        """Fetch every investment of an item."""
        payload = self._request(
            "GET",
            "/investments",
            resource="investments",
            identifier=connection_id,
            params={"itemId": connection_id},
        )
        return self._list(ProviderInvestment, payload, "investments")

    def fetch_investment_transactions(
        self, investment_id: str
    ) -> list[ProviderInvestmentTransaction]:
        """Fetch every movement of an investment across all pages."""
        return self._fetch_all_pages(
            ProviderInvestmentTransaction,
            f"/investments/{investment_id}/transactions",
            resource="investment transactions",
            identifier=investment_id,
        )

    def fetch_loans(self, connection_id: str) -> list[ProviderLoan]:
        """Fetch every loan of an item."""
        payload = self._request(
            "GET",
            "/loans",
            resource="loans",
            identifier=connection_id,
            params={"itemId": connection_id},
        )
        return self._list(ProviderLoan, payload, "loans")

    def fetch_credit_card_bills(
        self, account_id: str
    ) -> list[ProviderCreditCardBill]:
        """Fetch the bills of a credit card account."""
        payload = self._request(
            "GET",
            "/bills",
            resource="bills",
            identifier=account_id,
            params={"accountId": account_id},
        )
        return self._list(ProviderCreditCardBill, payload, "bills")

    def fetch_identity(self, connection_id: str) -> ProviderIdentity:
        """Fetch the identity of an item.

        Raises:
            NotFoundError: If the institution exposes no identity for the item
        """
        payload = self._request(
            "GET",
            "/identity",
            resource="identity",
            identifier=connection_id,
            params={"itemId": connection_id},
        )
        if not payload:
            raise NotFoundError("identity", connection_id)
        return self._parse(ProviderIdentity, payload, "identity")

    def create_connect_token(
        self, item_id: str | None = None, options: dict[str, Any] | None = None
    ) -> ConnectToken:
        """Create a connect token, optionally scoped to an existing item.

        Args:
            item_id: Item to update instead of creating a new connection
            options: Extra token options such as webhookUrl or clientUserId

        Returns:
            ConnectToken: The issued token
        """
        body: dict[str, Any] = {}
        if item_id:
            body["itemId"] = item_id
        if options:
            body["options"] = options

        payload = self._request(
            "POST",
            "/connect_token",
            resource="connect token",
            identifier=item_id or "new",
            json=body,
        )
        return self._parse(ConnectToken, payload, "connect token")

    def delete_connection(self, connection_id: str) -> None:
        """Delete an item at the provider."""
        self._request(
            "DELETE",
            f"/items/{connection_id}",
            resource="connection",
            identifier=connection_id,
        )
        logger.info(f"Deleted connection {connection_id} at provider")
