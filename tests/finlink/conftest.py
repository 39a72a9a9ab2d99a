"""Shared pytest fixtures for finlink tests.

Provides settings isolation, a throwaway DuckDB store and an in-memory
provider stub that records every call and can be told to fail.
"""

from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest

from finlink.config import clear_settings_cache
from finlink.exceptions import NotFoundError
from finlink.provider.schemas import (
    ConnectToken,
    ProviderAccount,
    ProviderCreditCardBill,
    ProviderIdentity,
    ProviderInvestment,
    ProviderInvestmentTransaction,
    ProviderItem,
    ProviderLoan,
    ProviderTransaction,
)
from finlink.storage.database import Database
from finlink.storage.repositories import Store
from finlink.sync.orchestrator import SyncOrchestrator


@pytest.fixture(autouse=True)
def isolated_settings(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Generator[None, None, None]:
    """Point settings at temporary paths and drop the settings cache.

    Unprefixed provider and logging variables from the developer's shell are
    removed so tests never pick up real credentials.
    """
    for name in (
        "PLUGGY_CLIENT_ID",
        "PLUGGY_CLIENT_SECRET",
        "PLUGGY_BASE_URL",
        "DUCKDB_PATH",
        "LOG_LEVEL",
        "LOG_TO_FILE",
        "LOG_FILE_PATH",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("FINLINK_DATABASE__PATH", str(tmp_path / "finlink.duckdb"))
    monkeypatch.setenv("FINLINK_LOGGING__LOG_FILE_PATH", str(tmp_path / "finlink.log"))

    clear_settings_cache()
    yield
    clear_settings_cache()


class StubProvider:
    """In-memory provider keyed like the real API.

    Populate the dicts with camelCase payloads, as the API would return them.
    Set ``failures[method_name]`` to an exception to make that method raise.
    """

    def __init__(self) -> None:
        self.items: dict[str, dict[str, Any]] = {}
        self.accounts: dict[str, list[dict[str, Any]]] = {}
        self.transactions: dict[str, list[dict[str, Any]]] = {}
        self.bills: dict[str, list[dict[str, Any]]] = {}
        self.investments: dict[str, list[dict[str, Any]]] = {}
        self.investment_transactions: dict[str, list[dict[str, Any]]] = {}
        self.loans: dict[str, list[dict[str, Any]]] = {}
        self.identities: dict[str, dict[str, Any]] = {}
        self.failures: dict[str, Exception] = {}
        self.calls: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []
        self.deleted: list[str] = []

    def _call(self, name: str, *args: Any, **kwargs: Any) -> None:
        self.calls.append((name, args, kwargs))
        if name in self.failures:
            raise self.failures[name]

    def calls_to(self, name: str) -> list[tuple[tuple[Any, ...], dict[str, Any]]]:
        return [(args, kwargs) for called, args, kwargs in self.calls if called == name]

    def fetch_connection(self, connection_id: str) -> ProviderItem:
        self._call("fetch_connection", connection_id)
        if connection_id not in self.items:
            raise NotFoundError("connection", connection_id)
        return ProviderItem.model_validate(self.items[connection_id])

    def fetch_accounts(self, connection_id: str) -> list[ProviderAccount]:
        self._call("fetch_accounts", connection_id)
        return [
            ProviderAccount.model_validate(a)
            for a in self.accounts.get(connection_id, [])
        ]

    def fetch_transactions(
        self,
        account_id: str,
        created_at_from: str | None = None,
        transaction_ids: list[str] | None = None,
    ) -> list[ProviderTransaction]:
        self._call(
            "fetch_transactions",
            account_id,
            created_at_from=created_at_from,
            transaction_ids=transaction_ids,
        )
        rows = self.transactions.get(account_id, [])
        if transaction_ids:
            rows = [t for t in rows if t["id"] in transaction_ids]
        return [ProviderTransaction.model_validate(t) for t in rows]

    def fetch_investments(self, connection_id: str) -> list[ProviderInvestment]:
        self._call("fetch_investments", connection_id)
        return [
            ProviderInvestment.model_validate(i)
            for i in self.investments.get(connection_id, [])
        ]

    def fetch_investment_transactions(
        self, investment_id: str
    ) -> list[ProviderInvestmentTransaction]:
        self._call("fetch_investment_transactions", investment_id)
        return [
            ProviderInvestmentTransaction.model_validate(t)
            for t in self.investment_transactions.get(investment_id, [])
        ]

    def fetch_loans(self, connection_id: str) -> list[ProviderLoan]:
        self._call("fetch_loans", connection_id)
        return [ProviderLoan.model_validate(loan) for loan in self.loans.get(connection_id, [])]

    def fetch_credit_card_bills(self, account_id: str) -> list[ProviderCreditCardBill]:
        self._call("fetch_credit_card_bills", account_id)
        return [
            ProviderCreditCardBill.model_validate(b)
            for b in self.bills.get(account_id, [])
        ]

    def fetch_identity(self, connection_id: str) -> ProviderIdentity:
        self._call("fetch_identity", connection_id)
        if connection_id not in self.identities:
            raise NotFoundError("identity", connection_id)
        return ProviderIdentity.model_validate(self.identities[connection_id])

    def create_connect_token(
        self, item_id: str | None = None, options: dict[str, Any] | None = None
    ) -> ConnectToken:
        self._call("create_connect_token", item_id=item_id, options=options)
        return ConnectToken(access_token="connect-token-123")

    def delete_connection(self, connection_id: str) -> None:
        self._call("delete_connection", connection_id)
        self.deleted.append(connection_id)


def _account_payload(
    account_id: str = "a1",
    item_id: str = "conn-1",
    account_type: str = "BANK",
    **overrides: Any,
) -> dict[str, Any]:
    """Provider account payload as returned by GET /accounts."""
    payload: dict[str, Any] = {
        "id": account_id,
        "itemId": item_id,
        "type": account_type,
        "subtype": "CHECKING_ACCOUNT" if account_type == "BANK" else "CREDIT_CARD",
        "number": "0001/12345-0",
        "name": f"Account {account_id}",
        "balance": 100.5,
        "currencyCode": "BRL",
    }
    payload.update(overrides)
    return payload


def _transaction_payload(
    transaction_id: str, account_id: str = "a1", **overrides: Any
) -> dict[str, Any]:
    """Provider transaction payload as returned by GET /transactions."""
    payload: dict[str, Any] = {
        "id": transaction_id,
        "accountId": account_id,
        "date": "2024-03-01T12:00:00.000Z",
        "description": f"Purchase {transaction_id}",
        "amount": -25.9,
        "currencyCode": "BRL",
        "status": "POSTED",
        "type": "DEBIT",
    }
    payload.update(overrides)
    return payload


def _item_payload(item_id: str = "conn-1", **overrides: Any) -> dict[str, Any]:
    """Provider item payload as returned by GET /items/{id}."""
    payload: dict[str, Any] = {
        "id": item_id,
        "connector": {
            "id": 201,
            "name": "Pluggy Bank",
            "imageUrl": "https://cdn.example.com/201.svg",
            "institutionUrl": "https://bank.example.com",
            "primaryColor": "ef294b",
        },
        "status": "UPDATED",
        "executionStatus": "SUCCESS",
        "clientUserId": "user-42",
        "createdAt": "2024-03-01T10:00:00.000Z",
        "updatedAt": "2024-03-02T10:00:00.000Z",
        "lastUpdatedAt": "2024-03-02T10:00:00.000Z",
        "webhookUrl": "https://finlink.example.com/api/webhook",
        "parameter": None,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def database(tmp_path: Path) -> Generator[Database, None, None]:
    """Fresh DuckDB database file with the finlink schema."""
    db = Database(tmp_path / "store.duckdb")
    yield db
    db.close()


@pytest.fixture
def store(database: Database) -> Store:
    """Repositories over the fresh database."""
    return Store(database)


@pytest.fixture
def provider() -> StubProvider:
    """Empty provider stub."""
    return StubProvider()


@pytest.fixture
def orchestrator(provider: StubProvider, store: Store) -> SyncOrchestrator:
    """Orchestrator wired to the stub provider and the fresh store."""
    return SyncOrchestrator(provider, store)


@pytest.fixture
def account_payload() -> Any:
    """Factory for provider account payloads."""
    return _account_payload


@pytest.fixture
def transaction_payload() -> Any:
    """Factory for provider transaction payloads."""
    return _transaction_payload


@pytest.fixture
def item_payload() -> Any:
    """Factory for provider item payloads."""
    return _item_payload
