"""Sync orchestrator: reconcile a provider connection into the local store.

A full pass fetches accounts first, then each account's transactions (and
bills for credit accounts), then investments with their movements, loans and
identity. Accounts are the only hard dependency: their failure aborts the
pass. Every other branch runs inside its own failure scope, so one broken
feed never prevents the rest from being refreshed.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from ..exceptions import NotFoundError, SyncError
from ..mappers import (
    map_account,
    map_connection,
    map_credit_card_bill,
    map_identity,
    map_investment,
    map_investment_transaction,
    map_loan,
    map_transaction,
)
from ..models import AccountRecord, AccountType, ConnectionRecord
from ..provider.client import ProviderClient
from ..storage.repositories import Store
from .report import SyncReport

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """Runs sync passes for connections.

    The provider client and the store are injected; one orchestrator can
    serve any number of sequential or concurrent passes.
    """

    def __init__(self, provider: ProviderClient, store: Store):
        self.provider = provider
        self.store = store

    @contextmanager
    def _isolated(
        self, report: SyncReport, entity: str, parent_id: str | None = None
    ) -> Iterator[None]:
        """Contain a branch failure: log it, record it, carry on."""
        try:
            yield
        except Exception as e:
            context = f" for {parent_id}" if parent_id else ""
            logger.error(
                f"Sync of {entity}{context} failed on connection "
                f"{report.connection_id}: {e}"
            )
            report.record_failure(entity, e, parent_id)

    # Public entry points

    def sync_connection(self, connection_id: str) -> SyncReport:
        """Run a full sync pass for a connection.

        Args:
            connection_id: Provider item id

        Returns:
            SyncReport: Rows saved per entity and any contained failures

        Raises:
            SyncError: If accounts cannot be fetched or saved
        """
        logger.info(f"Starting full sync of connection {connection_id}")
        report = SyncReport(connection_id=connection_id)

        self._sync_accounts_branch(connection_id, report, include_bills=True)

        with self._isolated(report, "investments"):
            self._sync_investments(connection_id, report)

        with self._isolated(report, "loans"):
            self._sync_loans(connection_id, report)

        with self._isolated(report, "identity"):
            self._sync_identity(connection_id, report)

        if report.ok:
            logger.info(f"Finished sync of connection {connection_id}: {report.summary()}")
        else:
            logger.warning(
                f"Finished sync of connection {connection_id} with "
                f"{len(report.failures)} failed branch(es): {report.summary()}"
            )
        return report

    def sync_accounts_only(self, connection_id: str) -> SyncReport:
        """Refresh accounts and their transactions only.

        Bills, investments, loans and identity are left untouched.

        Raises:
            SyncError: If accounts cannot be fetched or saved
        """
        logger.info(f"Starting accounts-only sync of connection {connection_id}")
        report = SyncReport(connection_id=connection_id)
        self._sync_accounts_branch(connection_id, report, include_bills=False)
        logger.info(
            f"Finished accounts-only sync of connection {connection_id}: "
            f"{report.accounts} accounts, {report.transactions} transactions"
        )
        return report

    def refresh_connection(self, connection_id: str) -> ConnectionRecord:
        """Fetch a connection from the provider and save its row."""
        item = self.provider.fetch_connection(connection_id)
        saved = self.store.connections.upsert(map_connection(item))
        logger.info(f"Saved connection {connection_id} with status {saved.status}")
        return saved

    def sync_account_transactions(
        self,
        account_id: str,
        created_at_from: str | None = None,
        transaction_ids: list[str] | None = None,
    ) -> int:
        """Fetch and save the transactions of one account.

        Errors propagate to the caller.

        Returns:
            int: Number of transactions saved
        """
        transactions = self.provider.fetch_transactions(
            account_id,
            created_at_from=created_at_from,
            transaction_ids=transaction_ids,
        )
        if not transactions:
            logger.debug(f"No transactions returned for account {account_id}")
            return 0

        saved = self.store.transactions.upsert_many(
            [map_transaction(t, account_id) for t in transactions]
        )
        logger.debug(f"Saved {len(saved)} transactions for account {account_id}")
        return len(saved)

    # Branches

    def _sync_accounts_branch(
        self, connection_id: str, report: SyncReport, include_bills: bool
    ) -> None:
        try:
            provider_accounts = self.provider.fetch_accounts(connection_id)
            saved_accounts: list[AccountRecord] = []
            if provider_accounts:
                saved_accounts = self.store.accounts.upsert_many(
                    [map_account(a, connection_id) for a in provider_accounts]
                )
        except Exception as e:
            logger.error(f"Sync of accounts failed on connection {connection_id}: {e}")
            report.record_failure("accounts", e)
            raise SyncError(
                f"Accounts sync failed for connection {connection_id}: {e}", report
            ) from e

        if not saved_accounts:
            logger.info(f"Connection {connection_id} has no accounts")
            report.no_accounts = True
            return

        report.accounts = len(saved_accounts)

        # Children are synced from the saved rows, after every account exists
        for account in saved_accounts:
            with self._isolated(report, "transactions", account.account_id):
                report.transactions += self.sync_account_transactions(
                    account.account_id
                )

            if include_bills and account.type == AccountType.CREDIT:
                with self._isolated(report, "credit_card_bills", account.account_id):
                    self._sync_bills(account.account_id, report)

    def _sync_bills(self, account_id: str, report: SyncReport) -> None:
        bills = self.provider.fetch_credit_card_bills(account_id)
        saved = self.store.credit_card_bills.upsert_many(
            [map_credit_card_bill(b, account_id) for b in bills]
        )
        report.bills_by_account[account_id] = len(saved)
        report.credit_card_bills += len(saved)

    def _sync_investments(self, connection_id: str, report: SyncReport) -> None:
        investments = self.provider.fetch_investments(connection_id)
        if not investments:
            logger.debug(f"Connection {connection_id} has no investments")
            return

        saved = self.store.investments.upsert_many(
            [map_investment(i, connection_id) for i in investments]
        )
        report.investments = len(saved)

        for investment in saved:
            with self._isolated(
                report, "investment_transactions", investment.investment_id
            ):
                movements = self.provider.fetch_investment_transactions(
                    investment.investment_id
                )
                saved_movements = self.store.investment_transactions.upsert_many(
                    [
                        map_investment_transaction(m, investment.investment_id)
                        for m in movements
                    ]
                )
                report.investment_transactions += len(saved_movements)

    def _sync_loans(self, connection_id: str, report: SyncReport) -> None:
        loans = self.provider.fetch_loans(connection_id)
        saved = self.store.loans.upsert_many(
            [map_loan(loan, connection_id) for loan in loans]
        )
        report.loans = len(saved)

    def _sync_identity(self, connection_id: str, report: SyncReport) -> None:
        try:
            identity = self.provider.fetch_identity(connection_id)
        except NotFoundError:
            logger.info(f"No identity available for connection {connection_id}")
            return

        self.store.identities.upsert_many([map_identity(identity, connection_id)])
        report.identity_found = True
