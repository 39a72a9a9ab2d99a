"""Outcome of a sync pass."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class BranchFailure:
    """A failure contained inside one isolated branch of a sync pass."""

    entity: str
    message: str
    parent_id: str | None = None


@dataclass
class SyncReport:
    """Counts of rows saved per entity plus contained branch failures."""

    connection_id: str
    accounts: int = 0
    transactions: int = 0
    credit_card_bills: int = 0
    investments: int = 0
    investment_transactions: int = 0
    loans: int = 0
    identity_found: bool = False
    no_accounts: bool = False
    bills_by_account: dict[str, int] = field(default_factory=dict)
    failures: list[BranchFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Whether every branch completed without a contained failure."""
        return not self.failures

    @property
    def accounts_with_bills(self) -> list[str]:
        """Credit accounts whose bill fetch returned at least one bill."""
        return [account_id for account_id, n in self.bills_by_account.items() if n]

    def record_failure(
        self, entity: str, error: BaseException, parent_id: str | None = None
    ) -> None:
        self.failures.append(BranchFailure(entity, str(error), parent_id))

    def summary(self) -> dict[str, int | bool]:
        """Flat view of the counts, for logs and CLI output."""
        return {
            "accounts": self.accounts,
            "transactions": self.transactions,
            "credit_card_bills": self.credit_card_bills,
            "investments": self.investments,
            "investment_transactions": self.investment_transactions,
            "loans": self.loans,
            "identity_found": self.identity_found,
            "failures": len(self.failures),
        }
