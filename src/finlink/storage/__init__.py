"""Durable storage for synchronized provider data."""

from .database import Database
from .repositories import (
    AccountRepository,
    ConnectionRepository,
    CreditCardBillRepository,
    IdentityRepository,
    InvestmentRepository,
    InvestmentTransactionRepository,
    LoanRepository,
    Repository,
    Store,
    TransactionRepository,
)

__all__ = [
    "AccountRepository",
    "ConnectionRepository",
    "CreditCardBillRepository",
    "Database",
    "IdentityRepository",
    "InvestmentRepository",
    "InvestmentTransactionRepository",
    "LoanRepository",
    "Repository",
    "Store",
    "TransactionRepository",
]
