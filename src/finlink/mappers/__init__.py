"""Pure mappers from provider-shaped records to persisted records.

Mappers perform no I/O and never raise for a validated provider record.
"""

from .account import map_account
from .connection import map_connection
from .credit_card_bill import map_credit_card_bill
from .identity import map_identity
from .investment import map_investment, map_investment_transaction
from .loan import map_loan
from .transaction import map_transaction

__all__ = [
    "map_account",
    "map_connection",
    "map_credit_card_bill",
    "map_identity",
    "map_investment",
    "map_investment_transaction",
    "map_loan",
    "map_transaction",
]
