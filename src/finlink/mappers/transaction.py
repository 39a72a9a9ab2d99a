"""Transaction mapper."""

from ..models import DEFAULT_CURRENCY_CODE, TransactionRecord, TransactionStatus
from ..provider.schemas import ProviderTransaction
from ..utils.dates import to_iso_timestamp


def map_transaction(
    transaction: ProviderTransaction, account_id: str
) -> TransactionRecord:
    """Map a provider transaction onto a transaction row of ``account_id``.

    Missing currency defaults to BRL, missing status to POSTED and a missing
    description to the empty string.
    """
    return TransactionRecord(
        account_id=account_id,
        transaction_id=transaction.id,
        date=to_iso_timestamp(transaction.date) or "",
        description=transaction.description or "",
        description_raw=transaction.description_raw,
        amount=transaction.amount,
        balance=transaction.balance,
        currency_code=transaction.currency_code or DEFAULT_CURRENCY_CODE,
        category=transaction.category,
        category_id=transaction.category_id,
        provider_code=transaction.provider_code,
        provider_id=transaction.provider_id,
        status=transaction.status or TransactionStatus.POSTED.value,
        type=transaction.type,
        operation_type=transaction.operation_type,
        payment_data=transaction.payment_data,
        credit_card_metadata=transaction.credit_card_metadata,
        merchant=transaction.merchant,
    )
