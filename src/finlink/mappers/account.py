"""Account mapper."""

from ..models import AccountRecord
from ..provider.schemas import ProviderAccount


def map_account(account: ProviderAccount, item_id: str) -> AccountRecord:
    """Map a provider account onto the account row of ``item_id``.

    Credit accounts carry their limit breakdown inside ``credit_data``; it is
    lifted into its own column so the dashboard need not dig for it.
    """
    credit_limits = None
    if account.credit_data:
        credit_limits = account.credit_data.get(
            "disaggregatedCreditLimits"
        ) or account.credit_data.get("disaggregated_credit_limits")

    return AccountRecord(
        item_id=item_id,
        account_id=str(account.id),
        type=account.type,
        subtype=account.subtype,
        number=account.number,
        name=account.name,
        marketing_name=account.marketing_name,
        balance=account.balance,
        currency_code=account.currency_code,
        owner=account.owner,
        tax_number=account.tax_number,
        bank_data=account.bank_data,
        credit_data=account.credit_data,
        disaggregated_credit_limits=credit_limits
        if isinstance(credit_limits, dict | list)
        else None,
    )
