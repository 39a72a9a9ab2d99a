"""Credit card bill mapper."""

from ..models import CreditCardBillRecord
from ..provider.schemas import ProviderCreditCardBill
from ..utils.dates import to_iso_timestamp


def map_credit_card_bill(
    bill: ProviderCreditCardBill, account_id: str
) -> CreditCardBillRecord:
    """Map a provider bill onto a bill row of the credit account ``account_id``."""
    return CreditCardBillRecord(
        bill_id=bill.id,
        account_id=account_id,
        due_date=to_iso_timestamp(bill.due_date),
        total_amount=bill.total_amount,
        total_amount_currency_code=bill.total_amount_currency_code,
        minimum_payment_amount=bill.minimum_payment_amount,
        allows_installments=bill.allows_installments,
        # An empty charge list carries no information
        finance_charges=bill.finance_charges or None,
    )
