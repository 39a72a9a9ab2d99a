"""Loan mapper."""

from ..models import LoanRecord
from ..provider.schemas import ProviderLoan
from ..utils.dates import to_iso_timestamp


def map_loan(loan: ProviderLoan, item_id: str) -> LoanRecord:
    """Map a provider loan onto a loan row of ``item_id``.

    Installment, warranty, fee and payment structures are stored as delivered.
    """
    return LoanRecord(
        loan_id=loan.id,
        item_id=item_id,
        type=loan.type,
        product_name=loan.product_name,
        contract_number=loan.contract_number,
        ipoc_code=loan.ipoc_code,
        provider_id=loan.provider_id,
        date=to_iso_timestamp(loan.date),
        contract_date=to_iso_timestamp(loan.contract_date),
        due_date=to_iso_timestamp(loan.due_date),
        contract_amount=loan.contract_amount,
        currency_code=loan.currency_code,
        cet=loan.cet,
        installment_periodicity=loan.installment_periodicity,
        amortization_scheduled=loan.amortization_scheduled,
        interest_rates=loan.interest_rates,
        contracted_fees=loan.contracted_fees,
        contracted_finance_charges=loan.contracted_finance_charges,
        warranties=loan.warranties,
        installments=loan.installments,
        payments=loan.payments,
    )
