"""Investment and investment transaction mappers."""

from ..models import (
    DEFAULT_CURRENCY_CODE,
    InvestmentInstitution,
    InvestmentRecord,
    InvestmentStatus,
    InvestmentTransactionRecord,
    InvestmentTransactionType,
)
from ..provider.schemas import ProviderInvestment, ProviderInvestmentTransaction
from ..utils.dates import to_iso_timestamp


def map_investment(investment: ProviderInvestment, item_id: str) -> InvestmentRecord:
    """Map a provider investment onto an investment row of ``item_id``.

    Currency defaults to BRL and status to ACTIVE.
    """
    institution = None
    if investment.institution is not None:
        institution = InvestmentInstitution(
            name=investment.institution.name,
            number=investment.institution.number,
        )

    return InvestmentRecord(
        investment_id=investment.id,
        item_id=item_id,
        name=investment.name,
        code=investment.code,
        isin=investment.isin,
        number=investment.number,
        owner=investment.owner,
        currency_code=investment.currency_code or DEFAULT_CURRENCY_CODE,
        type=investment.type,
        subtype=investment.subtype,
        last_month_rate=investment.last_month_rate,
        last_twelve_months_rate=investment.last_twelve_months_rate,
        annual_rate=investment.annual_rate,
        date=to_iso_timestamp(investment.date),
        value=investment.value,
        quantity=investment.quantity,
        amount=investment.amount,
        balance=investment.balance,
        taxes=investment.taxes,
        taxes2=investment.taxes2,
        due_date=to_iso_timestamp(investment.due_date),
        rate=investment.rate,
        rate_type=investment.rate_type,
        fixed_annual_rate=investment.fixed_annual_rate,
        issuer=investment.issuer,
        issue_date=to_iso_timestamp(investment.issue_date),
        amount_profit=investment.amount_profit,
        amount_withdrawal=investment.amount_withdrawal,
        amount_original=investment.amount_original,
        status=investment.status or InvestmentStatus.ACTIVE.value,
        institution=institution,
        metadata=investment.metadata,
        provider_id=investment.provider_id,
    )


def map_investment_transaction(
    transaction: ProviderInvestmentTransaction, investment_id: str
) -> InvestmentTransactionRecord:
    """Map a provider investment movement onto a row of ``investment_id``.

    ``trade_date`` falls back to the settlement ``date``; value and amount
    default to zero and the type to TRANSFER.
    """
    settled = to_iso_timestamp(transaction.date) or ""
    return InvestmentTransactionRecord(
        transaction_id=transaction.id,
        investment_id=investment_id,
        trade_date=to_iso_timestamp(transaction.trade_date) or settled,
        date=settled,
        description=transaction.description,
        quantity=transaction.quantity,
        value=transaction.value if transaction.value is not None else 0,
        amount=transaction.amount if transaction.amount is not None else 0,
        net_amount=transaction.net_amount,
        brokerage_number=transaction.brokerage_number,
        expenses=transaction.expenses,
        type=transaction.type or InvestmentTransactionType.TRANSFER.value,
    )
