"""Internal record models persisted by the repository layer.

Each record is keyed by the provider's natural id and carries its parent id.
Nested provider payloads are kept as opaque structured data. ``created_at`` is
assigned by the store on first insert and is never part of an upsert.
"""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .provider.schemas import JsonPayload


class ConnectionStatus(StrEnum):
    """Lifecycle status of a provider connection."""

    CREATED = "CREATED"
    UPDATING = "UPDATING"
    UPDATED = "UPDATED"
    WAITING_USER_INPUT = "WAITING_USER_INPUT"
    LOGIN_ERROR = "LOGIN_ERROR"
    OUTDATED = "OUTDATED"


class AccountType(StrEnum):
    """Account types exposed by the provider."""

    BANK = "BANK"
    CREDIT = "CREDIT"
    PAYMENT_ACCOUNT = "PAYMENT_ACCOUNT"


class TransactionStatus(StrEnum):
    """Settlement status of an account transaction."""

    POSTED = "POSTED"
    PENDING = "PENDING"


class TransactionType(StrEnum):
    """Direction of an account transaction."""

    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


class InvestmentStatus(StrEnum):
    """Status of an investment position."""

    ACTIVE = "ACTIVE"
    PENDING = "PENDING"
    TOTAL_WITHDRAWAL = "TOTAL_WITHDRAWAL"


class InvestmentTransactionType(StrEnum):
    """Kind of movement on an investment."""

    BUY = "BUY"
    SELL = "SELL"
    TAX = "TAX"
    TRANSFER = "TRANSFER"
    INTEREST = "INTEREST"
    AMORTIZATION = "AMORTIZATION"
    DIVIDEND = "DIVIDEND"


DEFAULT_CURRENCY_CODE = "BRL"


class RecordModel(BaseModel):
    """Base configuration for persisted records."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        from_attributes=True,
    )

    created_at: str | None = Field(
        default=None, description="Store-assigned insertion time"
    )


class ConnectionRecord(RecordModel):
    """A provider item ("connection") as stored locally."""

    item_id: str
    user_id: str | None = None
    connector_id: str | None = None
    connector_name: str | None = None
    connector_image_url: str | None = None
    status: str | None = None
    provider_created_at: str | None = None
    provider_updated_at: str | None = None
    last_updated_at: str | None = None
    webhook_url: str | None = None
    parameters: dict[str, Any] | None = None
    institution_name: str | None = None
    institution_url: str | None = None
    primary_color: str | None = None
    consecutive_failed_login_attempts: int | None = None


class AccountRecord(RecordModel):
    """Bank, credit card or payment account."""

    item_id: str
    account_id: str
    type: str
    subtype: str | None = None
    number: str | None = None
    name: str
    marketing_name: str | None = None
    balance: float | None = None
    currency_code: str | None = None
    owner: str | None = None
    tax_number: str | None = None
    bank_data: dict[str, Any] | None = None
    credit_data: dict[str, Any] | None = None
    disaggregated_credit_limits: JsonPayload | None = None


class TransactionRecord(RecordModel):
    """Account transaction."""

    account_id: str
    transaction_id: str
    date: str
    description: str = ""
    description_raw: str | None = None
    amount: float
    balance: float | None = None
    currency_code: str = DEFAULT_CURRENCY_CODE
    category: str | None = None
    category_id: str | None = None
    provider_code: str | None = None
    provider_id: str | None = None
    status: str = TransactionStatus.POSTED
    type: str
    operation_type: str | None = None
    operation_category: str | None = None
    payment_data: dict[str, Any] | None = None
    credit_card_metadata: dict[str, Any] | None = None
    merchant: dict[str, Any] | None = None


class CreditCardBillRecord(RecordModel):
    """Credit card bill of a CREDIT account."""

    bill_id: str
    account_id: str
    due_date: str | None = None
    total_amount: float
    total_amount_currency_code: str | None = None
    minimum_payment_amount: float | None = None
    allows_installments: bool | None = None
    finance_charges: list[dict[str, Any]] | None = None


class InvestmentInstitution(BaseModel):
    """Institution attached to an investment."""

    model_config = ConfigDict(frozen=True)

    name: str | None = None
    number: str | None = None


class InvestmentRecord(RecordModel):
    """Investment position."""

    investment_id: str
    item_id: str
    name: str
    code: str | None = None
    isin: str | None = None
    number: str | None = None
    owner: str | None = None
    currency_code: str = DEFAULT_CURRENCY_CODE
    type: str | None = None
    subtype: str | None = None
    last_month_rate: float | None = None
    last_twelve_months_rate: float | None = None
    annual_rate: float | None = None
    date: str | None = None
    value: float | None = None
    quantity: float | None = None
    amount: float | None = None
    balance: float | None = None
    taxes: float | None = None
    taxes2: float | None = None
    due_date: str | None = None
    rate: float | None = None
    rate_type: str | None = None
    fixed_annual_rate: float | None = None
    issuer: str | None = None
    issue_date: str | None = None
    amount_profit: float | None = None
    amount_withdrawal: float | None = None
    amount_original: float | None = None
    status: str = InvestmentStatus.ACTIVE
    institution: InvestmentInstitution | None = None
    metadata: dict[str, Any] | None = None
    provider_id: str | None = None


class InvestmentTransactionRecord(RecordModel):
    """Movement on an investment."""

    transaction_id: str
    investment_id: str
    trade_date: str
    date: str
    description: str | None = None
    quantity: float | None = None
    value: float = 0
    amount: float = 0
    net_amount: float | None = None
    brokerage_number: str | None = None
    expenses: dict[str, Any] | None = None
    type: str = InvestmentTransactionType.TRANSFER


class LoanRecord(RecordModel):
    """Loan contract."""

    loan_id: str
    item_id: str
    type: str | None = None
    product_name: str | None = None
    contract_number: str | None = None
    ipoc_code: str | None = None
    provider_id: str | None = None
    date: str | None = None
    contract_date: str | None = None
    due_date: str | None = None
    contract_amount: float | None = None
    currency_code: str | None = None
    cet: float | None = None
    installment_periodicity: str | None = None
    amortization_scheduled: str | None = None
    interest_rates: Any = None
    contracted_fees: Any = None
    contracted_finance_charges: Any = None
    warranties: Any = None
    installments: Any = None
    payments: Any = None


class IdentityPart(BaseModel):
    """Nested identity structure; unknown provider fields are kept."""

    model_config = ConfigDict(frozen=True, extra="allow")


class Address(IdentityPart):
    full_address: str | None = None
    primary_address: str | None = None
    city: str | None = None
    postal_code: str | None = None
    state: str | None = None
    country: str | None = None
    type: str | None = None
    additional_info: str | None = None


class PhoneNumber(IdentityPart):
    type: str | None = None
    value: str


class Email(IdentityPart):
    type: str | None = None
    value: str


class Relation(IdentityPart):
    type: str | None = None
    name: str | None = None
    document: str | None = None


class IdentityRecord(RecordModel):
    """Identity of the person or company behind a connection (1:1)."""

    identity_id: str
    item_id: str
    full_name: str | None = None
    company_name: str | None = None
    document: str | None = None
    document_type: str | None = None
    tax_number: str | None = None
    job_title: str | None = None
    birth_date: str | None = None
    investor_profile: str | None = None
    establishment_code: str | None = None
    establishment_name: str | None = None
    addresses: list[Address] | None = None
    phone_numbers: list[PhoneNumber] | None = None
    emails: list[Email] | None = None
    relations: list[Relation] | None = None
