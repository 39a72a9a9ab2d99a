"""Pydantic schemas for Open-Finance provider API responses.

These models describe records as the provider returns them (camelCase on the
wire, snake_case attributes here). They are deliberately permissive: unknown
fields are ignored and enum-like values are kept as plain strings, so a new
provider value never turns a fetch into a validation failure.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

ProviderTimestamp = datetime | date | str
JsonPayload = dict[str, Any] | list[Any]


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        extra="ignore",
        str_strip_whitespace=True,
    )


class PassthroughSchema(BaseSchema):
    """Schema for loosely-typed nested structures that keep unknown fields."""

    model_config = ConfigDict(extra="allow")


def _coerce_enum_to_str(v: Any) -> Any:
    if v is None:
        return None
    if isinstance(v, Enum):
        return v.value
    return str(v)


# Connections ("items")


class ProviderConnector(BaseSchema):
    """Institution connector attached to an item."""

    id: str
    name: str | None = None
    image_url: str | None = None
    institution_url: str | None = None
    primary_color: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_connector_id(cls, v: Any) -> Any:
        """Connector ids are numeric on the wire."""
        return _coerce_enum_to_str(v)


class ProviderItem(BaseSchema):
    """A provider item: one end-user linkage to one institution."""

    id: str
    connector: ProviderConnector | None = None
    status: str | None = None
    execution_status: str | None = None
    client_user_id: str | None = None
    created_at: ProviderTimestamp | None = None
    updated_at: ProviderTimestamp | None = None
    last_updated_at: ProviderTimestamp | None = None
    webhook_url: str | None = None
    parameter: dict[str, Any] | None = None
    consecutive_failed_login_attempts: int | None = None
    error: dict[str, Any] | None = None


# Accounts and their children


class ProviderAccount(BaseSchema):
    """Bank, credit card or payment account."""

    id: str
    item_id: str | None = None
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

    @field_validator("type", "subtype", mode="before")
    @classmethod
    def coerce_account_enums(cls, v: Any) -> Any:
        """Accept enum members or strings for account type fields."""
        return _coerce_enum_to_str(v)


class ProviderTransaction(BaseSchema):
    """Account transaction."""

    id: str
    account_id: str | None = None
    date: ProviderTimestamp
    description: str | None = None
    description_raw: str | None = None
    amount: float
    balance: float | None = None
    currency_code: str | None = None
    category: str | None = None
    category_id: str | None = None
    provider_code: str | None = None
    provider_id: str | None = None
    status: str | None = None
    type: str
    operation_type: str | None = None
    payment_data: dict[str, Any] | None = None
    credit_card_metadata: dict[str, Any] | None = None
    merchant: dict[str, Any] | None = None


class ProviderCreditCardBill(BaseSchema):
    """Credit card bill for a CREDIT account."""

    id: str
    due_date: ProviderTimestamp | None = None
    total_amount: float
    total_amount_currency_code: str | None = None
    minimum_payment_amount: float | None = None
    allows_installments: bool | None = None
    finance_charges: list[dict[str, Any]] | None = None


# Investments


class ProviderInvestmentInstitution(BaseSchema):
    """Institution that issued or custodies an investment."""

    name: str | None = None
    number: str | None = None


class ProviderInvestment(BaseSchema):
    """Investment position held under an item."""

    id: str
    item_id: str
    name: str
    code: str | None = None
    isin: str | None = None
    number: str | None = None
    owner: str | None = None
    currency_code: str | None = None
    type: str | None = None
    subtype: str | None = None
    last_month_rate: float | None = None
    last_twelve_months_rate: float | None = None
    annual_rate: float | None = None
    date: ProviderTimestamp | None = None
    value: float | None = None
    quantity: float | None = None
    amount: float | None = None
    balance: float | None = None
    taxes: float | None = None
    taxes2: float | None = None
    due_date: ProviderTimestamp | None = None
    rate: float | None = None
    rate_type: str | None = None
    fixed_annual_rate: float | None = None
    issuer: str | None = None
    issue_date: ProviderTimestamp | None = None
    amount_profit: float | None = None
    amount_withdrawal: float | None = None
    amount_original: float | None = None
    status: str | None = None
    institution: ProviderInvestmentInstitution | None = None
    metadata: dict[str, Any] | None = None
    provider_id: str | None = None


class ProviderInvestmentTransaction(BaseSchema):
    """Movement on an investment position."""

    id: str
    trade_date: ProviderTimestamp | None = None
    date: ProviderTimestamp
    description: str | None = None
    quantity: float | None = None
    value: float | None = None
    amount: float | None = None
    net_amount: float | None = None
    brokerage_number: str | None = None
    expenses: dict[str, Any] | None = None
    type: str | None = None


# Loans


class ProviderLoan(BaseSchema):
    """Loan contract held under an item."""

    id: str
    item_id: str
    type: str | None = None
    product_name: str | None = None
    contract_number: str | None = None
    ipoc_code: str | None = None
    provider_id: str | None = None
    date: ProviderTimestamp | None = None
    contract_date: ProviderTimestamp | None = None
    due_date: ProviderTimestamp | None = None
    contract_amount: float | None = None
    currency_code: str | None = None
    cet: float | None = None
    installment_periodicity: str | None = None
    amortization_scheduled: str | None = None
    interest_rates: JsonPayload | None = None
    contracted_fees: JsonPayload | None = None
    contracted_finance_charges: JsonPayload | None = None
    warranties: JsonPayload | None = None
    installments: JsonPayload | None = None
    payments: JsonPayload | None = None


# Identity


class ProviderAddress(PassthroughSchema):
    """Postal address of the identity owner."""

    full_address: str | None = None
    primary_address: str | None = None
    city: str | None = None
    postal_code: str | None = None
    state: str | None = None
    country: str | None = None
    type: str | None = None
    additional_info: str | None = None


class ProviderPhoneNumber(PassthroughSchema):
    """Phone number of the identity owner."""

    type: str | None = None
    value: str


class ProviderEmail(PassthroughSchema):
    """E-mail address of the identity owner."""

    type: str | None = None
    value: str


class ProviderRelation(PassthroughSchema):
    """Family or business relation of the identity owner."""

    type: str | None = None
    name: str | None = None
    document: str | None = None


class ProviderIdentity(BaseSchema):
    """Identity of the person or company behind an item."""

    id: str
    item_id: str
    full_name: str | None = None
    company_name: str | None = None
    document: str | None = None
    document_type: str | None = None
    tax_number: str | None = None
    job_title: str | None = None
    birth_date: ProviderTimestamp | None = None
    investor_profile: str | None = None
    establishment_code: str | None = None
    establishment_name: str | None = None
    addresses: list[ProviderAddress] | None = None
    phone_numbers: list[ProviderPhoneNumber] | None = None
    emails: list[ProviderEmail] | None = None
    relations: list[ProviderRelation] | None = None


# Responses


class ConnectToken(BaseSchema):
    """Short-lived token for the provider's connect widget."""

    access_token: str
    expires_at: ProviderTimestamp | None = None


class PageResponse(BaseSchema):
    """Paged list envelope returned by list endpoints."""

    results: list[dict[str, Any]] = Field(default_factory=list)
    page: int | None = None
    total: int | None = None
    total_pages: int | None = None
