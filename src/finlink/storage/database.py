"""DuckDB store for synchronized provider data.

Every table is keyed by the provider's natural id. Nested payloads are stored
as canonical JSON text and timestamps as ISO-8601 strings, so re-saving an
unchanged record leaves the row byte-identical.
"""

import logging
import threading
from pathlib import Path
from types import TracebackType

import duckdb

from ..exceptions import PersistenceError

logger = logging.getLogger(__name__)

SCHEMA: dict[str, str] = {
    "connections": """
        CREATE TABLE IF NOT EXISTS connections (
            item_id VARCHAR PRIMARY KEY,
            user_id VARCHAR,
            connector_id VARCHAR,
            connector_name VARCHAR,
            connector_image_url VARCHAR,
            status VARCHAR,
            provider_created_at VARCHAR,
            provider_updated_at VARCHAR,
            last_updated_at VARCHAR,
            webhook_url VARCHAR,
            parameters VARCHAR,
            institution_name VARCHAR,
            institution_url VARCHAR,
            primary_color VARCHAR,
            consecutive_failed_login_attempts INTEGER,
            created_at TIMESTAMP DEFAULT current_timestamp
        )
    """,
    "accounts": """
        CREATE TABLE IF NOT EXISTS accounts (
            account_id VARCHAR PRIMARY KEY,
            item_id VARCHAR NOT NULL,
            type VARCHAR NOT NULL,
            subtype VARCHAR,
            number VARCHAR,
            name VARCHAR NOT NULL,
            marketing_name VARCHAR,
            balance DOUBLE,
            currency_code VARCHAR,
            owner VARCHAR,
            tax_number VARCHAR,
            bank_data VARCHAR,
            credit_data VARCHAR,
            disaggregated_credit_limits VARCHAR,
            created_at TIMESTAMP DEFAULT current_timestamp
        )
    """,
    "transactions": """
        CREATE TABLE IF NOT EXISTS transactions (
            transaction_id VARCHAR PRIMARY KEY,
            account_id VARCHAR NOT NULL,
            date VARCHAR NOT NULL,
            description VARCHAR NOT NULL,
            description_raw VARCHAR,
            amount DOUBLE NOT NULL,
            balance DOUBLE,
            currency_code VARCHAR NOT NULL,
            category VARCHAR,
            category_id VARCHAR,
            provider_code VARCHAR,
            provider_id VARCHAR,
            status VARCHAR NOT NULL,
            type VARCHAR NOT NULL,
            operation_type VARCHAR,
            operation_category VARCHAR,
            payment_data VARCHAR,
            credit_card_metadata VARCHAR,
            merchant VARCHAR,
            created_at TIMESTAMP DEFAULT current_timestamp
        )
    """,
    "credit_card_bills": """
        CREATE TABLE IF NOT EXISTS credit_card_bills (
            bill_id VARCHAR PRIMARY KEY,
            account_id VARCHAR NOT NULL,
            due_date VARCHAR,
            total_amount DOUBLE NOT NULL,
            total_amount_currency_code VARCHAR,
            minimum_payment_amount DOUBLE,
            allows_installments BOOLEAN,
            finance_charges VARCHAR,
            created_at TIMESTAMP DEFAULT current_timestamp
        )
    """,
    "investments": """
        CREATE TABLE IF NOT EXISTS investments (
            investment_id VARCHAR PRIMARY KEY,
            item_id VARCHAR NOT NULL,
            name VARCHAR NOT NULL,
            code VARCHAR,
            isin VARCHAR,
            number VARCHAR,
            owner VARCHAR,
            currency_code VARCHAR NOT NULL,
            type VARCHAR,
            subtype VARCHAR,
            last_month_rate DOUBLE,
            last_twelve_months_rate DOUBLE,
            annual_rate DOUBLE,
            date VARCHAR,
            value DOUBLE,
            quantity DOUBLE,
            amount DOUBLE,
            balance DOUBLE,
            taxes DOUBLE,
            taxes2 DOUBLE,
            due_date VARCHAR,
            rate DOUBLE,
            rate_type VARCHAR,
            fixed_annual_rate DOUBLE,
            issuer VARCHAR,
            issue_date VARCHAR,
            amount_profit DOUBLE,
            amount_withdrawal DOUBLE,
            amount_original DOUBLE,
            status VARCHAR NOT NULL,
            institution VARCHAR,
            metadata VARCHAR,
            provider_id VARCHAR,
            created_at TIMESTAMP DEFAULT current_timestamp
        )
    """,
    "investment_transactions": """
        CREATE TABLE IF NOT EXISTS investment_transactions (
            transaction_id VARCHAR PRIMARY KEY,
            investment_id VARCHAR NOT NULL,
            trade_date VARCHAR NOT NULL,
            date VARCHAR NOT NULL,
            description VARCHAR,
            quantity DOUBLE,
            value DOUBLE NOT NULL,
            amount DOUBLE NOT NULL,
            net_amount DOUBLE,
            brokerage_number VARCHAR,
            expenses VARCHAR,
            type VARCHAR NOT NULL,
            created_at TIMESTAMP DEFAULT current_timestamp
        )
    """,
    "loans": """
        CREATE TABLE IF NOT EXISTS loans (
            loan_id VARCHAR PRIMARY KEY,
            item_id VARCHAR NOT NULL,
            type VARCHAR,
            product_name VARCHAR,
            contract_number VARCHAR,
            ipoc_code VARCHAR,
            provider_id VARCHAR,
            date VARCHAR,
            contract_date VARCHAR,
            due_date VARCHAR,
            contract_amount DOUBLE,
            currency_code VARCHAR,
            cet DOUBLE,
            installment_periodicity VARCHAR,
            amortization_scheduled VARCHAR,
            interest_rates VARCHAR,
            contracted_fees VARCHAR,
            contracted_finance_charges VARCHAR,
            warranties VARCHAR,
            installments VARCHAR,
            payments VARCHAR,
            created_at TIMESTAMP DEFAULT current_timestamp
        )
    """,
    "identities": """
        CREATE TABLE IF NOT EXISTS identities (
            identity_id VARCHAR PRIMARY KEY,
            item_id VARCHAR NOT NULL,
            full_name VARCHAR,
            company_name VARCHAR,
            document VARCHAR,
            document_type VARCHAR,
            tax_number VARCHAR,
            job_title VARCHAR,
            birth_date VARCHAR,
            investor_profile VARCHAR,
            establishment_code VARCHAR,
            establishment_name VARCHAR,
            addresses VARCHAR,
            phone_numbers VARCHAR,
            emails VARCHAR,
            relations VARCHAR,
            created_at TIMESTAMP DEFAULT current_timestamp
        )
    """,
}


class Database:
    """Owns the DuckDB connection shared by all repositories.

    Each repository operation runs on its own cursor, which makes a single
    ``Database`` safe to share between threads. Writes additionally hold
    ``write_lock`` so that writers in one process never race on a key.
    """

    def __init__(self, path: Path | str, create_dirs: bool = True):
        """Open (and if needed create) the database.

        Args:
            path: Database file path, or ":memory:"
            create_dirs: Create the parent directory of a file database

        Raises:
            PersistenceError: If the database cannot be opened
        """
        self.path = str(path)
        self.write_lock = threading.RLock()
        if self.path != ":memory:" and create_dirs:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        try:
            self._conn = duckdb.connect(self.path)  # type: ignore[misc]
        except duckdb.Error as e:
            raise PersistenceError(f"Cannot open database {self.path}: {e}") from e

        self.initialize_schema()
        logger.debug(f"Connected to DuckDB database: {self.path}")

    def initialize_schema(self) -> None:
        """Create tables that do not exist yet."""
        try:
            with self.cursor() as cur:
                for ddl in SCHEMA.values():
                    cur.execute(ddl)
        except duckdb.Error as e:
            raise PersistenceError(f"Schema initialization failed: {e}") from e

    def cursor(self) -> duckdb.DuckDBPyConnection:
        """Return a new cursor on the shared connection."""
        return self._conn.cursor()

    def table_counts(self) -> dict[str, int]:
        """Return the row count of every finlink table."""
        counts: dict[str, int] = {}
        with self.cursor() as cur:
            for table_name in SCHEMA:
                result = cur.execute(f"SELECT COUNT(*) FROM {table_name}").fetchone()  # noqa: S608  # table names are module constants
                counts[table_name] = int(result[0]) if result else 0
        return counts

    def close(self) -> None:
        """Close the underlying connection."""
        self._conn.close()

    def __enter__(self) -> "Database":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
