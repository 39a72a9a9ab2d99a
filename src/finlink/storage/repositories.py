"""Repositories over the DuckDB store.

One repository per entity, all sharing a generic upsert-by-natural-key
implementation. Upserts never touch the key or ``created_at`` of an existing
row, so re-saving an unchanged record is a no-op in effect.
"""

import json
import logging
import random
import time
from collections.abc import Sequence
from typing import Any, ClassVar, Generic, TypeVar

import duckdb

from ..exceptions import PersistenceError
from ..models import (
    AccountRecord,
    ConnectionRecord,
    CreditCardBillRecord,
    IdentityRecord,
    InvestmentRecord,
    InvestmentTransactionRecord,
    LoanRecord,
    RecordModel,
    TransactionRecord,
)
from .database import Database

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=RecordModel)

# Attempts for a batch that loses an optimistic-concurrency race
_MAX_CONFLICT_ATTEMPTS = 8
_CONFLICT_BASE_DELAY = 0.02
_CONFLICT_MAX_DELAY = 1.0


def _is_write_conflict(error: duckdb.Error) -> bool:
    """Tell a lost race between writers apart from a rejected row.

    DuckDB reports a concurrent insert of the same key as a duplicate-key
    constraint error even under ``ON CONFLICT``; any other constraint error
    is a real problem with the data.
    """
    if isinstance(error, duckdb.TransactionException):
        return True
    return "Duplicate key" in str(error)


def _conflict_backoff(attempt: int) -> float:
    delay = min(_CONFLICT_BASE_DELAY * (2**attempt), _CONFLICT_MAX_DELAY)
    return delay * (0.5 + random.random())  # noqa: S311


def _quote(identifier: str) -> str:
    return f'"{identifier}"'


def _rollback(cur: duckdb.DuckDBPyConnection) -> None:
    try:
        cur.rollback()
    except duckdb.TransactionException:
        # A failed commit has already ended the transaction
        pass


def _encode_json(value: Any) -> str | None:
    """Serialize a nested payload into canonical JSON text."""
    if value is None:
        return None
    return json.dumps(value, sort_keys=True, ensure_ascii=False)


class Repository(Generic[RecordT]):
    """Generic upsert/read access to one table.

    Subclasses declare the table, its natural key, its parent column, the
    record model and which columns hold nested JSON payloads.
    """

    table: ClassVar[str]
    key_column: ClassVar[str]
    parent_column: ClassVar[str | None] = None
    model: type[RecordT]
    json_columns: ClassVar[frozenset[str]] = frozenset()
    order_by: ClassVar[str | None] = None

    def __init__(self, database: Database):
        self.database = database
        self.columns = [
            name for name in self.model.model_fields if name != "created_at"
        ]

    # Encoding

    def _to_row(self, record: RecordT) -> list[Any]:
        data = record.model_dump(mode="json", exclude={"created_at"})
        return [
            _encode_json(data[column])
            if column in self.json_columns
            else data[column]
            for column in self.columns
        ]

    def _from_row(self, columns: list[str], row: tuple[Any, ...]) -> RecordT:
        data = dict(zip(columns, row, strict=True))
        for column in self.json_columns:
            if data.get(column) is not None:
                data[column] = json.loads(data[column])
        return self.model.model_validate(data)

    def _select_sql(self, where: str) -> str:
        column_list = ", ".join(_quote(column) for column in self.columns)
        sql = (
            f"SELECT {column_list}, CAST(created_at AS VARCHAR) AS created_at "  # noqa: S608  # identifiers are class constants
            f"FROM {self.table} WHERE {where}"
        )
        order = self.order_by or _quote(self.key_column)
        return f"{sql} ORDER BY {order}"

    def _upsert_sql(self) -> str:
        column_list = ", ".join(_quote(column) for column in self.columns)
        placeholders = ", ".join("?" for _ in self.columns)
        assignments = ", ".join(
            f"{_quote(column)} = excluded.{_quote(column)}"
            for column in self.columns
            if column != self.key_column
        )
        return (
            f"INSERT INTO {self.table} ({column_list}) VALUES ({placeholders}) "  # noqa: S608  # identifiers are class constants
            f"ON CONFLICT ({self.key_column}) DO UPDATE SET {assignments}"
        )

    # Operations

    def upsert_many(self, records: Sequence[RecordT]) -> list[RecordT]:
        """Insert or update records by natural key and return the saved rows.

        Duplicate keys within one batch collapse to the last occurrence.

        Args:
            records: Records to save

        Returns:
            list[RecordT]: Saved rows as read back from the store, in key order

        Raises:
            PersistenceError: If the store rejects the batch
        """
        if not records:
            return []

        batch: dict[str, RecordT] = {}
        for record in records:
            batch[getattr(record, self.key_column)] = record

        rows = [self._to_row(record) for record in batch.values()]
        sql = self._upsert_sql()

        with self.database.write_lock:
            for attempt in range(1, _MAX_CONFLICT_ATTEMPTS + 1):
                cur = self.database.cursor()
                try:
                    cur.begin()
                    cur.executemany(sql, rows)
                    cur.commit()
                    break
                except (duckdb.TransactionException, duckdb.ConstraintException) as e:
                    _rollback(cur)
                    if not _is_write_conflict(e):
                        raise PersistenceError(
                            f"Upsert of {len(rows)} rows into {self.table} failed: {e}"
                        ) from e
                    if attempt == _MAX_CONFLICT_ATTEMPTS:
                        raise PersistenceError(
                            f"Upsert into {self.table} kept conflicting: {e}"
                        ) from e
                    delay = _conflict_backoff(attempt)
                    logger.debug(
                        f"Write conflict on {self.table}, retrying in {delay:.2f}s "
                        f"({attempt}/{_MAX_CONFLICT_ATTEMPTS})"
                    )
                    time.sleep(delay)
                except duckdb.Error as e:
                    _rollback(cur)
                    raise PersistenceError(
                        f"Upsert of {len(rows)} rows into {self.table} failed: {e}"
                    ) from e
                finally:
                    cur.close()

        logger.debug(f"Upserted {len(rows)} rows into {self.table}")
        return self.get_many(list(batch))

    def get_many(self, keys: Sequence[str]) -> list[RecordT]:
        """Return the rows for the given natural keys that exist."""
        if not keys:
            return []
        placeholders = ", ".join("?" for _ in keys)
        return self._query(f"{self.key_column} IN ({placeholders})", list(keys))

    def get_by_id(self, key: str) -> RecordT | None:
        """Return the row with this natural key, or None when absent."""
        rows = self._query(f"{self.key_column} = ?", [key])
        return rows[0] if rows else None

    def get_by_parent_id(self, parent_id: str) -> list[RecordT]:
        """Return every row owned by ``parent_id``."""
        if self.parent_column is None:
            raise NotImplementedError(f"{self.table} has no parent column")
        return self._query(f"{self.parent_column} = ?", [parent_id])

    def count(self) -> int:
        """Return the number of rows in the table."""
        with self.database.cursor() as cur:
            result = cur.execute(f"SELECT COUNT(*) FROM {self.table}").fetchone()  # noqa: S608
        return int(result[0]) if result else 0

    def _query(self, where: str, params: list[Any]) -> list[RecordT]:
        sql = self._select_sql(where)
        try:
            with self.database.cursor() as cur:
                result = cur.execute(sql, params)
                columns = [description[0] for description in result.description]
                rows = result.fetchall()
        except duckdb.Error as e:
            raise PersistenceError(f"Query on {self.table} failed: {e}") from e
        return [self._from_row(columns, row) for row in rows]


class ConnectionRepository(Repository[ConnectionRecord]):
    """Connections (provider items)."""

    table = "connections"
    key_column = "item_id"
    model = ConnectionRecord
    json_columns = frozenset({"parameters"})

    def upsert(self, record: ConnectionRecord) -> ConnectionRecord:
        """Save a single connection and return the stored row."""
        return self.upsert_many([record])[0]

    def list_all(self) -> list[ConnectionRecord]:
        """Return every stored connection."""
        return self._query("TRUE", [])

    def delete(self, item_id: str) -> bool:
        """Delete a connection and every row that depends on it.

        Returns:
            bool: True if the connection existed
        """
        owned_accounts = "SELECT account_id FROM accounts WHERE item_id = ?"
        owned_investments = "SELECT investment_id FROM investments WHERE item_id = ?"
        statements = [
            f"DELETE FROM transactions WHERE account_id IN ({owned_accounts})",  # noqa: S608
            f"DELETE FROM credit_card_bills WHERE account_id IN ({owned_accounts})",  # noqa: S608
            "DELETE FROM investment_transactions WHERE investment_id IN "
            f"({owned_investments})",  # noqa: S608
            "DELETE FROM accounts WHERE item_id = ?",
            "DELETE FROM investments WHERE item_id = ?",
            "DELETE FROM loans WHERE item_id = ?",
            "DELETE FROM identities WHERE item_id = ?",
        ]

        with self.database.write_lock:
            cur = self.database.cursor()
            try:
                cur.begin()
                for statement in statements:
                    cur.execute(statement, [item_id])
                result = cur.execute(
                    "DELETE FROM connections WHERE item_id = ? RETURNING item_id",
                    [item_id],
                ).fetchall()
                cur.commit()
            except duckdb.Error as e:
                _rollback(cur)
                raise PersistenceError(
                    f"Delete of connection {item_id} failed: {e}"
                ) from e
            finally:
                cur.close()

        deleted = bool(result)
        if deleted:
            logger.info(f"Deleted connection {item_id} and its dependent rows")
        else:
            logger.debug(f"Connection {item_id} was not stored, nothing deleted")
        return deleted


class AccountRepository(Repository[AccountRecord]):
    """Accounts, owned by a connection."""

    table = "accounts"
    key_column = "account_id"
    parent_column = "item_id"
    model = AccountRecord
    json_columns = frozenset(
        {"bank_data", "credit_data", "disaggregated_credit_limits"}
    )


class TransactionRepository(Repository[TransactionRecord]):
    """Account transactions, newest first."""

    table = "transactions"
    key_column = "transaction_id"
    parent_column = "account_id"
    model = TransactionRecord
    json_columns = frozenset({"payment_data", "credit_card_metadata", "merchant"})
    order_by = '"date" DESC, transaction_id'


class CreditCardBillRepository(Repository[CreditCardBillRecord]):
    """Credit card bills, owned by a CREDIT account."""

    table = "credit_card_bills"
    key_column = "bill_id"
    parent_column = "account_id"
    model = CreditCardBillRecord
    json_columns = frozenset({"finance_charges"})
    order_by = "due_date DESC NULLS LAST, bill_id"


class InvestmentRepository(Repository[InvestmentRecord]):
    """Investment positions, owned by a connection."""

    table = "investments"
    key_column = "investment_id"
    parent_column = "item_id"
    model = InvestmentRecord
    json_columns = frozenset({"institution", "metadata"})


class InvestmentTransactionRepository(Repository[InvestmentTransactionRecord]):
    """Investment movements, owned by an investment."""

    table = "investment_transactions"
    key_column = "transaction_id"
    parent_column = "investment_id"
    model = InvestmentTransactionRecord
    json_columns = frozenset({"expenses"})
    order_by = '"date" DESC, transaction_id'


class LoanRepository(Repository[LoanRecord]):
    """Loans, owned by a connection."""

    table = "loans"
    key_column = "loan_id"
    parent_column = "item_id"
    model = LoanRecord
    json_columns = frozenset(
        {
            "interest_rates",
            "contracted_fees",
            "contracted_finance_charges",
            "warranties",
            "installments",
            "payments",
        }
    )


class IdentityRepository(Repository[IdentityRecord]):
    """Identities, one per connection."""

    table = "identities"
    key_column = "identity_id"
    parent_column = "item_id"
    model = IdentityRecord
    json_columns = frozenset({"addresses", "phone_numbers", "emails", "relations"})

    def get_by_connection_id(self, item_id: str) -> IdentityRecord | None:
        """Return the identity of a connection, or None when absent."""
        rows = self.get_by_parent_id(item_id)
        return rows[0] if rows else None


class Store:
    """All repositories over one database."""

    def __init__(self, database: Database):
        self.database = database
        self.connections = ConnectionRepository(database)
        self.accounts = AccountRepository(database)
        self.transactions = TransactionRepository(database)
        self.credit_card_bills = CreditCardBillRepository(database)
        self.investments = InvestmentRepository(database)
        self.investment_transactions = InvestmentTransactionRepository(database)
        self.loans = LoanRepository(database)
        self.identities = IdentityRepository(database)
