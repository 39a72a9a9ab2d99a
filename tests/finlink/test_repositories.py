"""Tests for the DuckDB store and its repositories."""

from concurrent.futures import ThreadPoolExecutor
from typing import Any

import duckdb
import pytest

from finlink.models import (
    AccountRecord,
    ConnectionRecord,
    CreditCardBillRecord,
    IdentityRecord,
    InvestmentRecord,
    InvestmentTransactionRecord,
    LoanRecord,
    PhoneNumber,
    TransactionRecord,
)
from finlink.storage.database import SCHEMA, Database
from finlink.storage.repositories import Store, _conflict_backoff, _is_write_conflict


def _account(account_id: str = "a1", item_id: str = "conn-1", **overrides: Any) -> AccountRecord:
    data: dict[str, Any] = {
        "item_id": item_id,
        "account_id": account_id,
        "type": "BANK",
        "name": f"Account {account_id}",
        "balance": 100.5,
        "currency_code": "BRL",
    }
    data.update(overrides)
    return AccountRecord(**data)


def _transaction(
    transaction_id: str, account_id: str = "a1", **overrides: Any
) -> TransactionRecord:
    data: dict[str, Any] = {
        "account_id": account_id,
        "transaction_id": transaction_id,
        "date": "2024-03-01T12:00:00.000Z",
        "description": "Coffee",
        "amount": -12.0,
        "type": "DEBIT",
    }
    data.update(overrides)
    return TransactionRecord(**data)


def _raw_rows(database: Database, table: str) -> list[tuple[Any, ...]]:
    with database.cursor() as cur:
        return cur.execute(f"SELECT * FROM {table} ORDER BY 1").fetchall()  # noqa: S608


class TestDatabase:
    """Tests for the Database wrapper."""

    @pytest.mark.unit
    def test_creates_every_table(self, database: Database) -> None:
        assert database.table_counts() == {table: 0 for table in SCHEMA}

    @pytest.mark.unit
    def test_schema_initialization_is_repeatable(self, database: Database) -> None:
        database.initialize_schema()
        assert set(database.table_counts()) == set(SCHEMA)

    @pytest.mark.unit
    def test_creates_parent_directories(self, tmp_path: Any) -> None:
        path = tmp_path / "nested" / "dir" / "finlink.duckdb"
        with Database(path) as db:
            assert db.table_counts()["connections"] == 0
        assert path.exists()

    @pytest.mark.unit
    def test_in_memory_database(self) -> None:
        with Database(":memory:") as db:
            assert db.table_counts()["accounts"] == 0


class TestUpsert:
    """Tests for upsert-by-natural-key semantics."""

    @pytest.mark.unit
    def test_upsert_returns_saved_rows(self, store: Store) -> None:
        saved = store.accounts.upsert_many([_account("a2"), _account("a1")])

        assert [a.account_id for a in saved] == ["a1", "a2"]
        assert all(a.created_at is not None for a in saved)
        assert saved[0].balance == 100.5

    @pytest.mark.unit
    def test_empty_batch_is_a_no_op(self, store: Store) -> None:
        assert store.accounts.upsert_many([]) == []
        assert store.accounts.count() == 0

    @pytest.mark.unit
    def test_resaving_unchanged_record_leaves_row_identical(
        self, store: Store, database: Database
    ) -> None:
        record = _account(
            "c1",
            type="CREDIT",
            credit_data={"brand": "VISA", "limits": {"total": 5000, "available": 1200}},
        )
        store.accounts.upsert_many([record])
        before = _raw_rows(database, "accounts")

        store.accounts.upsert_many([record])
        store.accounts.upsert_many([record])

        assert _raw_rows(database, "accounts") == before
        assert store.accounts.count() == 1

    @pytest.mark.unit
    def test_update_overwrites_values_and_keeps_created_at(self, store: Store) -> None:
        first = store.accounts.upsert_many([_account("a1", balance=10.0)])[0]

        second = store.accounts.upsert_many([_account("a1", balance=-3.25)])[0]

        assert second.balance == -3.25
        assert second.created_at == first.created_at
        assert store.accounts.count() == 1

    @pytest.mark.unit
    def test_duplicate_keys_in_one_batch_keep_last(self, store: Store) -> None:
        saved = store.transactions.upsert_many(
            [
                _transaction("t1", description="first"),
                _transaction("t2"),
                _transaction("t1", description="second"),
            ]
        )

        assert len(saved) == 2
        assert store.transactions.get_by_id("t1").description == "second"  # type: ignore[union-attr]

    @pytest.mark.unit
    def test_absent_values_are_stored_as_null(self, store: Store) -> None:
        store.accounts.upsert_many([_account("a1", balance=None, currency_code=None)])

        account = store.accounts.get_by_id("a1")

        assert account is not None
        assert account.balance is None
        assert account.currency_code is None


class TestReads:
    """Tests for the read operations."""

    @pytest.mark.unit
    def test_get_by_id_returns_none_when_absent(self, store: Store) -> None:
        assert store.accounts.get_by_id("missing") is None
        assert store.connections.get_by_id("missing") is None

    @pytest.mark.unit
    def test_get_by_parent_id_filters_on_owner(self, store: Store) -> None:
        store.accounts.upsert_many(
            [_account("a1"), _account("a2"), _account("b1", item_id="conn-2")]
        )

        owned = store.accounts.get_by_parent_id("conn-1")

        assert [a.account_id for a in owned] == ["a1", "a2"]
        assert store.accounts.get_by_parent_id("conn-3") == []

    @pytest.mark.unit
    def test_transactions_are_listed_newest_first(self, store: Store) -> None:
        store.transactions.upsert_many(
            [
                _transaction("t1", date="2024-01-01T00:00:00.000Z"),
                _transaction("t2", date="2024-03-01T00:00:00.000Z"),
                _transaction("t3", date="2024-02-01T00:00:00.000Z"),
            ]
        )

        listed = store.transactions.get_by_parent_id("a1")

        assert [t.transaction_id for t in listed] == ["t2", "t3", "t1"]

    @pytest.mark.unit
    def test_get_many_skips_unknown_keys(self, store: Store) -> None:
        store.accounts.upsert_many([_account("a1")])

        assert [a.account_id for a in store.accounts.get_many(["a1", "zz"])] == ["a1"]
        assert store.accounts.get_many([]) == []

    @pytest.mark.unit
    def test_connection_has_no_parent_lookup(self, store: Store) -> None:
        with pytest.raises(NotImplementedError):
            store.connections.get_by_parent_id("anything")


class TestNestedPayloads:
    """Tests for JSON-encoded nested structures."""

    @pytest.mark.unit
    def test_transaction_payloads_round_trip(self, store: Store) -> None:
        merchant = {"name": "ACME", "businessName": "ACME LTDA", "cnpj": "00.000.000/0001-00"}
        store.transactions.upsert_many(
            [_transaction("t1", merchant=merchant, payment_data={"payer": {"name": "Jane"}})]
        )

        saved = store.transactions.get_by_id("t1")

        assert saved is not None
        assert saved.merchant == merchant
        assert saved.payment_data == {"payer": {"name": "Jane"}}
        assert saved.credit_card_metadata is None

    @pytest.mark.unit
    def test_json_text_is_canonical(self, store: Store, database: Database) -> None:
        store.accounts.upsert_many(
            [_account("c1", type="CREDIT", credit_data={"b": 1, "a": "Crédito"})]
        )

        with database.cursor() as cur:
            row = cur.execute(
                "SELECT credit_data FROM accounts WHERE account_id = 'c1'"
            ).fetchone()

        assert row == ('{"a": "Crédito", "b": 1}',)

    @pytest.mark.unit
    def test_bill_and_loan_payloads_round_trip(self, store: Store) -> None:
        store.credit_card_bills.upsert_many(
            [
                CreditCardBillRecord(
                    bill_id="b1",
                    account_id="c1",
                    total_amount=300.0,
                    finance_charges=[{"type": "IOF", "amount": 1.5}],
                )
            ]
        )
        store.loans.upsert_many(
            [
                LoanRecord(
                    loan_id="l1",
                    item_id="conn-1",
                    installments={"balances": [{"amount": 500}]},
                    warranties=[{"type": "GUARANTOR"}],
                )
            ]
        )

        bill = store.credit_card_bills.get_by_id("b1")
        loan = store.loans.get_by_id("l1")

        assert bill is not None and bill.finance_charges == [{"type": "IOF", "amount": 1.5}]
        assert loan is not None
        assert loan.installments == {"balances": [{"amount": 500}]}
        assert loan.warranties == [{"type": "GUARANTOR"}]

    @pytest.mark.unit
    def test_identity_extras_survive_storage(self, store: Store) -> None:
        identity = IdentityRecord(
            identity_id="id1",
            item_id="conn-1",
            full_name="Jane Doe",
            phone_numbers=[
                PhoneNumber.model_validate(
                    {"type": "Personal", "value": "+55 11 99999-0000", "countryCode": "55"}
                )
            ],
        )
        store.identities.upsert_many([identity])

        saved = store.identities.get_by_connection_id("conn-1")

        assert saved is not None
        assert saved.phone_numbers is not None
        assert saved.phone_numbers[0].value == "+55 11 99999-0000"
        assert saved.phone_numbers[0].model_dump()["countryCode"] == "55"
        assert store.identities.get_by_connection_id("conn-2") is None


class TestConnectionDelete:
    """Tests for connection deletion."""

    @staticmethod
    def _populate(store: Store, item_id: str, suffix: str) -> None:
        store.connections.upsert(ConnectionRecord(item_id=item_id, status="UPDATED"))
        store.accounts.upsert_many(
            [_account(f"a{suffix}", item_id=item_id), _account(f"c{suffix}", item_id=item_id, type="CREDIT")]
        )
        store.transactions.upsert_many([_transaction(f"t{suffix}", account_id=f"a{suffix}")])
        store.credit_card_bills.upsert_many(
            [CreditCardBillRecord(bill_id=f"b{suffix}", account_id=f"c{suffix}", total_amount=1.0)]
        )
        store.investments.upsert_many(
            [InvestmentRecord(investment_id=f"i{suffix}", item_id=item_id, name="Fund")]
        )
        store.investment_transactions.upsert_many(
            [
                InvestmentTransactionRecord(
                    transaction_id=f"it{suffix}",
                    investment_id=f"i{suffix}",
                    trade_date="2024-01-01",
                    date="2024-01-01",
                )
            ]
        )
        store.loans.upsert_many([LoanRecord(loan_id=f"l{suffix}", item_id=item_id)])
        store.identities.upsert_many([IdentityRecord(identity_id=f"id{suffix}", item_id=item_id)])

    @pytest.mark.unit
    def test_delete_removes_dependent_rows_only(self, store: Store, database: Database) -> None:
        self._populate(store, "conn-1", "1")
        self._populate(store, "conn-2", "2")

        assert store.connections.delete("conn-1") is True

        expected = {table: 1 for table in SCHEMA}
        expected["accounts"] = 2
        assert database.table_counts() == expected
        assert store.connections.get_by_id("conn-1") is None
        assert store.connections.get_by_id("conn-2") is not None
        assert store.transactions.get_by_id("t2") is not None

    @pytest.mark.unit
    def test_delete_of_unknown_connection_returns_false(self, store: Store) -> None:
        assert store.connections.delete("missing") is False

    @pytest.mark.unit
    def test_list_all(self, store: Store) -> None:
        store.connections.upsert(ConnectionRecord(item_id="conn-2"))
        store.connections.upsert(ConnectionRecord(item_id="conn-1"))

        assert [c.item_id for c in store.connections.list_all()] == ["conn-1", "conn-2"]


class TestConcurrentUpserts:
    """Tests for writers racing on the same keys."""

    @pytest.mark.unit
    @pytest.mark.parametrize("workers", [2, 8])
    def test_racing_writers_converge_to_one_batch(
        self, store: Store, workers: int
    ) -> None:
        keys = [f"t{n}" for n in range(50)]

        def write(worker: int) -> None:
            for _ in range(5):
                store.transactions.upsert_many(
                    [_transaction(key, amount=float(worker)) for key in keys]
                )

        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = [pool.submit(write, worker) for worker in range(workers)]
            for future in results:
                future.result()

        saved = store.transactions.get_many(keys)
        assert len(saved) == 50
        assert store.transactions.count() == 50
        # Batches are atomic, so every row carries the last writer's value
        assert len({t.amount for t in saved}) == 1

    @pytest.mark.unit
    def test_concurrent_cascade_delete_and_upsert(self, store: Store) -> None:
        store.connections.upsert(ConnectionRecord(item_id="conn-1"))
        store.accounts.upsert_many([_account("a1")])

        with ThreadPoolExecutor(max_workers=2) as pool:
            deleted = pool.submit(store.connections.delete, "conn-1")
            saved = pool.submit(store.accounts.upsert_many, [_account("a2")])
            deleted.result()
            saved.result()

        assert store.connections.get_by_id("conn-1") is None
        assert store.accounts.get_by_id("a1") is None


class TestWriteConflictHandling:
    """Tests for telling races apart from rejected rows."""

    @pytest.mark.unit
    def test_transaction_conflict_is_retryable(self) -> None:
        assert _is_write_conflict(duckdb.TransactionException("Conflict on update!"))

    @pytest.mark.unit
    def test_duplicate_key_is_retryable(self) -> None:
        error = duckdb.ConstraintException(
            'Duplicate key "transaction_id: t49" violates primary key constraint.'
        )

        assert _is_write_conflict(error)

    @pytest.mark.unit
    def test_other_constraint_errors_are_not_retried(self) -> None:
        error = duckdb.ConstraintException("NOT NULL constraint failed: accounts.name")

        assert not _is_write_conflict(error)

    @pytest.mark.unit
    def test_backoff_grows_and_is_capped(self) -> None:
        for attempt in range(1, 10):
            delay = _conflict_backoff(attempt)
            assert 0 < delay <= 1.5
        assert _conflict_backoff(1) < 0.07
