#!/usr/bin/env python3
"""Integration tests for the SQLite fact store."""

import sqlite3

import pytest

from settlements.core.errors import ConflictError
from settlements.core.models import FactKind
from settlements.core.money import Money
from settlements.store import FactStore
from settlements.store.fact_store import SCHEMA

V = FactKind.VIRTUAL_CREDIT
R = FactKind.RELEASE_TO_BANK
U = FactKind.UNKNOWN


@pytest.fixture
def store(tmp_path):
    return FactStore(tmp_path / "facts.db")


@pytest.mark.store
@pytest.mark.integration
class TestInsertAndQuery:
    """Inserts, conflicts and range queries."""

    def test_insert_assigns_id_and_round_trips(self, store, make_fact, utc):
        """An inserted fact reads back unchanged with its new id."""
        fact = make_fact(V, utc(2024, 4, 1, 6), "12500.75", transaction_ref="ICIC00112233445")
        fact.virtual_code = "MEGA1234"
        fact.raw_subject = "Payment Received in virtual account"

        stored = store.insert(fact)
        loaded = store.get(stored.id)

        assert stored.id is not None
        assert loaded.external_id == fact.external_id
        assert loaded.received_at == utc(2024, 4, 1, 6)
        assert loaded.kind == V
        assert loaded.virtual_amount == Money.from_paise(1250075)
        assert loaded.bank_credit is None
        assert loaded.virtual_code == "MEGA1234"
        assert loaded.raw_subject == "Payment Received in virtual account"

    def test_duplicate_external_id_conflicts(self, store, make_fact, utc):
        """A second fact for the same message raises ConflictError."""
        store.insert(make_fact(V, utc(2024, 4, 1, 6), 1000, external_id="<same>"))
        with pytest.raises(ConflictError) as exc_info:
            store.insert(make_fact(R, utc(2024, 4, 2, 6), 900, external_id="<same>"))
        assert exc_info.value.external_id == "<same>"
        assert store.item_count() == 1

    def test_query_orders_by_receipt_then_insertion(self, store, make_fact, utc):
        """Queries return receipt order, ties in insertion order."""
        store.insert(make_fact(R, utc(2024, 4, 3, 6), 900, external_id="<late>"))
        store.insert(make_fact(V, utc(2024, 4, 1, 6), 1000, external_id="<tie-1>"))
        store.insert(make_fact(V, utc(2024, 4, 1, 6), 2000, external_id="<tie-2>"))

        assert [f.external_id for f in store.query()] == ["<tie-1>", "<tie-2>", "<late>"]

    def test_query_bounds_are_inclusive(self, store, make_fact, utc):
        """Both range bounds are inclusive."""
        for day in (1, 2, 3):
            store.insert(make_fact(V, utc(2024, 4, day, 6), 1000, external_id=f"<d{day}>"))

        found = store.query(utc(2024, 4, 2, 6), utc(2024, 4, 3, 6))
        assert [f.external_id for f in found] == ["<d2>", "<d3>"]
        assert [f.external_id for f in store.query(end=utc(2024, 4, 1, 6))] == ["<d1>"]

    def test_get_missing(self, store):
        """An unknown id returns None."""
        assert store.get(42) is None


@pytest.mark.store
@pytest.mark.integration
class TestUpdate:
    """In-place updates by the maintenance pass."""

    def test_update_whitelisted_fields(self, store, make_fact, utc):
        """Maintenance fields are updated in place."""
        stored = store.insert(make_fact(U, utc(2024, 4, 1, 6)))

        assert store.update(stored.id, {"kind": R, "bank_credit": Money.from_rupees("950"), "transaction_ref": "RLS123456"})

        loaded = store.get(stored.id)
        assert loaded.kind == R
        assert loaded.bank_credit == Money.from_rupees("950")
        assert loaded.transaction_ref == "RLS123456"
        assert loaded.external_id == stored.external_id

    def test_update_rejects_identity_fields(self, store, make_fact, utc):
        """Identity columns cannot be updated."""
        stored = store.insert(make_fact(V, utc(2024, 4, 1, 6), 1000))
        with pytest.raises(ValueError, match="external_id"):
            store.update(stored.id, {"external_id": "<other>"})

    def test_update_missing_row(self, store):
        """Updating a missing row reports False."""
        assert store.update(99, {"transaction_ref": "ABC123456"}) is False


@pytest.mark.store
@pytest.mark.integration
class TestLookups:
    """Id lookups and incomplete-fact selection."""

    def test_existing_external_ids(self, store, make_fact, utc):
        """Only stored ids are returned."""
        store.insert(make_fact(V, utc(2024, 4, 1, 6), 1000, external_id="<a>"))
        store.insert(make_fact(V, utc(2024, 4, 1, 7), 1000, external_id="<b>"))

        assert store.existing_external_ids(["<a>", "<c>", "<a>"]) == {"<a>"}
        assert store.existing_external_ids([]) == set()

    def test_existing_external_ids_large_batch(self, store, make_fact, utc):
        """Lookups beyond the parameter limit are chunked."""
        store.insert(make_fact(V, utc(2024, 4, 1, 6), 1000, external_id="<id-0999>"))
        ids = [f"<id-{n:04d}>" for n in range(1200)]
        assert store.existing_external_ids(ids) == {"<id-0999>"}

    def test_find_incomplete(self, store, make_fact, utc):
        """Unknown, unreferenced, short-referenced and amountless facts qualify."""
        complete = make_fact(V, utc(2024, 4, 1, 6), 1000, external_id="<complete>", transaction_ref="ICIC001122")
        store.insert(complete)
        store.insert(make_fact(U, utc(2024, 4, 1, 7), external_id="<unknown>", transaction_ref="ICIC001123"))
        store.insert(make_fact(V, utc(2024, 4, 1, 8), 1000, external_id="<no-ref>"))
        store.insert(make_fact(V, utc(2024, 4, 1, 9), 1000, external_id="<short-ref>", transaction_ref="AB1"))
        store.insert(make_fact(R, utc(2024, 4, 1, 10), None, external_id="<no-amount>", transaction_ref="HDFC001122"))

        found = [f.external_id for f in store.find_incomplete(limit=10, min_reference_length=6)]
        assert found == ["<unknown>", "<no-ref>", "<short-ref>", "<no-amount>"]
        assert len(store.find_incomplete(limit=2)) == 2

    def test_find_incomplete_rotates_after_mark(self, store, make_fact, utc):
        """Facts already re-extracted move behind those never tried."""
        first = store.insert(make_fact(U, utc(2024, 4, 1, 6), external_id="<first>"))
        store.insert(make_fact(U, utc(2024, 4, 1, 7), external_id="<second>"))
        store.insert(make_fact(U, utc(2024, 4, 1, 8), external_id="<third>"))

        store.mark_reparsed([first.id])

        found = [f.external_id for f in store.find_incomplete(limit=10)]
        assert found == ["<second>", "<third>", "<first>"]

    def test_opens_store_created_without_reparse_column(self, tmp_path, make_fact, utc):
        """An older database gains the reparse column on first use."""
        db_path = tmp_path / "old.db"
        conn = sqlite3.connect(db_path)
        conn.executescript(SCHEMA.replace(",\n    reparsed_at TEXT", ""))
        conn.close()
        store = FactStore(db_path)

        stored = store.insert(make_fact(U, utc(2024, 4, 1, 6), external_id="<old>"))
        store.mark_reparsed([stored.id])

        assert [f.external_id for f in store.find_incomplete()] == ["<old>"]


@pytest.mark.store
@pytest.mark.integration
class TestStatus:
    """DataStoreMixin status reporting."""

    def test_status_before_first_use(self, tmp_path):
        """Status of a store never written."""
        store = FactStore(tmp_path / "missing.db")
        assert not store.exists()
        assert store.item_count() is None
        assert store.summary_text() == "No fact store found"

    def test_status_after_inserts(self, store, make_fact, utc):
        """Status counts facts by kind and date span."""
        store.insert(make_fact(V, utc(2024, 4, 1, 6), 1000))
        store.insert(make_fact(R, utc(2024, 4, 3, 6), 950))

        assert store.exists()
        assert store.item_count() == 2
        assert store.size_bytes() > 0
        assert store.last_modified() is not None
        assert store.summary_text() == "2 facts (release_to_bank: 1, virtual_credit: 1) from 2024-04-01 to 2024-04-03"

    def test_default_path_from_config(self, tmp_path):
        """Without a path the configured database is used."""
        assert FactStore().db_path == tmp_path / "data" / "settlements.db"
