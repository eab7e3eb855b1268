"""
Collection engine unit tests
"""

from datetime import date

import pytest

from receipt_books import (
    BookStatus,
    CollectionEngine,
    ConfigError,
    EngineConfig,
    HttpLedgerClient,
)


class TestEngineSetup:
    """Tests for engine construction"""

    def test_submit_without_ledger(self, make_entry):
        engine = CollectionEngine(EngineConfig())
        book = engine.allocate_single(1, 5)
        engine.assign([book.id], "Hari")

        assert engine.poster is None
        with pytest.raises(ConfigError) as exc_info:
            engine.submit(book.id, date(2024, 5, 1), "Hari", [make_entry(1)])
        assert exc_info.value.code == "CONFIG_NO_LEDGER"

    def test_http_ledger_from_config(self):
        engine = CollectionEngine.from_config(
            env=False, config={"ledger_base_url": "http://localhost:3001"}
        )
        assert isinstance(engine._ledger, HttpLedgerClient)
        assert engine.poster is not None
        engine.close()

    def test_books_survive_restart(self, tmp_path, ledger, make_entry):
        path = str(tmp_path / "books.json")
        with CollectionEngine(EngineConfig(store_path=path), ledger=ledger) as engine:
            book = engine.allocate_single(1, 5)
            engine.assign([book.id], "Hari")
            engine.submit(book.id, date(2024, 5, 1), "Hari", [make_entry(1)])

        reopened = CollectionEngine(EngineConfig(store_path=path), ledger=ledger)
        restored = reopened.get_book(book.id)
        assert restored.status == BookStatus.POSTED
        assert restored.available_from == 2
        assert len(reopened.book_entries(book.id).posted) == 1


class TestQueries:
    """Tests for inventory and history queries"""

    def test_inventory_groups(self, engine: CollectionEngine, issue_book, make_entry):
        engine.allocate_single(1, 10, activate=False)
        engine.allocate_single(11, 20)
        assigned = issue_book(21, 30)
        returned = issue_book(31, 40)
        engine.return_book(returned)
        posted = issue_book(41, 50)
        engine.submit(posted, date(2024, 5, 1), "Hari", [make_entry(41)])

        inventory = engine.inventory()

        assert len(inventory.inactive) == 1
        assert len(inventory.ready) == 1
        assert {b.id for b in inventory.in_field} == {assigned, returned}
        assert [b.id for b in inventory.posted] == [posted]
        assert inventory.counts["assigned"] == 1
        assert inventory.counts["returned"] == 1

    def test_list_books_filters(self, engine: CollectionEngine, issue_book):
        engine.allocate_single(1, 10)
        sita_book = issue_book(11, 20, staff="Sita")
        issue_book(21, 30, staff="Hari")

        assert len(engine.list_books("all")) == 3
        assert len(engine.list_books("assigned")) == 2
        assert [b.id for b in engine.list_books(assigned_to="SIT")] == [sita_book]
        assert engine.list_books(BookStatus.POSTED) == []

    def test_book_entries_split_by_outcome(
        self, engine: CollectionEngine, ledger, issue_book, make_entry
    ):
        ledger.fail_receipts = {2}
        book_id = issue_book(1, 10)
        engine.submit(book_id, date(2024, 5, 1), "Hari", [make_entry(2), make_entry(1)])

        entries = engine.book_entries(book_id)

        assert [p.receipt_number for p in entries.entries] == [1, 2]
        assert [p.receipt_number for p in entries.posted] == [1]
        assert [p.receipt_number for p in entries.failed] == [2]
        assert entries.failed[0].error

    def test_cycle_history(self, engine: CollectionEngine, issue_book, make_entry):
        book_id = issue_book(1, 10)
        engine.submit(book_id, date(2024, 5, 1), "Hari", [
            make_entry(1, cash=100), make_entry(2, cash=50, cheque=25),
        ])
        engine.reready(book_id)
        engine.assign([book_id], "Sita")
        engine.submit(book_id, date(2024, 6, 3), "Sita", [make_entry(3, cash=80)])

        history = engine.cycle_history(book_id)

        assert [h.cycle for h in history] == [0, 1]
        first, second = history
        assert first.entry_count == 2
        assert first.cash == 150
        assert first.cheque == 25
        assert first.total == 175
        assert (first.first_receipt, first.last_receipt) == (1, 2)
        assert second.staff_name == "Sita"
        assert second.first_date == date(2024, 6, 3)
