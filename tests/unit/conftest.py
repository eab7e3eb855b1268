"""
Shared fixtures for unit tests
"""

import threading
import time
from typing import Dict, List, Optional

import pytest

from receipt_books import (
    CollectionEngine,
    CollectionEntry,
    EngineConfig,
    LedgerResult,
)


class FakeLedger:
    """In-memory ledger that fails or raises for chosen receipt numbers"""

    def __init__(
        self,
        fail_receipts=(),
        raise_receipts=(),
        delay_receipts: Optional[Dict[int, float]] = None,
    ) -> None:
        self.fail_receipts = set(fail_receipts)
        self.raise_receipts = set(raise_receipts)
        self.delay_receipts = delay_receipts or {}
        self.calls: List[dict] = []
        self._lock = threading.Lock()

    def create_receipt_record(
        self,
        party_name,
        entry_date,
        amounts,
        narration=None,
        voucher_number=None,
    ) -> LedgerResult:
        number = int(voucher_number)
        with self._lock:
            self.calls.append({
                "party_name": party_name,
                "entry_date": entry_date,
                "amounts": amounts,
                "narration": narration,
                "receipt_number": number,
            })
        if number in self.delay_receipts:
            time.sleep(self.delay_receipts[number])
        if number in self.raise_receipts:
            raise RuntimeError("ledger offline")
        if number in self.fail_receipts:
            return LedgerResult.failed(f"Ledger rejected receipt {number}")
        return LedgerResult.ok(f"V-{number}")

    @property
    def called_receipts(self) -> List[int]:
        return sorted(call["receipt_number"] for call in self.calls)


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def engine(ledger: FakeLedger) -> CollectionEngine:
    return CollectionEngine(EngineConfig(), ledger=ledger)


@pytest.fixture
def make_entry():
    def _make(number, party="Ram Traders", cash=100.0, **amounts) -> CollectionEntry:
        return CollectionEntry(
            receipt_number=number, party_name=party, cash=cash, **amounts
        )
    return _make


@pytest.fixture
def issue_book(engine: CollectionEngine):
    """Create a book over the given pages and assign it to a collector"""
    def _issue(page_start=1, page_end=5, staff="Hari") -> str:
        book = engine.allocate_single(page_start, page_end)
        engine.assign([book.id], staff)
        return book.id
    return _issue
