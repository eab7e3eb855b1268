"""
Collection engine
Single entry point wiring the store, services and ledger client together
"""

import logging
from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional, Union

from receipt_books.client.ledger_client import HttpLedgerClient, LedgerClient
from receipt_books.config.config_loader import ConfigLoader
from receipt_books.config.engine_config import EngineConfig
from receipt_books.exceptions import ConfigError
from receipt_books.models.book import BookStatus, CycleSummary, NumberingMode, ReceiptBook
from receipt_books.models.entry import CollectionEntry
from receipt_books.models.results import (
    BookEntries,
    BookInventory,
    BulkAllocation,
    CycleHistory,
    EntrySheet,
    PostingSession,
    ReconciliationResult,
    TransitionReport,
)
from receipt_books.services.allocator import BookAllocator
from receipt_books.services.cycle_manager import CycleManager
from receipt_books.services.posting import Notifier, PostingCoordinator
from receipt_books.services.summary import AMOUNT_FIELDS, SummaryReconciler
from receipt_books.services.validator import EntryValidator
from receipt_books.store.book_store import BookStore


logger = logging.getLogger(__name__)


class CollectionEngine:
    """
    Receipt-book lifecycle and collection posting

    Example:
        >>> engine = CollectionEngine.from_config(config={"store_path": "./books.json"})
        >>> batch = engine.allocate_bulk(1, 200, pages_per_book=50)
        >>> engine.assign([batch.created_books[0].id], "Hari")
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        ledger: Optional[LedgerClient] = None,
        store: Optional[BookStore] = None,
        notifier: Optional[Notifier] = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.store = store or BookStore(self.config.store_path)

        if ledger is None and self.config.has_ledger:
            ledger = HttpLedgerClient(self.config)
        self._ledger = ledger

        self.validator = EntryValidator()
        self.allocator = BookAllocator(self.store, self.config)
        self.cycles = CycleManager(self.store)
        self.summaries = SummaryReconciler(self.store, self.validator)
        self.poster = (
            PostingCoordinator(
                self.store,
                ledger,
                self.cycles,
                self.validator,
                config=self.config,
                notifier=notifier,
            )
            if ledger is not None
            else None
        )

    @classmethod
    def from_config(
        cls,
        file: Optional[str] = None,
        env: bool = True,
        config: Optional[dict] = None,
        **kwargs,
    ) -> "CollectionEngine":
        """Build an engine from file, environment and programmatic settings"""
        return cls(ConfigLoader().load(file=file, env=env, config=config), **kwargs)

    # ============ Allocation ============

    def allocate_bulk(
        self,
        range_start: int,
        range_end: int,
        pages_per_book: Optional[int] = None,
        numbering_mode: Union[NumberingMode, str] = NumberingMode.SEQUENTIAL,
        batch_label: Optional[str] = None,
        start_book_number: Optional[int] = None,
        restart_every: Optional[int] = None,
        activate: Optional[bool] = None,
    ) -> BulkAllocation:
        return self.allocator.create_bulk(
            range_start,
            range_end,
            pages_per_book,
            numbering_mode,
            batch_label=batch_label,
            start_book_number=start_book_number,
            restart_every=restart_every,
            activate=activate,
        )

    def allocate_single(
        self,
        page_start: int,
        page_end: int,
        label: Optional[str] = None,
        activate: Optional[bool] = None,
    ) -> ReceiptBook:
        return self.allocator.create_single(page_start, page_end, label, activate)

    # ============ Lifecycle ============

    def mark_ready(self, book_ids: Iterable[str]) -> TransitionReport:
        return self.cycles.mark_ready(book_ids)

    def mark_inactive(self, book_ids: Iterable[str]) -> TransitionReport:
        return self.cycles.mark_inactive(book_ids)

    def assign(
        self,
        book_ids: Iterable[str],
        staff_name: str,
        route_name: Optional[str] = None,
    ) -> TransitionReport:
        return self.cycles.assign(book_ids, staff_name, route_name)

    def return_book(self, book_id: str) -> ReceiptBook:
        return self.cycles.return_book(book_id)

    def return_to_stock(self, book_id: str) -> ReceiptBook:
        return self.cycles.return_to_stock(book_id)

    def reready(self, book_id: str) -> ReceiptBook:
        return self.cycles.reready(book_id)

    def delete_book(self, book_id: str) -> None:
        self.cycles.delete_book(book_id)

    def update_book(self, book_id: str, **changes) -> ReceiptBook:
        return self.cycles.update_book(book_id, **changes)

    def open_for_entry(self, book_id: str) -> EntrySheet:
        return self.cycles.open_for_entry(book_id)

    # ============ Summary ============

    def save_summary(
        self,
        book_id: str,
        entry_count: int,
        cash: float = 0.0,
        fonepay: float = 0.0,
        cheque: float = 0.0,
        bank_deposit: float = 0.0,
        discount: float = 0.0,
    ) -> EntrySheet:
        return self.summaries.save_summary(
            book_id, entry_count, cash, fonepay, cheque, bank_deposit, discount
        )

    def unlock_summary(self, book_id: str) -> CycleSummary:
        return self.summaries.unlock(book_id)

    def compare(
        self, book_id: str, entries: Iterable[CollectionEntry]
    ) -> ReconciliationResult:
        return self.summaries.compare(book_id, entries)

    def reconcile_posted(self, book_id: str) -> ReconciliationResult:
        return self.summaries.reconcile_posted(book_id)

    # ============ Posting ============

    def submit(
        self,
        book_id: str,
        entry_date: Optional[date],
        staff_name: Optional[str],
        entries: Iterable[CollectionEntry],
    ) -> PostingSession:
        """
        Post entries for a book cycle

        Raises:
            ConfigError: If no ledger client is configured
        """
        if self.poster is None:
            raise ConfigError(
                "No ledger configured; set ledger_base_url or pass a ledger client",
                code="CONFIG_NO_LEDGER",
            )
        return self.poster.submit(book_id, entry_date, staff_name, entries)

    # ============ Queries ============

    def get_book(self, book_id: str) -> ReceiptBook:
        return self.store.get(book_id)

    def list_books(
        self,
        status: Optional[Union[BookStatus, str]] = None,
        assigned_to: Optional[str] = None,
    ) -> List[ReceiptBook]:
        if isinstance(status, str):
            status = None if status == "all" else BookStatus(status)
        return self.store.list_books(status=status, assigned_to=assigned_to)

    def inventory(self) -> BookInventory:
        """Current books grouped for display"""
        groups: Dict[str, List[ReceiptBook]] = defaultdict(list)
        for book in self.store.list_books():
            key = "in_field" if book.in_field else book.status.value
            groups[key].append(book)
        return BookInventory(
            inactive=groups["inactive"],
            ready=groups["ready"],
            in_field=groups["in_field"],
            posted=groups["posted"],
            counts=self.store.count_by_status(),
        )

    def book_entries(self, book_id: str, cycle: Optional[int] = None) -> BookEntries:
        book = self.store.get(book_id)
        cycle = book.current_cycle if cycle is None else cycle
        entries = sorted(
            self.store.postings(book_id, cycle),
            key=lambda p: (p.receipt_number, p.attempt),
        )
        return BookEntries(
            book=book,
            cycle=cycle,
            entries=entries,
            posted=[p for p in entries if p.success],
            failed=[p for p in entries if not p.success],
        )

    def cycle_history(self, book_id: str) -> List[CycleHistory]:
        self.store.get(book_id)
        by_cycle: Dict[int, list] = defaultdict(list)
        for posting in self.store.postings(book_id):
            by_cycle[posting.cycle].append(posting)

        history = []
        for cycle in sorted(by_cycle):
            postings = by_cycle[cycle]
            sums = {
                name: round(sum(getattr(p.amounts, name) for p in postings), 2)
                for name in AMOUNT_FIELDS if name != "total"
            }
            history.append(CycleHistory(
                cycle=cycle,
                entry_count=len(postings),
                success_count=sum(1 for p in postings if p.success),
                total=round(sum(p.total for p in postings), 2),
                first_date=min(p.entry_date for p in postings),
                last_date=max(p.entry_date for p in postings),
                first_receipt=min(p.receipt_number for p in postings),
                last_receipt=max(p.receipt_number for p in postings),
                staff_name=postings[-1].staff_name,
                **sums,
            ))
        return history

    def close(self) -> None:
        close = getattr(self._ledger, "close", None)
        if callable(close):
            close()

    def __enter__(self) -> "CollectionEngine":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
