"""
Summary reconciliation
Locks a staff-declared cycle summary and compares it with entered receipts
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List

from receipt_books.exceptions import ValidationError
from receipt_books.models.book import BookStatus, CycleSummary, ReceiptBook
from receipt_books.models.entry import CollectionEntry
from receipt_books.models.results import EntrySheet, ReconciliationResult
from receipt_books.services.validator import EntryValidator
from receipt_books.store.book_store import BookStore


logger = logging.getLogger(__name__)

AMOUNT_FIELDS = ("cash", "fonepay", "cheque", "bank_deposit", "discount", "total")


def _sum_amounts(entries: Iterable[CollectionEntry]) -> Dict[str, float]:
    totals = {"count": 0.0}
    totals.update({name: 0.0 for name in AMOUNT_FIELDS})
    for entry in entries:
        totals["count"] += 1
        for name in AMOUNT_FIELDS:
            totals[name] += getattr(entry, name)
    return {name: round(value, 2) for name, value in totals.items()}


class SummaryReconciler:
    """
    Declared-versus-entered checks for a book cycle

    A mismatch never blocks posting; callers are expected to warn.
    """

    def __init__(self, store: BookStore, validator: EntryValidator) -> None:
        self._store = store
        self._validator = validator

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
        """
        Store and lock the expected totals for the current cycle

        Returns:
            EntrySheet whose first row is seeded at available_from

        Raises:
            ValidationError: On a non-positive count, negative amounts,
                an already locked summary or a book not out with staff
        """
        if entry_count is None or entry_count <= 0:
            raise ValidationError("Entry count must be greater than zero", field="entry_count")
        amounts = {
            "cash": cash,
            "fonepay": fonepay,
            "cheque": cheque,
            "bank_deposit": bank_deposit,
            "discount": discount,
        }
        negative = [name for name, value in amounts.items() if (value or 0) < 0]
        if negative:
            raise ValidationError(
                f"Amounts cannot be negative: {', '.join(negative)}", field=negative[0]
            )

        with self._store.lock(book_id):
            book = self._store.get(book_id)
            if not book.in_field:
                raise ValidationError(
                    f"Book #{book.book_number} is {book.status.value}; "
                    "a summary can only be entered for an assigned or returned book",
                    field="status",
                )
            if book.summary is not None and book.summary.locked:
                raise ValidationError(
                    "Summary is locked; unlock it before editing", field="summary"
                )

            book.summary = CycleSummary(
                entry_count=entry_count,
                locked=True,
                entered_at=datetime.now(timezone.utc),
                **{name: value or 0.0 for name, value in amounts.items()},
            )
            self._store.save_book(book)

        logger.info(
            f"Summary locked for book #{book.book_number} cycle {book.current_cycle}: "
            f"{entry_count} entries, total {book.summary.total:.2f}"
        )
        return self._seeded_sheet(book)

    def unlock(self, book_id: str) -> CycleSummary:
        """
        Make the summary editable again; entered rows are untouched

        Raises:
            ValidationError: If there is no summary or the cycle is posted
        """
        with self._store.lock(book_id):
            book = self._store.get(book_id)
            if book.summary is None:
                raise ValidationError("No summary to unlock", field="summary")
            if book.status == BookStatus.POSTED:
                raise ValidationError(
                    "Summary cannot be unlocked after posting", field="status"
                )
            book.summary = book.summary.model_copy(update={"locked": False})
            self._store.save_book(book)
        logger.info(f"Summary unlocked for book #{book.book_number}")
        return book.summary

    def compare(
        self, book_id: str, entered_entries: Iterable[CollectionEntry]
    ) -> ReconciliationResult:
        """
        Compare the declared summary with entered rows

        Only valid rows count. Each delta is declared minus entered.

        Raises:
            ValidationError: If the book has no summary
        """
        book = self._store.get(book_id)
        return self._reconcile(book, self._validator.valid_entries(entered_entries))

    def reconcile_posted(self, book_id: str) -> ReconciliationResult:
        """Compare the declared summary with this cycle's successful postings"""
        book = self._store.get(book_id)
        latest = self._store.latest_attempts(book_id, book.current_cycle)
        posted = [
            p.to_entry() for n, p in sorted(latest.items()) if p.success
        ]
        return self._reconcile(book, posted)

    def _reconcile(
        self, book: ReceiptBook, entries: List[CollectionEntry]
    ) -> ReconciliationResult:
        if book.summary is None:
            raise ValidationError(
                f"Book #{book.book_number} has no summary for cycle {book.current_cycle}",
                field="summary",
            )

        summary = book.summary
        declared = {"count": float(summary.entry_count)}
        declared.update({name: round(getattr(summary, name), 2) for name in AMOUNT_FIELDS})
        entered = _sum_amounts(entries)
        delta = {name: round(declared[name] - entered[name], 2) for name in declared}

        return ReconciliationResult(
            entries_match=delta["count"] == 0,
            totals_match=all(delta[name] == 0 for name in AMOUNT_FIELDS),
            per_field_delta=delta,
            declared=declared,
            entered=entered,
        )

    @staticmethod
    def _seeded_sheet(book: ReceiptBook) -> EntrySheet:
        rows = [] if book.is_exhausted else [CollectionEntry.blank(book.available_from)]
        return EntrySheet(
            book_id=book.id,
            cycle=book.current_cycle,
            status=book.status,
            summary=book.summary,
            rows=rows,
        )
