"""
Cycle management
State machine for receipt books:

    inactive <-> ready -> assigned -> returned -> ready (new cycle)
                             |            |
                             +-> posted <-+
                                   |
                                   +-> ready (new cycle, pages left)
"""

import logging
from datetime import date
from typing import Iterable, List, Optional

from receipt_books.exceptions import (
    BookExhausted,
    BookInUse,
    ValidationError,
)
from receipt_books.models.book import BookStatus, ReceiptBook
from receipt_books.models.entry import CollectionEntry, PostedEntry
from receipt_books.models.results import EntrySheet, PostingSession, TransitionReport
from receipt_books.store.book_store import BookStore


logger = logging.getLogger(__name__)

# Statuses in which receipts may be entered and posted for the current cycle
ENTRY_STATUSES = (BookStatus.ASSIGNED, BookStatus.RETURNED, BookStatus.POSTED)

_UNSET = object()


class CycleManager:
    """
    Drives receipt books through their lifecycle

    Every mutation happens under the book's store lock on a copy of the
    book, which is written back only once all checks have passed.
    """

    def __init__(self, store: BookStore) -> None:
        self._store = store

    # ============ Batch transitions ============

    def mark_ready(self, book_ids: Iterable[str]) -> TransitionReport:
        """Inactive -> ready; books in any other status are skipped"""
        return self._transition_many(book_ids, BookStatus.INACTIVE, BookStatus.READY)

    def mark_inactive(self, book_ids: Iterable[str]) -> TransitionReport:
        """Ready -> inactive; books in any other status are skipped"""
        return self._transition_many(book_ids, BookStatus.READY, BookStatus.INACTIVE)

    def assign(
        self,
        book_ids: Iterable[str],
        staff_name: str,
        route_name: Optional[str] = None,
        assigned_on: Optional[date] = None,
    ) -> TransitionReport:
        """
        Issue ready books to a staff member

        Raises:
            ValidationError: If staff_name is blank
        """
        if not staff_name or not staff_name.strip():
            raise ValidationError("Staff name is required to assign books", field="staff_name")

        def issue(book: ReceiptBook) -> None:
            book.status = BookStatus.ASSIGNED
            book.assigned_to = staff_name.strip()
            book.route_name = route_name
            book.assigned_date = assigned_on or date.today()
            book.returned_date = None

        report = self._apply_many(book_ids, BookStatus.READY, issue)
        logger.info(
            f"Assigned {report.count} books to {staff_name.strip()}"
            + (f", skipped {len(report.skipped)}" if report.skipped else "")
        )
        return report

    # ============ Single-book transitions ============

    def return_book(self, book_id: str, returned_on: Optional[date] = None) -> ReceiptBook:
        """
        Assigned -> returned

        Raises:
            ValidationError: If the book is not assigned
        """
        with self._store.lock(book_id):
            book = self._store.get(book_id)
            self._require_status(book, BookStatus.ASSIGNED, "return")
            book.status = BookStatus.RETURNED
            book.returned_date = returned_on or date.today()
            self._store.save_book(book)
        logger.info(f"Book #{book.book_number} returned by {book.assigned_to}")
        return book

    def return_to_stock(self, book_id: str) -> ReceiptBook:
        """
        Returned -> ready, starting a new cycle

        Raises:
            ValidationError: If the book is not returned
            BookExhausted: If no pages remain
        """
        with self._store.lock(book_id):
            book = self._store.get(book_id)
            self._require_status(book, BookStatus.RETURNED, "put back in stock")
            if book.is_exhausted:
                raise BookExhausted(book_id)
            book.start_new_cycle()
            self._store.save_book(book)
        logger.info(f"Book #{book.book_number} back in stock for cycle {book.current_cycle}")
        return book

    def reready(self, book_id: str) -> ReceiptBook:
        """
        Posted -> ready for a new cycle when unused pages remain

        Raises:
            ValidationError: If the book is not posted
            BookExhausted: If available_from is past the last page
        """
        with self._store.lock(book_id):
            book = self._store.get(book_id)
            self._require_status(book, BookStatus.POSTED, "re-ready")
            if book.is_exhausted:
                raise BookExhausted(book_id)
            book.start_new_cycle()
            self._store.save_book(book)
        logger.info(
            f"Book #{book.book_number} re-readied for cycle {book.current_cycle} "
            f"from page {book.available_from} ({book.remaining_pages} left)"
        )
        return book

    def complete_cycle(self, book_id: str, session: PostingSession) -> ReceiptBook:
        """
        Record a finished submission against the book

        Failed attempts consume their pages too, so available_from moves
        past the highest attempted receipt number. It never moves back.
        """
        with self._store.lock(book_id):
            book = self._store.get(book_id)
            attempted = session.attempted_receipt_numbers
            if attempted:
                next_page = min(max(attempted) + 1, book.page_end + 1)
                book.available_from = max(book.available_from, next_page)

            latest = self._store.latest_attempts(book_id, book.current_cycle).values()
            book.current_cycle_entries = len(latest)
            book.current_cycle_success = sum(1 for p in latest if p.success)
            book.current_cycle_total = round(
                sum(p.total for p in latest if p.success), 2
            )
            book.status = BookStatus.POSTED
            self._store.save_book(book)

        logger.info(
            f"Book #{book.book_number} cycle {book.current_cycle} posted: "
            f"{session.success_count}/{session.total_count} succeeded, "
            f"next page {book.available_from}"
        )
        return book

    def open_for_entry(self, book_id: str) -> EntrySheet:
        """
        Build the editing context for the book's current cycle

        Without a locked summary the sheet asks for one first. With a
        locked summary, failed rows from earlier attempts come back
        pre-filled, followed by one blank row at the next free page.

        Raises:
            ValidationError: If the book is not out with staff or posted
        """
        book = self._store.get(book_id)
        if book.status not in ENTRY_STATUSES:
            raise ValidationError(
                f"Book #{book.book_number} is {book.status.value}; "
                "only assigned, returned or posted books take entries",
                field="status",
            )

        if book.summary is None or not book.summary.locked:
            return EntrySheet(
                book_id=book.id,
                cycle=book.current_cycle,
                status=book.status,
                summary=book.summary,
                requires_summary=True,
            )

        rows: List[CollectionEntry] = [
            posting.to_entry() for posting in self.failed_entries(book_id)
        ]
        if not book.is_exhausted:
            rows.append(CollectionEntry.blank(book.available_from))

        return EntrySheet(
            book_id=book.id,
            cycle=book.current_cycle,
            status=book.status,
            summary=book.summary,
            rows=rows,
        )

    def failed_entries(self, book_id: str, cycle: Optional[int] = None) -> List[PostedEntry]:
        """Receipts whose latest attempt in the cycle failed, by receipt number"""
        if cycle is None:
            cycle = self._store.get(book_id).current_cycle
        latest = self._store.latest_attempts(book_id, cycle)
        return [latest[n] for n in sorted(latest) if not latest[n].success]

    # ============ Inventory maintenance ============

    def delete_book(self, book_id: str) -> None:
        """
        Remove an unused book

        Raises:
            BookInUse: If the book was issued or has any posted entries
        """
        with self._store.lock(book_id):
            book = self._store.get(book_id)
            if book.status not in (BookStatus.INACTIVE, BookStatus.READY):
                raise BookInUse(book_id, f"status is {book.status.value}")
            if self._store.has_postings(book_id):
                raise BookInUse(book_id, "entries have been posted against it")
            self._store.delete_book(book_id)
        logger.info(f"Deleted book #{book.book_number}")

    def update_book(
        self,
        book_id: str,
        label=_UNSET,
        notes=_UNSET,
        route_name=_UNSET,
    ) -> ReceiptBook:
        """
        Edit display metadata

        Raises:
            ValidationError: If no field is given
        """
        changes = {
            name: value
            for name, value in (
                ("book_label", label),
                ("notes", notes),
                ("route_name", route_name),
            )
            if value is not _UNSET
        }
        if not changes:
            raise ValidationError("Nothing to update")

        with self._store.lock(book_id):
            book = self._store.get(book_id)
            for name, value in changes.items():
                setattr(book, name, value)
            self._store.save_book(book)
        return book

    # ============ Internals ============

    def _transition_many(
        self, book_ids: Iterable[str], source: BookStatus, target: BookStatus
    ) -> TransitionReport:
        def move(book: ReceiptBook) -> None:
            book.status = target

        report = self._apply_many(book_ids, source, move)
        logger.info(
            f"Moved {report.count} books {source.value} -> {target.value}"
            + (f", skipped {len(report.skipped)}" if report.skipped else "")
        )
        return report

    def _apply_many(self, book_ids: Iterable[str], source: BookStatus, change) -> TransitionReport:
        ids = list(dict.fromkeys(book_ids))
        if not ids:
            raise ValidationError("No book ids provided", field="book_ids")
        # unknown ids fail the whole call before anything changes
        for book_id in ids:
            self._store.get(book_id)

        report = TransitionReport()
        for book_id in ids:
            with self._store.lock(book_id):
                book = self._store.get(book_id)
                if book.status != source:
                    report.skipped.append(book_id)
                    continue
                change(book)
                self._store.save_book(book)
                report.updated.append(book_id)
        return report

    @staticmethod
    def _require_status(book: ReceiptBook, status: BookStatus, action: str) -> None:
        if book.status != status:
            raise ValidationError(
                f"Cannot {action} book #{book.book_number}: "
                f"status is {book.status.value}, expected {status.value}",
                field="status",
            )
