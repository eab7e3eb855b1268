"""
Collection posting
Submits a batch of receipts to the ledger, one independent call per entry
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import date, datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from receipt_books.client.ledger_client import LedgerClient, LedgerResult
from receipt_books.config.engine_config import EngineConfig
from receipt_books.exceptions import (
    DuplicateReceiptNumber,
    ExternalPostingError,
    ValidationError,
)
from receipt_books.models.book import ReceiptBook
from receipt_books.models.entry import CollectionEntry, PostedEntry
from receipt_books.models.results import PostingResult, PostingSession
from receipt_books.services.cycle_manager import ENTRY_STATUSES, CycleManager
from receipt_books.services.validator import EntryValidator
from receipt_books.store.book_store import BookStore


logger = logging.getLogger(__name__)

# Called once per posted batch, e.g. to send SMS/WhatsApp confirmations
Notifier = Callable[[PostingSession], None]


def collection_narration(
    book_number: int, receipt_number: int, staff_name: Optional[str]
) -> str:
    narration = f"Collection Post - Book #{book_number} Rcpt #{receipt_number}"
    return f"{narration} by {staff_name}" if staff_name else narration


class PostingCoordinator:
    """
    Posts validated entries for a book cycle

    A failing entry never stops the rest of the batch. Its error is
    kept on that entry's PostingResult, and the cycle is completed
    exactly once per submission whatever the mix of outcomes.
    """

    def __init__(
        self,
        store: BookStore,
        ledger: LedgerClient,
        cycle_manager: CycleManager,
        validator: EntryValidator,
        config: Optional[EngineConfig] = None,
        notifier: Optional[Notifier] = None,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._cycles = cycle_manager
        self._validator = validator
        self._config = config or EngineConfig()
        self._notifier = notifier

    def submit(
        self,
        book_id: str,
        entry_date: Optional[date],
        staff_name: Optional[str],
        entries: Iterable[CollectionEntry],
    ) -> PostingSession:
        """
        Post a batch of entries for the book's current cycle

        Args:
            book_id: Book the receipts were written in
            entry_date: Voucher date (today if omitted)
            staff_name: Collector, used in the ledger narration
            entries: Rows to post, each with a receipt number

        Returns:
            PostingSession with one result per attempted entry, in input order

        Raises:
            ValidationError: Empty batch, invalid rows, out-of-range or
                already used receipt numbers, or a book not taking entries
            DuplicateReceiptNumber: Receipt numbers repeat within the cycle
        """
        entries = list(entries)
        if not entries:
            raise ValidationError("At least one entry is required", field="entries")

        invalid = self._validator.invalid_entries(entries)
        if invalid:
            raise ValidationError(
                f"{len(invalid)} entries are missing a party name or amount",
                field="entries",
                details={"receipt_numbers": [e.receipt_number for e in invalid]},
            )

        entry_date = entry_date or date.today()
        numbers = [e.receipt_number for e in entries]

        with self._store.lock(book_id):
            book = self._store.get(book_id)
            if book.status not in ENTRY_STATUSES:
                raise ValidationError(
                    f"Book #{book.book_number} is {book.status.value} and cannot take postings",
                    field="status",
                )

            outside = self._validator.check_range(book, numbers)
            if outside:
                raise ValidationError(
                    f"Receipt numbers must be between {book.page_start} and {book.page_end}",
                    field="receipt_number",
                    details={"receipt_numbers": outside},
                )

            latest = self._store.latest_attempts(book_id, book.current_cycle)
            posted = [n for n, p in latest.items() if p.success]
            check = self._validator.check_duplicates(numbers, posted)
            if not check.ok:
                raise DuplicateReceiptNumber(check.duplicates)

            retryable = [n for n, p in latest.items() if not p.success]
            used = self._validator.check_unused(book, numbers, retryable)
            if used:
                raise ValidationError(
                    f"Pages before {book.available_from} are already used; "
                    "only failed receipts of this cycle can be re-posted",
                    field="receipt_number",
                    details={"receipt_numbers": used},
                )

            session = self._dispatch(book, entry_date, staff_name, entries)
            self._record(book, entry_date, staff_name, entries, session)
            self._cycles.complete_cycle(book_id, session)

        self._notify(session)
        return session

    def _dispatch(
        self,
        book: ReceiptBook,
        entry_date: date,
        staff_name: Optional[str],
        entries: List[CollectionEntry],
    ) -> PostingSession:
        outcomes: List[Optional[PostingResult]] = [None] * len(entries)
        workers = min(self._config.max_workers, len(entries))
        timed_out = False

        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix=f"post-book-{book.book_number}"
        ) as executor:
            futures: Dict[Future, int] = {
                executor.submit(self._post_one, book, entry_date, staff_name, entry): index
                for index, entry in enumerate(entries)
            }
            _, pending = wait(futures, timeout=self._config.batch_timeout)
            if pending:
                timed_out = True
                # queued calls are dropped, calls already in flight finish
                for future in pending:
                    future.cancel()
                wait([f for f in pending if not f.cancelled()])

            for future, index in futures.items():
                if not future.cancelled():
                    outcomes[index] = future.result()

        not_submitted = [
            entries[index].receipt_number
            for index, outcome in enumerate(outcomes)
            if outcome is None
        ]
        if timed_out:
            logger.warning(
                f"Batch timeout on book #{book.book_number}: "
                f"{len(not_submitted)} entries not submitted"
            )

        return PostingSession(
            book_id=book.id,
            cycle=book.current_cycle,
            results=[o for o in outcomes if o is not None],
            not_submitted=not_submitted,
            timed_out=timed_out,
        )

    def _post_one(
        self,
        book: ReceiptBook,
        entry_date: date,
        staff_name: Optional[str],
        entry: CollectionEntry,
    ) -> PostingResult:
        try:
            outcome = self._ledger.create_receipt_record(
                entry.party_name,
                entry_date,
                entry.amounts,
                narration=collection_narration(book.book_number, entry.receipt_number, staff_name),
                voucher_number=str(entry.receipt_number),
            )
        except Exception as e:  # any ledger failure stays with its own entry
            outcome = LedgerResult.failed(str(e) or e.__class__.__name__)

        if not outcome.success:
            error = ExternalPostingError(
                outcome.error or "Ledger call failed", entry.receipt_number
            )
            logger.warning(
                f"Receipt {entry.receipt_number} ({entry.party_name}) "
                f"failed: {error}"
            )
            return PostingResult(
                receipt_number=entry.receipt_number,
                party_name=entry.party_name,
                total=entry.total,
                success=False,
                error=str(error),
            )

        return PostingResult(
            receipt_number=entry.receipt_number,
            party_name=entry.party_name,
            total=entry.total,
            success=True,
            external_record_id=outcome.record_id,
        )

    def _record(
        self,
        book: ReceiptBook,
        entry_date: date,
        staff_name: Optional[str],
        entries: List[CollectionEntry],
        session: PostingSession,
    ) -> None:
        by_number = {e.receipt_number: e for e in entries}
        now = datetime.now(timezone.utc)
        self._store.append_postings(
            PostedEntry(
                book_id=book.id,
                cycle=book.current_cycle,
                receipt_number=result.receipt_number,
                attempt=self._store.next_attempt(
                    book.id, book.current_cycle, result.receipt_number
                ),
                party_name=result.party_name,
                entry_date=entry_date,
                staff_name=staff_name,
                amounts=by_number[result.receipt_number].amounts,
                success=result.success,
                external_record_id=result.external_record_id,
                error=result.error,
                posted_at=now,
            )
            for result in session.results
        )

    def _notify(self, session: PostingSession) -> None:
        if self._notifier is None or not session.results:
            return
        try:
            self._notifier(session)
        except Exception:
            logger.exception(f"Posting notification failed for book {session.book_id}")
