"""
Book allocation
Splits a numeric page range into receipt books
"""

import logging
import math
import uuid
from datetime import datetime, timezone
from typing import List, Optional, Tuple, Union

from receipt_books.config.engine_config import EngineConfig
from receipt_books.exceptions import InvalidRange
from receipt_books.models.book import BookStatus, NumberingMode, ReceiptBook
from receipt_books.models.results import BulkAllocation
from receipt_books.store.book_store import BookStore
from receipt_books.utils.labels import batch_label as join_label, to_letter_label


logger = logging.getLogger(__name__)


def _new_book_id() -> str:
    return uuid.uuid4().hex


def _new_batch_id() -> str:
    timestamp = hex(int(datetime.now(timezone.utc).timestamp() * 1000))[2:]
    return f"batch-{timestamp}-{uuid.uuid4().hex[:6]}"


class BookAllocator:
    """
    Creates receipt books from page ranges

    Two numbering modes are supported:
    - sequential: consecutive books over the range, the last one may be short
    - restart: the range is cut into sets of ``restart_every`` pages and
      page numbering restarts at 1 inside every set
    """

    def __init__(self, store: BookStore, config: Optional[EngineConfig] = None) -> None:
        self._store = store
        self._config = config or EngineConfig()

    def create_bulk(
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
        """
        Create a batch of books covering a page range

        Args:
            range_start: First page of the range
            range_end: Last page of the range
            pages_per_book: Pages in each book (config default if omitted)
            numbering_mode: 'sequential' or 'restart'
            batch_label: Optional prefix for book labels
            start_book_number: First book number (max existing + 1 if omitted)
            restart_every: Set size for restart mode (defaults to pages_per_book)
            activate: Create as ready (True) or inactive (False)

        Returns:
            BulkAllocation with the created books

        Raises:
            InvalidRange: If the range or sizes cannot produce books
        """
        ppb = self._config.default_pages_per_book if pages_per_book is None else pages_per_book
        mode = NumberingMode(numbering_mode)
        self._check_range(range_start, range_end, ppb)
        if restart_every is not None and restart_every <= 0:
            raise InvalidRange(
                "restart_every must be a positive number of pages",
                range_start,
                range_end,
            )

        if mode == NumberingMode.RESTART:
            ranges = self._restart_ranges(
                range_start, range_end, ppb, restart_every or ppb
            )
        else:
            ranges = self._sequential_ranges(range_start, range_end, ppb)

        batch_id = _new_batch_id()
        status = self._initial_status(activate)
        now = datetime.now(timezone.utc)
        first_number = (
            start_book_number
            if start_book_number and start_book_number > 0
            else self._store.next_book_number()
        )

        books = [
            ReceiptBook(
                id=_new_book_id(),
                book_number=first_number + index,
                book_label=join_label(batch_label, to_letter_label(index)),
                page_start=page_start,
                page_end=page_end,
                numbering_mode=mode,
                batch_id=batch_id,
                status=status,
                available_from=page_start,
                current_cycle=0,
                created_at=now,
            )
            for index, (page_start, page_end) in enumerate(ranges)
        ]

        created = self._store.add_books(books)
        logger.info(
            f"Allocated {len(created)} {mode.value} books from pages "
            f"{range_start}-{range_end} in {batch_id}"
        )
        return BulkAllocation(created_books=created, batch_id=batch_id)

    def create_single(
        self,
        page_start: int,
        page_end: int,
        label: Optional[str] = None,
        activate: Optional[bool] = None,
    ) -> ReceiptBook:
        """
        Create one book with an explicit page range

        Raises:
            InvalidRange: If page_end < page_start or page_start < 1
        """
        self._check_range(page_start, page_end, 1)

        book = ReceiptBook(
            id=_new_book_id(),
            book_number=self._store.next_book_number(),
            book_label=label,
            page_start=page_start,
            page_end=page_end,
            status=self._initial_status(activate),
            available_from=page_start,
            created_at=datetime.now(timezone.utc),
        )
        created = self._store.add_books([book])[0]
        logger.info(f"Created book #{created.book_number} pages {page_start}-{page_end}")
        return created

    def _initial_status(self, activate: Optional[bool]) -> BookStatus:
        if activate is None:
            activate = self._config.activate_on_create
        return BookStatus.READY if activate else BookStatus.INACTIVE

    @staticmethod
    def _check_range(start: int, end: int, pages_per_book: int) -> None:
        if start < 1:
            raise InvalidRange("Page numbers start at 1", start, end)
        if end < start:
            raise InvalidRange(
                f"Range end {end} is before range start {start}", start, end
            )
        if pages_per_book <= 0:
            raise InvalidRange("pages_per_book must be positive", start, end)

    @staticmethod
    def _sequential_ranges(
        start: int, end: int, pages_per_book: int
    ) -> List[Tuple[int, int]]:
        return [
            (page_start, min(page_start + pages_per_book - 1, end))
            for page_start in range(start, end + 1, pages_per_book)
        ]

    @staticmethod
    def _restart_ranges(
        start: int, end: int, pages_per_book: int, set_size: int
    ) -> List[Tuple[int, int]]:
        # every set is issued in full, even when the range ends mid-set
        num_sets = math.ceil((end - start + 1) / set_size)
        books_per_set = math.ceil(set_size / pages_per_book)

        ranges = []
        for _ in range(num_sets):
            for b in range(books_per_set):
                page_start = b * pages_per_book + 1
                ranges.append((page_start, min(page_start + pages_per_book - 1, set_size)))
        return ranges
