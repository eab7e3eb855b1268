"""
Book store
Keeps receipt books and the posted-entry log, optionally backed by a JSON file

The store hands out copies. Callers change a copy and write it back with
``save_book`` so a failed operation never leaves a half-updated book
behind.
"""

import json
import logging
import threading
from collections import defaultdict
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Union

from receipt_books.exceptions import BookError, BookNotFound
from receipt_books.models.book import BookStatus, ReceiptBook
from receipt_books.models.entry import PostedEntry


logger = logging.getLogger(__name__)


class StoreDefaults:
    """Default values for store files"""
    VERSION = 1


class BookStore:
    """
    Persistent CRUD over receipt books and posted entries

    Features:
    - In-memory maps with optional JSON file persistence
    - Atomic file writes (temp file, then rename)
    - One re-entrant lock per book for read-modify-write sequences
    - Append-only posted-entry log

    Example:
        >>> store = BookStore("./data/receipt-books.json")
        >>> with store.lock(book_id):
        ...     book = store.get(book_id)
        ...     book.status = BookStatus.ASSIGNED
        ...     store.save_book(book)
    """

    def __init__(self, path: Optional[Union[str, Path]] = None) -> None:
        self._path = Path(path).resolve() if path else None
        self._books: Dict[str, ReceiptBook] = {}
        self._postings: List[PostedEntry] = []
        self._guard = threading.RLock()
        self._book_locks: Dict[str, threading.RLock] = defaultdict(threading.RLock)

        if self._path is not None and self._path.exists():
            self.load()

    # ============ Persistence ============

    def load(self) -> None:
        """
        Load books and postings from the backing file

        Raises:
            BookError: If the file cannot be read or has an unknown version
        """
        if self._path is None:
            return

        try:
            data = json.loads(self._path.read_text("utf-8"))
        except (OSError, ValueError) as e:
            raise BookError(
                f"Failed to load book store: {e}",
                code="BOOK_STORE_LOAD",
                cause=e,
            ) from e

        if data.get("version") != StoreDefaults.VERSION:
            raise BookError(
                f"Unsupported book store version: {data.get('version')}",
                code="BOOK_STORE_VERSION",
            )

        with self._guard:
            self._books = {
                book_id: ReceiptBook.model_validate(raw)
                for book_id, raw in data.get("books", {}).items()
            }
            self._postings = [
                PostedEntry.model_validate(raw) for raw in data.get("postings", [])
            ]
        logger.info(
            f"Loaded {len(self._books)} books and {len(self._postings)} postings "
            f"from {self._path}"
        )

    def save(self) -> None:
        """
        Write the store to its backing file; no-op for in-memory stores

        Raises:
            BookError: If the write fails
        """
        if self._path is None:
            return

        with self._guard:
            payload = {
                "version": StoreDefaults.VERSION,
                "books": {
                    book_id: book.model_dump(mode="json")
                    for book_id, book in self._books.items()
                },
                "postings": [p.model_dump(mode="json") for p in self._postings],
            }
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                temp_path = self._path.with_suffix(".tmp")
                temp_path.write_text(json.dumps(payload, indent=2), "utf-8")
                temp_path.replace(self._path)
            except OSError as e:
                raise BookError(
                    f"Failed to save book store: {e}",
                    code="BOOK_STORE_SAVE",
                    cause=e,
                ) from e

    @property
    def path(self) -> Optional[Path]:
        return self._path

    @contextmanager
    def _saving(self) -> Iterator[None]:
        """
        Apply in-memory changes, then write them out

        If the write fails the maps are put back as they were, so memory
        never runs ahead of the file. Callers hold ``_guard``.
        """
        books = dict(self._books)
        size = len(self._postings)
        try:
            yield
            self.save()
        except BookError:
            self._books = books
            del self._postings[size:]
            raise

    # ============ Locking ============

    @contextmanager
    def lock(self, book_id: str) -> Iterator[None]:
        """Hold the book's lock for a read-modify-write sequence"""
        with self._guard:
            book_lock = self._book_locks[book_id]
        with book_lock:
            yield

    # ============ Books ============

    def next_book_number(self) -> int:
        with self._guard:
            return max((b.book_number for b in self._books.values()), default=0) + 1

    def add_books(self, books: Iterable[ReceiptBook]) -> List[ReceiptBook]:
        """Insert books all at once; nothing is inserted if any id exists"""
        books = list(books)
        with self._guard:
            clashes = [b.id for b in books if b.id in self._books]
            if clashes:
                raise BookError(
                    f"Book ids already exist: {', '.join(clashes)}",
                    code="BOOK_STORE_DUPLICATE_ID",
                )
            with self._saving():
                for book in books:
                    self._books[book.id] = book.model_copy(deep=True)
        return [b.model_copy(deep=True) for b in books]

    def get(self, book_id: str) -> ReceiptBook:
        """
        Get a copy of a book

        Raises:
            BookNotFound: If the id is unknown
        """
        with self._guard:
            book = self._books.get(book_id)
            if book is None:
                raise BookNotFound(book_id)
            return book.model_copy(deep=True)

    def has_book(self, book_id: str) -> bool:
        with self._guard:
            return book_id in self._books

    def save_book(self, book: ReceiptBook) -> None:
        with self._guard:
            if book.id not in self._books:
                raise BookNotFound(book.id)
            with self._saving():
                self._books[book.id] = book.model_copy(deep=True)

    def delete_book(self, book_id: str) -> None:
        with self._guard:
            if book_id not in self._books:
                raise BookNotFound(book_id)
            with self._saving():
                del self._books[book_id]

    def list_books(
        self,
        status: Optional[BookStatus] = None,
        assigned_to: Optional[str] = None,
    ) -> List[ReceiptBook]:
        """List books ordered by book number, optionally filtered"""
        with self._guard:
            books = sorted(self._books.values(), key=lambda b: b.book_number)
            if status is not None:
                books = [b for b in books if b.status == status]
            if assigned_to:
                needle = assigned_to.lower()
                books = [
                    b for b in books
                    if b.assigned_to and needle in b.assigned_to.lower()
                ]
            return [b.model_copy(deep=True) for b in books]

    def count_by_status(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in BookStatus}
        with self._guard:
            for book in self._books.values():
                counts[book.status.value] += 1
        return counts

    # ============ Posted entries ============

    def append_postings(self, entries: Iterable[PostedEntry]) -> None:
        entries = list(entries)
        if not entries:
            return
        with self._guard:
            with self._saving():
                self._postings.extend(e.model_copy(deep=True) for e in entries)

    def postings(self, book_id: str, cycle: Optional[int] = None) -> List[PostedEntry]:
        """Posted entries of a book in insertion order, optionally for one cycle"""
        with self._guard:
            return [
                p.model_copy(deep=True) for p in self._postings
                if p.book_id == book_id and (cycle is None or p.cycle == cycle)
            ]

    def latest_attempts(self, book_id: str, cycle: int) -> Dict[int, PostedEntry]:
        """Most recent attempt per receipt number within a cycle"""
        latest: Dict[int, PostedEntry] = {}
        for posting in self.postings(book_id, cycle):
            current = latest.get(posting.receipt_number)
            if current is None or posting.attempt >= current.attempt:
                latest[posting.receipt_number] = posting
        return latest

    def has_postings(self, book_id: str) -> bool:
        with self._guard:
            return any(p.book_id == book_id for p in self._postings)

    def next_attempt(self, book_id: str, cycle: int, receipt_number: int) -> int:
        with self._guard:
            return 1 + sum(
                1 for p in self._postings
                if p.book_id == book_id
                and p.cycle == cycle
                and p.receipt_number == receipt_number
            )

    def __len__(self) -> int:
        with self._guard:
            return len(self._books)
