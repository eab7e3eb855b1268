"""Result models returned by engine operations"""

from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from receipt_books.models.book import BookStatus, CycleSummary, ReceiptBook
from receipt_books.models.entry import CollectionEntry, PostedEntry


class BulkAllocation(BaseModel):
    """Books created by one bulk allocation"""

    created_books: List[ReceiptBook] = Field(default_factory=list)
    batch_id: str

    @property
    def count(self) -> int:
        return len(self.created_books)


class TransitionReport(BaseModel):
    """Outcome of a multi-book status change"""

    updated: List[str] = Field(default_factory=list, description="Book ids changed")
    skipped: List[str] = Field(default_factory=list, description="Book ids left as they were")

    @property
    def count(self) -> int:
        return len(self.updated)


class EntrySheet(BaseModel):
    """Editing context for entering receipts against a book cycle"""

    book_id: str
    cycle: int
    status: BookStatus
    summary: Optional[CycleSummary] = None
    requires_summary: bool = False
    rows: List[CollectionEntry] = Field(default_factory=list)


class ReconciliationResult(BaseModel):
    """
    Declared summary versus entered receipts

    Deltas are declared minus entered. Advisory only.
    """

    entries_match: bool
    totals_match: bool
    per_field_delta: Dict[str, float]
    declared: Dict[str, float]
    entered: Dict[str, float]


class DuplicateCheck(BaseModel):
    """Receipt-number uniqueness check within a cycle"""

    ok: bool
    duplicates: List[int] = Field(default_factory=list)


class PostingResult(BaseModel):
    """Ledger outcome for one entry"""

    receipt_number: int
    party_name: str
    total: float
    success: bool
    external_record_id: Optional[str] = None
    error: Optional[str] = None


class PostingSession(BaseModel):
    """
    Outcome of one submit call

    ``results`` holds attempted entries in input order. Entries dropped
    by the batch timeout before dispatch are listed in ``not_submitted``
    and do not count towards ``total_count``.
    """

    book_id: str
    cycle: int
    results: List[PostingResult] = Field(default_factory=list)
    not_submitted: List[int] = Field(default_factory=list)
    timed_out: bool = False

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def total_count(self) -> int:
        return len(self.results)

    @property
    def failed_results(self) -> List[PostingResult]:
        return [r for r in self.results if not r.success]

    @property
    def all_succeeded(self) -> bool:
        return bool(self.results) and self.success_count == self.total_count

    @property
    def attempted_receipt_numbers(self) -> List[int]:
        return [r.receipt_number for r in self.results]


class BookInventory(BaseModel):
    """Books grouped by status for display"""

    inactive: List[ReceiptBook] = Field(default_factory=list)
    ready: List[ReceiptBook] = Field(default_factory=list)
    in_field: List[ReceiptBook] = Field(default_factory=list)
    posted: List[ReceiptBook] = Field(default_factory=list)
    counts: Dict[str, int] = Field(default_factory=dict)


class BookEntries(BaseModel):
    """Posted-entry log of one book cycle, split by outcome"""

    book: ReceiptBook
    cycle: int
    entries: List[PostedEntry] = Field(default_factory=list)
    posted: List[PostedEntry] = Field(default_factory=list)
    failed: List[PostedEntry] = Field(default_factory=list)


class CycleHistory(BaseModel):
    """Aggregates for one past or current cycle"""

    cycle: int
    entry_count: int = 0
    success_count: int = 0
    cash: float = 0.0
    fonepay: float = 0.0
    cheque: float = 0.0
    bank_deposit: float = 0.0
    discount: float = 0.0
    total: float = 0.0
    first_date: Optional[date] = None
    last_date: Optional[date] = None
    first_receipt: Optional[int] = None
    last_receipt: Optional[int] = None
    staff_name: Optional[str] = None
