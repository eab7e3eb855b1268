"""Models module initialization"""

from receipt_books.models.book import (
    BookStatus,
    NumberingMode,
    CycleSummary,
    ReceiptBook,
)
from receipt_books.models.entry import (
    AmountBreakdown,
    CollectionEntry,
    PostedEntry,
)
from receipt_books.models.results import (
    BulkAllocation,
    TransitionReport,
    EntrySheet,
    ReconciliationResult,
    DuplicateCheck,
    PostingResult,
    PostingSession,
    BookInventory,
    BookEntries,
    CycleHistory,
)

__all__ = [
    "BookStatus",
    "NumberingMode",
    "CycleSummary",
    "ReceiptBook",
    "AmountBreakdown",
    "CollectionEntry",
    "PostedEntry",
    "BulkAllocation",
    "TransitionReport",
    "EntrySheet",
    "ReconciliationResult",
    "DuplicateCheck",
    "PostingResult",
    "PostingSession",
    "BookInventory",
    "BookEntries",
    "CycleHistory",
]
