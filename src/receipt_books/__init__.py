"""
Receipt-book lifecycle and collection-posting engine

Main entry point for the library
"""

from receipt_books.engine import CollectionEngine
from receipt_books.exceptions import (
    BookError,
    BookErrorCategory,
    InvalidRange,
    ValidationError,
    DuplicateReceiptNumber,
    BookExhausted,
    BookInUse,
    BookNotFound,
    ExternalPostingError,
    LedgerError,
    NetworkError,
    ConfigError,
)

# Ledger client
from receipt_books.client import (
    LedgerClient,
    LedgerResult,
    HttpLedgerClient,
    HttpClient,
)

# Configuration
from receipt_books.config import (
    EngineConfig,
    ConfigLoader,
    ConfigValidator,
    ConfigDefaults,
    ENV_VAR_MAPPING,
)

# Models
from receipt_books.models import (
    BookStatus,
    NumberingMode,
    CycleSummary,
    ReceiptBook,
    AmountBreakdown,
    CollectionEntry,
    PostedEntry,
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

# Services and storage
from receipt_books.services import (
    BookAllocator,
    CycleManager,
    EntryValidator,
    SummaryReconciler,
    PostingCoordinator,
)
from receipt_books.store import BookStore

__version__ = "0.1.0"

__all__ = [
    # Engine
    "CollectionEngine",
    # Exceptions
    "BookError",
    "BookErrorCategory",
    "InvalidRange",
    "ValidationError",
    "DuplicateReceiptNumber",
    "BookExhausted",
    "BookInUse",
    "BookNotFound",
    "ExternalPostingError",
    "LedgerError",
    "NetworkError",
    "ConfigError",
    # Ledger client
    "LedgerClient",
    "LedgerResult",
    "HttpLedgerClient",
    "HttpClient",
    # Configuration
    "EngineConfig",
    "ConfigLoader",
    "ConfigValidator",
    "ConfigDefaults",
    "ENV_VAR_MAPPING",
    # Models
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
    # Services and storage
    "BookAllocator",
    "CycleManager",
    "EntryValidator",
    "SummaryReconciler",
    "PostingCoordinator",
    "BookStore",
]
