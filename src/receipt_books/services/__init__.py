"""Services module initialization"""

from receipt_books.services.allocator import BookAllocator
from receipt_books.services.cycle_manager import CycleManager
from receipt_books.services.validator import EntryValidator
from receipt_books.services.summary import SummaryReconciler
from receipt_books.services.posting import PostingCoordinator, Notifier

__all__ = [
    "BookAllocator",
    "CycleManager",
    "EntryValidator",
    "SummaryReconciler",
    "PostingCoordinator",
    "Notifier",
]
