"""Store module initialization"""

from receipt_books.store.book_store import BookStore, StoreDefaults

__all__ = ["BookStore", "StoreDefaults"]
