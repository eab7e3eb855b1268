"""Utilities module initialization"""

from receipt_books.utils.labels import to_letter_label, batch_label

__all__ = ["to_letter_label", "batch_label"]
