"""Entry validation for collection batches"""

from collections import Counter
from itertools import chain
from typing import Iterable, List

from receipt_books.models.book import ReceiptBook
from receipt_books.models.entry import CollectionEntry
from receipt_books.models.results import DuplicateCheck


class EntryValidator:
    """Stateless checks run on a batch before anything is posted"""

    def valid_entries(self, entries: Iterable[CollectionEntry]) -> List[CollectionEntry]:
        """Rows with a party name and a positive total"""
        return [entry for entry in entries if entry.is_valid]

    def invalid_entries(self, entries: Iterable[CollectionEntry]) -> List[CollectionEntry]:
        return [entry for entry in entries if not entry.is_valid]

    def check_duplicates(
        self,
        candidate_receipt_numbers: Iterable[int],
        already_posted_receipt_numbers: Iterable[int],
    ) -> DuplicateCheck:
        """
        Receipt numbers must be unique across candidates and postings

        A number is a duplicate when it occurs more than once in the
        union, whichever side the occurrences come from.
        """
        counts = Counter(
            chain(candidate_receipt_numbers, already_posted_receipt_numbers)
        )
        duplicates = sorted(n for n, seen in counts.items() if seen > 1)
        return DuplicateCheck(ok=not duplicates, duplicates=duplicates)

    def check_range(self, book: ReceiptBook, receipt_numbers: Iterable[int]) -> List[int]:
        """Receipt numbers that are missing or fall outside the book's pages"""
        return [
            n for n in receipt_numbers
            if n is None or not book.contains_page(n)
        ]

    def check_unused(
        self,
        book: ReceiptBook,
        receipt_numbers: Iterable[int],
        retryable_receipt_numbers: Iterable[int] = (),
    ) -> List[int]:
        """
        Receipt numbers on pages already consumed

        Pages before ``available_from`` are used up, except receipts whose
        latest attempt in the current cycle failed.
        """
        retryable = set(retryable_receipt_numbers)
        return [
            n for n in receipt_numbers
            if n < book.available_from and n not in retryable
        ]
