"""Exception classes for the receipt-book engine"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional


class BookErrorCategory(str, Enum):
    """Error category codes"""
    RANGE = "RANGE"
    VALIDATION = "VAL"
    DUPLICATE = "DUP"
    BOOK = "BOOK"
    POSTING = "POST"
    LEDGER = "LEDGER"
    NETWORK = "NET"
    CONFIG = "CONFIG"
    UNKNOWN = "UNKNOWN"


_CATEGORY_PREFIXES = (
    ("RANGE", BookErrorCategory.RANGE),
    ("VAL", BookErrorCategory.VALIDATION),
    ("DUP", BookErrorCategory.DUPLICATE),
    ("BOOK", BookErrorCategory.BOOK),
    ("POST", BookErrorCategory.POSTING),
    ("LEDGER", BookErrorCategory.LEDGER),
    ("NET", BookErrorCategory.NETWORK),
    ("CONFIG", BookErrorCategory.CONFIG),
)


class BookError(Exception):
    """
    Base exception for receipt-book errors

    Every error raised by the engine extends this class, so callers can
    catch one type and still branch on ``code`` or ``category``.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        cause: Optional[Exception] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.status_code = status_code
        self.cause = cause
        self.details = details
        self.timestamp = datetime.now(timezone.utc)
        self.category = self._determine_category(code)

    def _determine_category(self, code: Optional[str]) -> BookErrorCategory:
        """Determine error category from code"""
        if not code:
            return BookErrorCategory.UNKNOWN

        for prefix, category in _CATEGORY_PREFIXES:
            if code.startswith(prefix):
                return category

        return BookErrorCategory.UNKNOWN

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary"""
        return {
            "name": self.__class__.__name__,
            "message": str(self),
            "code": self.code,
            "status_code": self.status_code,
            "category": self.category.value,
            "timestamp": self.timestamp.isoformat(),
            "details": self.details,
        }

    def has_code(self, code: str) -> bool:
        """Check if error has a specific code"""
        return self.code == code

    def is_category(self, category: BookErrorCategory) -> bool:
        """Check if error belongs to a category"""
        return self.category == category

    def get_description(self) -> str:
        """Get human-readable error description"""
        parts = [str(self)]

        if self.code:
            parts.insert(0, f"[{self.code}]")

        if self.status_code:
            parts.append(f"(HTTP {self.status_code})")

        return " ".join(parts)


class InvalidRange(BookError):
    """Page range or pages-per-book value cannot produce a book"""

    def __init__(
        self,
        message: str,
        range_start: Optional[int] = None,
        range_end: Optional[int] = None,
    ) -> None:
        super().__init__(
            message,
            code="RANGE01",
            details={"range_start": range_start, "range_end": range_end},
        )
        self.range_start = range_start
        self.range_end = range_end


class ValidationError(BookError):
    """Validation error"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code="VAL01", details=details)
        self.field = field


class DuplicateReceiptNumber(BookError):
    """Receipt numbers collide within one book cycle"""

    def __init__(self, duplicates: Iterable[int]) -> None:
        self.duplicates: List[int] = sorted(set(duplicates))
        joined = ", ".join(str(n) for n in self.duplicates)
        super().__init__(
            f"Duplicate receipt numbers in this cycle: {joined}",
            code="DUP01",
            details={"duplicates": self.duplicates},
        )


class BookExhausted(BookError):
    """No unused pages remain in the book"""

    def __init__(self, book_id: str) -> None:
        super().__init__(
            f"No unused pages remaining in book {book_id}",
            code="BOOK01",
            details={"book_id": book_id},
        )
        self.book_id = book_id


class BookInUse(BookError):
    """Book has been issued or has entries and cannot be removed"""

    def __init__(self, book_id: str, reason: str) -> None:
        super().__init__(
            f"Book {book_id} is in use: {reason}",
            code="BOOK02",
            details={"book_id": book_id},
        )
        self.book_id = book_id


class BookNotFound(BookError):
    """Book id is unknown to the store"""

    def __init__(self, book_id: str) -> None:
        super().__init__(
            f"Book not found: {book_id}",
            code="BOOK03",
            status_code=404,
            details={"book_id": book_id},
        )
        self.book_id = book_id


class ExternalPostingError(BookError):
    """
    Ledger rejected a single entry

    Scoped to one receipt. The coordinator records it on the entry's
    result instead of raising it out of a batch.
    """

    def __init__(self, message: str, receipt_number: Optional[int] = None) -> None:
        super().__init__(
            message,
            code="POST01",
            details={"receipt_number": receipt_number},
        )
        self.receipt_number = receipt_number


class LedgerError(BookError):
    """Ledger service returned an error response"""

    def __init__(
        self,
        message: str,
        code: str = "LEDGER01",
        status_code: Optional[int] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, code=code, status_code=status_code, cause=cause)


class NetworkError(BookError):
    """
    Network error for HTTP transport layer failures
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        network_code: str = "NET10",
        retryable: bool = True,
    ) -> None:
        super().__init__(message, code=network_code, status_code=status_code)
        self.network_code = network_code
        self.retryable = retryable

    @classmethod
    def timeout(cls, message: str = "Request timed out") -> "NetworkError":
        """Create a timeout error"""
        return cls(message, status_code=408, network_code="NET01", retryable=True)

    @classmethod
    def connection_refused(
        cls, message: str = "Connection refused"
    ) -> "NetworkError":
        """Create a connection refused error"""
        return cls(message, network_code="NET02", retryable=True)

    @classmethod
    def circuit_breaker_open(cls, retry_after_seconds: int) -> "NetworkError":
        """Create a circuit breaker open error"""
        return cls(
            f"Circuit breaker is open. Retry after {retry_after_seconds} seconds",
            status_code=503,
            network_code="NET05",
            retryable=False,
        )


class ConfigError(BookError):
    """Configuration error"""

    def __init__(
        self,
        message: str,
        code: str = "CONFIG01",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code=code, details=details)
