"""
Ledger client module
"""

from receipt_books.client.http_client import (
    HttpClient,
    HttpResponse,
    HttpAuditEntry,
    CircuitState,
    CircuitBreakerConfig,
)
from receipt_books.client.ledger_client import (
    LedgerClient,
    LedgerResult,
    HttpLedgerClient,
    PAYMENT_MODE_KEYS,
    build_receipt_payload,
)

__all__ = [
    "HttpClient",
    "HttpResponse",
    "HttpAuditEntry",
    "CircuitState",
    "CircuitBreakerConfig",
    "LedgerClient",
    "LedgerResult",
    "HttpLedgerClient",
    "PAYMENT_MODE_KEYS",
    "build_receipt_payload",
]
