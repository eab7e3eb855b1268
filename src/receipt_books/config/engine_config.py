"""
Engine configuration types and schema
Type-safe configuration objects for the receipt-book engine
"""

from typing import Optional
from pydantic import BaseModel, Field, field_validator


class ConfigDefaults:
    """Default configuration values"""
    TIMEOUT = 30000
    RETRY_ATTEMPTS = 3
    RETRY_DELAY = 1000
    MAX_WORKERS = 4
    VOUCHER_TYPE = "Dashboard Receipt"
    PAGES_PER_BOOK = 50
    ACTIVATE_ON_CREATE = True
    ENABLE_AUDIT_LOG = True


# Environment variable mapping
ENV_VAR_MAPPING = {
    "RECEIPT_BOOKS_LEDGER_BASE_URL": "ledger_base_url",
    "RECEIPT_BOOKS_LEDGER_API_KEY": "ledger_api_key",
    "RECEIPT_BOOKS_TIMEOUT": "timeout",
    "RECEIPT_BOOKS_RETRY_ATTEMPTS": "retry_attempts",
    "RECEIPT_BOOKS_RETRY_DELAY": "retry_delay",
    "RECEIPT_BOOKS_MAX_WORKERS": "max_workers",
    "RECEIPT_BOOKS_BATCH_TIMEOUT": "batch_timeout",
    "RECEIPT_BOOKS_VOUCHER_TYPE": "voucher_type",
    "RECEIPT_BOOKS_DEFAULT_PAGES_PER_BOOK": "default_pages_per_book",
    "RECEIPT_BOOKS_ACTIVATE_ON_CREATE": "activate_on_create",
    "RECEIPT_BOOKS_STORE_PATH": "store_path",
    "RECEIPT_BOOKS_ENABLE_AUDIT_LOG": "enable_audit_log",
}


class EngineConfig(BaseModel):
    """
    Main engine configuration
    Every field has a default so an empty config yields an in-memory
    engine with no ledger transport configured.
    """

    # Ledger transport
    ledger_base_url: Optional[str] = Field(
        default=None,
        description="Base URL of the ledger REST backend"
    )
    ledger_api_key: Optional[str] = Field(
        default=None,
        description="API key sent as X-API-Key to the ledger backend"
    )
    timeout: int = Field(
        default=ConfigDefaults.TIMEOUT,
        description="Request timeout in milliseconds",
        ge=1000,
        le=300000
    )
    retry_attempts: int = Field(
        default=ConfigDefaults.RETRY_ATTEMPTS,
        description="Number of retry attempts",
        ge=0,
        le=10
    )
    retry_delay: int = Field(
        default=ConfigDefaults.RETRY_DELAY,
        description="Base delay between retries in milliseconds",
        ge=1,
        le=60000
    )

    # Posting
    max_workers: int = Field(
        default=ConfigDefaults.MAX_WORKERS,
        description="Concurrent ledger calls per submission",
        ge=1,
        le=16
    )
    batch_timeout: Optional[float] = Field(
        default=None,
        description="Seconds before undispatched entries of a batch are dropped",
        gt=0
    )
    voucher_type: str = Field(
        default=ConfigDefaults.VOUCHER_TYPE,
        description="Ledger voucher type used for collection receipts",
        min_length=1
    )

    # Allocation
    default_pages_per_book: int = Field(
        default=ConfigDefaults.PAGES_PER_BOOK,
        description="Pages per book when the caller does not specify one",
        ge=1
    )
    activate_on_create: bool = Field(
        default=ConfigDefaults.ACTIVATE_ON_CREATE,
        description="Create books as ready instead of inactive"
    )

    # Persistence and audit
    store_path: Optional[str] = Field(
        default=None,
        description="JSON file backing the book store"
    )
    enable_audit_log: bool = Field(
        default=ConfigDefaults.ENABLE_AUDIT_LOG,
        description="Enable HTTP audit logging"
    )

    model_config = {
        "str_strip_whitespace": True,
        "validate_assignment": True,
    }

    @field_validator("ledger_base_url")
    @classmethod
    def validate_ledger_base_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate ledger_base_url is a valid URL"""
        if v is not None and v != "":
            if not v.startswith(("http://", "https://")):
                raise ValueError("ledger_base_url must be a valid HTTP/HTTPS URL")
            return v.rstrip("/")
        return v

    @property
    def has_ledger(self) -> bool:
        """Whether an HTTP ledger backend is configured"""
        return bool(self.ledger_base_url)
