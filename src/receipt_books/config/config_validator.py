"""
Configuration Validator
Validates engine configuration with clear error messages
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ValidationErrorDetail:
    """Validation error detail"""
    field: str
    message: str
    value: Optional[Any] = None


@dataclass
class ValidationResult:
    """Validation result"""
    valid: bool
    errors: List[ValidationErrorDetail] = field(default_factory=list)


# (field, minimum, maximum, unit) for bounded integer settings
_INT_RANGES = (
    ("timeout", 1000, 300000, "ms"),
    ("retry_attempts", 0, 10, ""),
    ("retry_delay", 1, 60000, "ms"),
    ("max_workers", 1, 16, ""),
)


class ConfigValidator:
    """
    ConfigValidator class
    Checks a raw configuration dictionary before it becomes an EngineConfig
    """

    def __init__(self) -> None:
        self._errors: List[ValidationErrorDetail] = []

    def validate(self, config: Dict[str, Any]) -> ValidationResult:
        """
        Validate the entire configuration dictionary

        Args:
            config: Configuration dictionary to validate

        Returns:
            ValidationResult with any errors
        """
        self._errors = []

        self._validate_formats(config)
        self._validate_ranges(config)
        self._validate_posting(config)

        return ValidationResult(
            valid=len(self._errors) == 0,
            errors=self._errors.copy()
        )

    def validate_or_raise(self, config: Dict[str, Any]) -> None:
        """
        Validate and raise if invalid

        Raises:
            ValidationError: If configuration is invalid
        """
        from receipt_books.exceptions import ValidationError

        result = self.validate(config)
        if not result.valid:
            error_messages = "; ".join(
                f"{e.field}: {e.message}" for e in result.errors
            )
            raise ValidationError(f"Configuration validation failed: {error_messages}")

    def _add(self, field_name: str, message: str, value: Any = None) -> None:
        self._errors.append(ValidationErrorDetail(
            field=field_name,
            message=message,
            value=value
        ))

    def _validate_formats(self, config: Dict[str, Any]) -> None:
        """Validate field formats"""
        base_url = config.get("ledger_base_url")
        if base_url is not None and base_url != "":
            if not isinstance(base_url, str) or not base_url.startswith(("http://", "https://")):
                self._add(
                    "ledger_base_url",
                    "ledger_base_url must be a valid HTTP/HTTPS URL",
                    base_url
                )

        store_path = config.get("store_path")
        if store_path is not None and store_path != "":
            if not isinstance(store_path, str):
                self._add("store_path", "store_path must be a string", store_path)

        voucher_type = config.get("voucher_type")
        if voucher_type is not None:
            if not isinstance(voucher_type, str) or voucher_type.strip() == "":
                self._add("voucher_type", "voucher_type cannot be empty", voucher_type)

    def _validate_ranges(self, config: Dict[str, Any]) -> None:
        """Validate numeric ranges"""
        for name, minimum, maximum, unit in _INT_RANGES:
            value = config.get(name)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int):
                self._add(name, f"{name} must be an integer", value)
            elif value < minimum:
                self._add(name, f"{name} must be at least {minimum}{unit}", value)
            elif value > maximum:
                self._add(name, f"{name} should not exceed {maximum}{unit}", value)

        pages = config.get("default_pages_per_book")
        if pages is not None:
            if isinstance(pages, bool) or not isinstance(pages, int) or pages < 1:
                self._add(
                    "default_pages_per_book",
                    "default_pages_per_book must be a positive integer",
                    pages
                )

    def _validate_posting(self, config: Dict[str, Any]) -> None:
        """Validate posting settings"""
        batch_timeout = config.get("batch_timeout")
        if batch_timeout is not None:
            if isinstance(batch_timeout, bool) or not isinstance(batch_timeout, (int, float)):
                self._add("batch_timeout", "batch_timeout must be a number (seconds)", batch_timeout)
            elif batch_timeout <= 0:
                self._add("batch_timeout", "batch_timeout must be positive", batch_timeout)
