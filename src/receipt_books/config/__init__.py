"""
Configuration module
"""

from receipt_books.config.engine_config import (
    EngineConfig,
    ENV_VAR_MAPPING,
    ConfigDefaults,
)
from receipt_books.config.config_loader import ConfigLoader
from receipt_books.config.config_validator import (
    ConfigValidator,
    ValidationResult,
    ValidationErrorDetail,
)

__all__ = [
    "EngineConfig",
    "ENV_VAR_MAPPING",
    "ConfigDefaults",
    "ConfigLoader",
    "ConfigValidator",
    "ValidationResult",
    "ValidationErrorDetail",
]
