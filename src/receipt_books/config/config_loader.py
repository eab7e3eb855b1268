"""
Configuration Loader
Loads engine configuration from various sources
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from receipt_books.config.engine_config import (
    EngineConfig,
    ENV_VAR_MAPPING,
    ConfigDefaults,
)
from receipt_books.config.config_validator import ConfigValidator
from receipt_books.exceptions import ConfigError


_INT_KEYS = (
    "timeout",
    "retry_attempts",
    "retry_delay",
    "max_workers",
    "default_pages_per_book",
)
_BOOL_KEYS = ("activate_on_create", "enable_audit_log")


class ConfigLoader:
    """
    ConfigLoader class
    Provides multiple ways to load and merge configuration
    """

    def __init__(self) -> None:
        self._validator = ConfigValidator()

    def from_file(self, path: Union[str, Path]) -> Dict[str, Any]:
        """
        Load configuration from a JSON file

        Args:
            path: Path to JSON configuration file

        Returns:
            Loaded configuration dictionary

        Raises:
            ConfigError: If file not found or invalid JSON
        """
        file_path = Path(path).resolve()

        if not file_path.exists():
            raise ConfigError(
                f"Configuration file not found: {file_path}",
                code="CONFIG_FILE_NOT_FOUND"
            )

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                config = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(
                f"Invalid JSON in configuration file: {file_path}",
                code="CONFIG_PARSE_ERROR"
            ) from e

        return self._resolve_store_path(config, file_path.parent)

    def from_environment(self) -> Dict[str, Any]:
        """
        Load configuration from RECEIPT_BOOKS_* environment variables
        """
        config: Dict[str, Any] = {}

        for env_var, config_key in ENV_VAR_MAPPING.items():
            value = os.environ.get(env_var)
            if value is not None and value != "":
                config[config_key] = self._parse_env_value(config_key, value)

        return config

    def from_dict(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of a programmatic configuration dictionary"""
        return config.copy()

    def merge(self, *sources: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge multiple configuration sources
        Priority: later sources override earlier sources

        Args:
            sources: Configuration dictionaries in order of increasing priority

        Returns:
            Merged configuration dictionary
        """
        merged: Dict[str, Any] = {}

        for source in sources:
            merged.update(self._filter_none(source))

        return merged

    def resolve(self, config: Dict[str, Any]) -> EngineConfig:
        """
        Validate a merged dictionary and build the EngineConfig

        Raises:
            ValidationError: If configuration is invalid
        """
        self._validator.validate_or_raise(config)
        return EngineConfig(**config)

    def load(
        self,
        file: Optional[Union[str, Path]] = None,
        env: bool = True,
        config: Optional[Dict[str, Any]] = None,
    ) -> EngineConfig:
        """
        Load, merge, and resolve configuration from multiple sources

        Args:
            file: Path to JSON configuration file (optional)
            env: Whether to load from environment variables (default: True)
            config: Programmatic configuration dictionary (optional)

        Returns:
            Fully resolved EngineConfig object
        """
        sources: List[Dict[str, Any]] = []

        if file is not None:
            sources.append(self.from_file(file))

        if env:
            sources.append(self.from_environment())

        if config is not None:
            sources.append(config)

        return self.resolve(self.merge(*sources))

    def create_template(self, path: Union[str, Path]) -> None:
        """
        Write a configuration template file

        Args:
            path: Path to write template
        """
        template = {
            "ledger_base_url": "http://localhost:3001",
            "ledger_api_key": "",
            "timeout": ConfigDefaults.TIMEOUT,
            "retry_attempts": ConfigDefaults.RETRY_ATTEMPTS,
            "retry_delay": ConfigDefaults.RETRY_DELAY,
            "max_workers": ConfigDefaults.MAX_WORKERS,
            "batch_timeout": None,
            "voucher_type": ConfigDefaults.VOUCHER_TYPE,
            "default_pages_per_book": ConfigDefaults.PAGES_PER_BOOK,
            "activate_on_create": ConfigDefaults.ACTIVATE_ON_CREATE,
            "store_path": "./data/receipt-books.json",
            "enable_audit_log": ConfigDefaults.ENABLE_AUDIT_LOG,
        }

        file_path = Path(path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, "w", encoding="utf-8") as f:
            json.dump(template, f, indent=2)

    def _parse_env_value(self, key: str, value: str) -> Any:
        """Parse environment variable value to appropriate type"""
        if key in _BOOL_KEYS:
            return value.lower() in ("true", "1", "yes")

        if key in _INT_KEYS:
            try:
                return int(value)
            except ValueError:
                return value

        if key == "batch_timeout":
            try:
                return float(value)
            except ValueError:
                return value

        return value

    def _resolve_store_path(
        self, config: Dict[str, Any], base_path: Path
    ) -> Dict[str, Any]:
        """Resolve a relative store_path against the config file's directory"""
        processed = config.copy()

        store_path = processed.get("store_path")
        if isinstance(store_path, str) and store_path:
            candidate = Path(store_path)
            if not candidate.is_absolute():
                processed["store_path"] = str(base_path / candidate)

        return processed

    def _filter_none(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Filter out None values from config dictionary"""
        return {k: v for k, v in config.items() if v is not None}
