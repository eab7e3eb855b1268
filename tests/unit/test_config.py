"""
Configuration Module Unit Tests
"""

import json
from pathlib import Path

import pytest

from receipt_books.config import (
    EngineConfig,
    ConfigLoader,
    ConfigValidator,
    ConfigDefaults,
)
from receipt_books.exceptions import ConfigError, ValidationError


class TestConfigValidator:
    """Tests for ConfigValidator"""

    @pytest.fixture
    def validator(self) -> ConfigValidator:
        return ConfigValidator()

    @pytest.fixture
    def valid_config(self) -> dict:
        return {
            "ledger_base_url": "http://localhost:3001",
            "ledger_api_key": "test-key",
            "max_workers": 4,
            "store_path": "./data/receipt-books.json",
        }

    def test_validate_valid_config(self, validator: ConfigValidator, valid_config: dict):
        """Should pass with valid configuration"""
        result = validator.validate(valid_config)
        assert result.valid is True
        assert len(result.errors) == 0

    def test_validate_empty_config(self, validator: ConfigValidator):
        """Should pass with no settings at all"""
        assert validator.validate({}).valid is True

    def test_validate_invalid_base_url(self, validator: ConfigValidator, valid_config: dict):
        """Should fail with invalid ledger_base_url"""
        valid_config["ledger_base_url"] = "not-a-url"
        result = validator.validate(valid_config)
        assert result.valid is False
        assert any(e.field == "ledger_base_url" for e in result.errors)

    def test_validate_timeout_too_low(self, validator: ConfigValidator, valid_config: dict):
        """Should fail with timeout too low"""
        valid_config["timeout"] = 100
        result = validator.validate(valid_config)
        assert result.valid is False
        assert any(
            e.field == "timeout" and "1000ms" in e.message
            for e in result.errors
        )

    def test_validate_too_many_workers(self, validator: ConfigValidator, valid_config: dict):
        """Should fail when max_workers exceeds 16"""
        valid_config["max_workers"] = 64
        result = validator.validate(valid_config)
        assert result.valid is False
        assert any(e.field == "max_workers" for e in result.errors)

    def test_validate_non_integer_retry_attempts(
        self, validator: ConfigValidator, valid_config: dict
    ):
        """Should fail when retry_attempts is not an integer"""
        valid_config["retry_attempts"] = "three"
        result = validator.validate(valid_config)
        assert any(
            e.field == "retry_attempts" and "integer" in e.message
            for e in result.errors
        )

    @pytest.mark.parametrize("value", [0, -1.5, "soon"])
    def test_validate_bad_batch_timeout(
        self, validator: ConfigValidator, valid_config: dict, value
    ):
        """Should fail with a non-positive or non-numeric batch_timeout"""
        valid_config["batch_timeout"] = value
        result = validator.validate(valid_config)
        assert any(e.field == "batch_timeout" for e in result.errors)

    def test_validate_pages_per_book(self, validator: ConfigValidator, valid_config: dict):
        """Should fail with zero default_pages_per_book"""
        valid_config["default_pages_per_book"] = 0
        result = validator.validate(valid_config)
        assert any(e.field == "default_pages_per_book" for e in result.errors)

    def test_validate_or_raise_invalid(self, validator: ConfigValidator, valid_config: dict):
        """Should raise ValidationError with invalid configuration"""
        valid_config["voucher_type"] = "  "
        with pytest.raises(ValidationError):
            validator.validate_or_raise(valid_config)


class TestConfigLoader:
    """Tests for ConfigLoader"""

    @pytest.fixture
    def loader(self) -> ConfigLoader:
        return ConfigLoader()

    def test_from_dict(self, loader: ConfigLoader):
        """Should return a copy of the configuration"""
        config = {"max_workers": 2}
        result = loader.from_dict(config)
        assert result == config
        assert result is not config

    def test_from_environment(self, loader: ConfigLoader, monkeypatch):
        """Should load typed values from environment variables"""
        monkeypatch.setenv("RECEIPT_BOOKS_LEDGER_BASE_URL", "http://ledger.local")
        monkeypatch.setenv("RECEIPT_BOOKS_MAX_WORKERS", "8")
        monkeypatch.setenv("RECEIPT_BOOKS_BATCH_TIMEOUT", "2.5")
        monkeypatch.setenv("RECEIPT_BOOKS_ACTIVATE_ON_CREATE", "no")
        monkeypatch.setenv("RECEIPT_BOOKS_VOUCHER_TYPE", "")

        result = loader.from_environment()

        assert result["ledger_base_url"] == "http://ledger.local"
        assert result["max_workers"] == 8
        assert result["batch_timeout"] == 2.5
        assert result["activate_on_create"] is False
        assert "voucher_type" not in result

    def test_from_environment_boolean_parsing(self, loader: ConfigLoader, monkeypatch):
        """Should parse boolean values correctly"""
        monkeypatch.setenv("RECEIPT_BOOKS_ENABLE_AUDIT_LOG", "true")
        assert loader.from_environment()["enable_audit_log"] is True

        monkeypatch.setenv("RECEIPT_BOOKS_ENABLE_AUDIT_LOG", "1")
        assert loader.from_environment()["enable_audit_log"] is True

        monkeypatch.setenv("RECEIPT_BOOKS_ENABLE_AUDIT_LOG", "false")
        assert loader.from_environment()["enable_audit_log"] is False

    def test_merge(self, loader: ConfigLoader):
        """Should merge multiple configurations with priority"""
        base = {"max_workers": 2, "voucher_type": "Receipt"}
        override = {"max_workers": 6, "timeout": 5000}

        result = loader.merge(base, override)

        assert result["max_workers"] == 6
        assert result["voucher_type"] == "Receipt"
        assert result["timeout"] == 5000

    def test_merge_filters_none(self, loader: ConfigLoader):
        """Should not include None values from overrides"""
        result = loader.merge({"timeout": 30000}, {"timeout": None})
        assert result["timeout"] == 30000

    def test_resolve_applies_defaults(self, loader: ConfigLoader):
        """Should apply default values"""
        result = loader.resolve({})

        assert result.timeout == ConfigDefaults.TIMEOUT
        assert result.retry_attempts == ConfigDefaults.RETRY_ATTEMPTS
        assert result.max_workers == ConfigDefaults.MAX_WORKERS
        assert result.default_pages_per_book == ConfigDefaults.PAGES_PER_BOOK
        assert result.voucher_type == ConfigDefaults.VOUCHER_TYPE
        assert result.batch_timeout is None
        assert result.has_ledger is False

    def test_resolve_invalid(self, loader: ConfigLoader):
        """Should raise ValidationError before building the model"""
        with pytest.raises(ValidationError):
            loader.resolve({"max_workers": 0})

    def test_from_file_resolves_store_path(self, loader: ConfigLoader, tmp_path: Path):
        """Should resolve a relative store_path against the file's directory"""
        config_file = tmp_path / "engine.json"
        config_file.write_text(json.dumps({
            "ledger_base_url": "http://localhost:3001",
            "store_path": "data/books.json",
        }))

        result = loader.from_file(config_file)

        assert result["ledger_base_url"] == "http://localhost:3001"
        assert Path(result["store_path"]) == tmp_path.resolve() / "data" / "books.json"

    def test_from_file_not_found(self, loader: ConfigLoader):
        """Should raise error for missing file"""
        with pytest.raises(ConfigError) as exc_info:
            loader.from_file("/nonexistent/path.json")

        assert exc_info.value.code == "CONFIG_FILE_NOT_FOUND"

    def test_from_file_invalid_json(self, loader: ConfigLoader, tmp_path: Path):
        """Should raise error for malformed JSON"""
        config_file = tmp_path / "broken.json"
        config_file.write_text("{not json")

        with pytest.raises(ConfigError) as exc_info:
            loader.from_file(config_file)

        assert exc_info.value.code == "CONFIG_PARSE_ERROR"

    def test_load_priority(self, loader: ConfigLoader, tmp_path: Path, monkeypatch):
        """Programmatic values beat environment values, which beat the file"""
        config_file = tmp_path / "engine.json"
        config_file.write_text(json.dumps({"max_workers": 2, "timeout": 5000}))
        monkeypatch.setenv("RECEIPT_BOOKS_MAX_WORKERS", "3")
        monkeypatch.setenv("RECEIPT_BOOKS_RETRY_ATTEMPTS", "1")

        result = loader.load(file=config_file, config={"retry_attempts": 5})

        assert result.timeout == 5000
        assert result.max_workers == 3
        assert result.retry_attempts == 5

    def test_create_template(self, loader: ConfigLoader, tmp_path: Path):
        """Should create template configuration file"""
        template_path = tmp_path / "config" / "template.json"
        loader.create_template(template_path)

        assert template_path.exists()
        template = json.loads(template_path.read_text())

        assert "ledger_base_url" in template
        assert template["default_pages_per_book"] == ConfigDefaults.PAGES_PER_BOOK
        assert loader.resolve(template).has_ledger is True


class TestEngineConfig:
    """Tests for EngineConfig Pydantic model"""

    def test_defaults(self):
        """Should build an in-memory configuration without a ledger"""
        config = EngineConfig()
        assert config.store_path is None
        assert config.activate_on_create is True
        assert config.has_ledger is False

    def test_strips_trailing_slash(self):
        """Should normalise ledger_base_url"""
        config = EngineConfig(ledger_base_url="https://ledger.example.com/")
        assert config.ledger_base_url == "https://ledger.example.com"
        assert config.has_ledger is True

    def test_invalid_base_url(self):
        """Should reject invalid ledger_base_url"""
        with pytest.raises(ValueError):
            EngineConfig(ledger_base_url="ftp://ledger")

    @pytest.mark.parametrize("workers", [0, 17])
    def test_max_workers_bounds(self, workers: int):
        """Should keep max_workers within 1..16"""
        with pytest.raises(ValueError):
            EngineConfig(max_workers=workers)
