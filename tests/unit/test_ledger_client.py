"""
Ledger client and HTTP transport unit tests
"""

import json
from datetime import date
from typing import List

import pytest
import requests

from receipt_books import (
    AmountBreakdown,
    BookError,
    EngineConfig,
    HttpClient,
    HttpLedgerClient,
    LedgerError,
    NetworkError,
)
from receipt_books.client.http_client import CircuitBreakerConfig, CircuitState
from receipt_books.client.ledger_client import build_receipt_payload


def make_response(status: int, body: dict) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response._content = json.dumps(body).encode("utf-8")
    response.headers["Content-Type"] = "application/json"
    response.url = "http://ledger.test/api/receipts"
    return response


class StubTransport:
    """Replays canned responses in place of Session.request"""

    def __init__(self, *responses) -> None:
        self.responses: List = list(responses)
        self.requests: List[dict] = []

    def __call__(self, method, url, json=None, headers=None, timeout=None):
        self.requests.append({"method": method, "url": url, "json": json, "headers": headers})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig(
        ledger_base_url="http://ledger.test/",
        ledger_api_key="secret-key",
        retry_attempts=2,
        retry_delay=1,
    )


class TestReceiptPayload:
    """Tests for build_receipt_payload"""

    def test_maps_payment_modes_and_drops_zero_amounts(self):
        payload = build_receipt_payload(
            "Ram Traders",
            date(2024, 5, 1),
            AmountBreakdown(cash=100, fonepay=20.5, bank_deposit=0, discount=5),
            "Dashboard Receipt",
            narration="Collection Post - Book #3 Rcpt #12 by Hari",
            voucher_number="12",
        )

        assert payload == {
            "partyName": "Ram Traders",
            "voucherType": "Dashboard Receipt",
            "voucherNumber": "12",
            "narration": "Collection Post - Book #3 Rcpt #12 by Hari",
            "date": "20240501",
            "paymentModes": {"cashTeller1": 100, "qrCode": 20.5, "discount": 5},
        }

    def test_cheque_and_bank_deposit_keys(self):
        payload = build_receipt_payload(
            "Ram Traders", date(2024, 5, 1), AmountBreakdown(cheque=10, bank_deposit=20), "R"
        )
        assert payload["paymentModes"] == {"chequeReceipt": 10, "bankDeposit": 20}


class TestHttpLedgerClient:
    """Tests for HttpLedgerClient"""

    def test_successful_receipt(self, config: EngineConfig, monkeypatch):
        http = HttpClient(config)
        transport = StubTransport(make_response(200, {"success": True, "voucherId": 881}))
        monkeypatch.setattr(http._session, "request", transport)
        client = HttpLedgerClient(config, http_client=http)

        result = client.create_receipt_record(
            "Ram Traders", date(2024, 5, 1), AmountBreakdown(cash=100), voucher_number="7"
        )

        assert result.success is True
        assert result.record_id == "881"
        sent = transport.requests[0]
        assert sent["method"] == "POST"
        assert sent["url"] == "http://ledger.test/api/receipts"
        assert sent["json"]["voucherNumber"] == "7"
        assert sent["headers"]["X-Request-ID"].startswith("rb-")
        assert http._session.headers["X-API-Key"] == "secret-key"

    def test_master_id_fallback(self, config: EngineConfig, monkeypatch):
        http = HttpClient(config)
        monkeypatch.setattr(
            http._session, "request",
            StubTransport(make_response(200, {"success": True, "masterId": "M-1"})),
        )
        result = HttpLedgerClient(config, http_client=http).create_receipt_record(
            "Ram Traders", date(2024, 5, 1), AmountBreakdown(cash=100)
        )
        assert result.record_id == "M-1"

    def test_unconfirmed_receipt_fails(self, config: EngineConfig, monkeypatch):
        http = HttpClient(config)
        monkeypatch.setattr(
            http._session, "request",
            StubTransport(make_response(200, {"success": False, "error": "Unknown party"})),
        )
        result = HttpLedgerClient(config, http_client=http).create_receipt_record(
            "Nobody", date(2024, 5, 1), AmountBreakdown(cash=100)
        )
        assert result.success is False
        assert result.error == "Unknown party"

    def test_rejection_becomes_failed_result(self, config: EngineConfig, monkeypatch):
        http = HttpClient(config)
        monkeypatch.setattr(
            http._session, "request",
            StubTransport(make_response(400, {"error": "Voucher already exists"})),
        )
        result = HttpLedgerClient(config, http_client=http).create_receipt_record(
            "Ram Traders", date(2024, 5, 1), AmountBreakdown(cash=100)
        )
        assert result.success is False
        assert "Voucher already exists" in result.error

    def test_read_timeout_posts_once(self, config: EngineConfig, monkeypatch):
        http = HttpClient(config)
        transport = StubTransport(
            requests.exceptions.ReadTimeout("read timed out"),
            make_response(200, {"success": True, "voucherId": 1}),
        )
        monkeypatch.setattr(http._session, "request", transport)

        result = HttpLedgerClient(config, http_client=http).create_receipt_record(
            "Ram Traders", date(2024, 5, 1), AmountBreakdown(cash=100), voucher_number="7"
        )

        assert result.success is False
        assert len(transport.requests) == 1


class TestHttpClient:
    """Tests for HttpClient retries and circuit breaker"""

    def test_requires_base_url(self):
        with pytest.raises(BookError) as exc_info:
            HttpClient(EngineConfig())
        assert exc_info.value.code == "CONFIG_LEDGER_URL"

    def test_retries_server_errors_on_get(self, config: EngineConfig, monkeypatch):
        client = HttpClient(config)
        transport = StubTransport(
            make_response(503, {"error": "busy"}),
            make_response(200, {"success": True}),
        )
        monkeypatch.setattr(client._session, "request", transport)

        response = client.get("/api/health")

        assert response.status == 200
        assert response.data == {"success": True}
        assert len(transport.requests) == 2
        assert client.circuit_state == CircuitState.CLOSED

    def test_post_not_resent_after_server_error(self, config: EngineConfig, monkeypatch):
        client = HttpClient(config)
        transport = StubTransport(
            make_response(503, {"error": "busy"}),
            make_response(200, {"success": True}),
        )
        monkeypatch.setattr(client._session, "request", transport)

        with pytest.raises(LedgerError) as exc_info:
            client.post("/api/receipts", {"partyName": "Ram Traders"})

        assert exc_info.value.status_code == 503
        assert len(transport.requests) == 1

    def test_post_resent_after_rate_limit(self, config: EngineConfig, monkeypatch):
        client = HttpClient(config)
        transport = StubTransport(
            make_response(429, {"error": "slow down"}),
            make_response(200, {"success": True}),
        )
        monkeypatch.setattr(client._session, "request", transport)

        response = client.post("/api/receipts", {"partyName": "Ram Traders"})

        assert response.status == 200
        assert len(transport.requests) == 2

    def test_post_resent_when_never_connected(self, config: EngineConfig, monkeypatch):
        client = HttpClient(config)
        transport = StubTransport(
            requests.exceptions.ConnectTimeout("connect timed out"),
            make_response(200, {"success": True}),
        )
        monkeypatch.setattr(client._session, "request", transport)

        assert client.post("/api/receipts", {}).status == 200
        assert len(transport.requests) == 2

    def test_client_errors_are_not_retried(self, config: EngineConfig, monkeypatch):
        client = HttpClient(config)
        transport = StubTransport(make_response(400, {"message": "Bad date"}))
        monkeypatch.setattr(client._session, "request", transport)

        with pytest.raises(LedgerError) as exc_info:
            client.post("/api/receipts", {})

        assert exc_info.value.status_code == 400
        assert "Bad date" in str(exc_info.value)
        assert len(transport.requests) == 1

    def test_connection_error_becomes_network_error(self, config: EngineConfig, monkeypatch):
        client = HttpClient(config.model_copy(update={"retry_attempts": 0}))
        monkeypatch.setattr(
            client._session, "request",
            StubTransport(requests.exceptions.ConnectionError("refused")),
        )

        with pytest.raises(NetworkError) as exc_info:
            client.get("/api/health")
        assert exc_info.value.retryable is True

    def test_circuit_opens_after_repeated_failures(self, config: EngineConfig, monkeypatch):
        client = HttpClient(
            config.model_copy(update={"retry_attempts": 0}),
            CircuitBreakerConfig(failure_threshold=2),
        )
        transport = StubTransport(
            make_response(500, {"error": "down"}),
            make_response(500, {"error": "down"}),
        )
        monkeypatch.setattr(client._session, "request", transport)

        for _ in range(2):
            with pytest.raises(LedgerError):
                client.post("/api/receipts", {})

        assert client.circuit_state == CircuitState.OPEN
        with pytest.raises(NetworkError) as exc_info:
            client.post("/api/receipts", {})
        assert exc_info.value.code == "NET05"
        assert len(transport.requests) == 2

        client.reset_circuit_breaker()
        assert client.circuit_state == CircuitState.CLOSED

    def test_audit_callback_redacts_secrets(self, config: EngineConfig, monkeypatch):
        client = HttpClient(config)
        monkeypatch.setattr(
            client._session, "request",
            StubTransport(make_response(200, {"success": True})),
        )
        entries = []
        client.set_audit_log_callback(entries.append)

        client.post("/api/receipts", {"partyName": "Ram Traders", "api_key": "x"})

        assert len(entries) == 1
        assert entries[0].success is True
        assert entries[0].status == 200
        assert entries[0].body == {"partyName": "Ram Traders", "api_key": "[REDACTED]"}
