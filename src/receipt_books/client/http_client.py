"""
HTTP transport layer for the ledger backend
Retries with exponential backoff, a circuit breaker and pooled connections
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

import requests
from requests.adapters import HTTPAdapter

from receipt_books.config.engine_config import EngineConfig
from receipt_books.exceptions import BookError, LedgerError, NetworkError


logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    """Circuit breaker states"""
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass
class CircuitBreakerConfig:
    """Circuit breaker configuration"""
    failure_threshold: int = 5
    recovery_timeout: int = 30000  # milliseconds
    success_threshold: int = 2


@dataclass
class HttpResponse:
    """HTTP response wrapper"""
    data: Any
    status: int
    duration: int  # milliseconds
    request_id: str


@dataclass
class HttpAuditEntry:
    """Audit record for one HTTP attempt"""
    timestamp: str
    request_id: str
    method: str
    url: str
    body: Optional[Any] = None
    status: Optional[int] = None
    duration: int = 0
    success: bool = False
    error: Optional[str] = None
    attempt: int = 0


# Keys whose values never reach the audit callback
SENSITIVE_FIELDS = ("authorization", "x-api-key", "api_key", "password", "token")

RETRYABLE_STATUSES = (408, 429, 500, 502, 503, 504)

# Methods that may be re-sent after the server could have processed them
IDEMPOTENT_METHODS = ("GET", "HEAD", "OPTIONS", "PUT", "DELETE")


class HttpClient:
    """
    JSON-over-HTTP client for the ledger REST backend

    Thread-safe: per-entry postings share one client from several
    worker threads, so circuit-breaker bookkeeping is lock-guarded.

    Example:
        >>> client = HttpClient(EngineConfig(ledger_base_url="http://localhost:3001"))
        >>> client.post("/api/receipts", {"partyName": "Ram Traders"}).data
    """

    def __init__(
        self,
        config: EngineConfig,
        circuit_breaker_config: Optional[CircuitBreakerConfig] = None,
    ) -> None:
        if not config.ledger_base_url:
            raise BookError(
                "ledger_base_url is required for the HTTP ledger client",
                code="CONFIG_LEDGER_URL",
            )
        self.config = config
        self.circuit_config = circuit_breaker_config or CircuitBreakerConfig()

        self._lock = threading.Lock()
        self._circuit_state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at = 0.0

        self._audit_log_callback: Optional[Callable[[HttpAuditEntry], None]] = None
        self._session = self._create_session()

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
        })
        if self.config.ledger_api_key:
            session.headers["X-API-Key"] = self.config.ledger_api_key

        # retries are handled in _execute_with_retry
        adapter = HTTPAdapter(pool_connections=4, pool_maxsize=16, max_retries=0)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    @staticmethod
    def _generate_request_id() -> str:
        timestamp = hex(int(time.time() * 1000))[2:]
        return f"rb-{timestamp}-{uuid.uuid4().hex[:8]}"

    def _redact(self, obj: Any) -> Any:
        if isinstance(obj, list):
            return [self._redact(item) for item in obj]
        if isinstance(obj, dict):
            return {
                key: "[REDACTED]"
                if any(s in key.lower() for s in SENSITIVE_FIELDS)
                else self._redact(value)
                for key, value in obj.items()
            }
        return obj

    # ============ Circuit breaker ============

    def _check_circuit_breaker(self) -> None:
        with self._lock:
            if self._circuit_state != CircuitState.OPEN:
                return
            elapsed = (time.time() * 1000) - self._opened_at
            if elapsed >= self.circuit_config.recovery_timeout:
                self._circuit_state = CircuitState.HALF_OPEN
                self._success_count = 0
                logger.info("Ledger circuit breaker HALF_OPEN")
                return
            retry_after = int((self.circuit_config.recovery_timeout - elapsed) / 1000)
        raise NetworkError.circuit_breaker_open(retry_after)

    def _record_success(self) -> None:
        with self._lock:
            if self._circuit_state == CircuitState.HALF_OPEN:
                self._success_count += 1
                if self._success_count >= self.circuit_config.success_threshold:
                    self._circuit_state = CircuitState.CLOSED
                    self._failure_count = 0
                    logger.info("Ledger circuit breaker CLOSED after recovery")
            else:
                self._failure_count = 0

    def _record_failure(self) -> None:
        with self._lock:
            if self._circuit_state == CircuitState.HALF_OPEN:
                self._circuit_state = CircuitState.OPEN
                self._opened_at = time.time() * 1000
                logger.warning("Ledger circuit breaker REOPENED")
            elif self._circuit_state == CircuitState.CLOSED:
                self._failure_count += 1
                if self._failure_count >= self.circuit_config.failure_threshold:
                    self._circuit_state = CircuitState.OPEN
                    self._opened_at = time.time() * 1000
                    logger.warning(
                        f"Ledger circuit breaker OPENED after {self._failure_count} failures"
                    )

    # ============ Requests ============

    def _retry_delay(self, attempt: int) -> float:
        """Seconds to wait before the next attempt, capped at 16s"""
        return min(self.config.retry_delay * (2 ** attempt), 16000) / 1000.0

    @staticmethod
    def _is_retryable(error: BookError) -> bool:
        if isinstance(error, NetworkError):
            return error.retryable
        return error.status_code in RETRYABLE_STATUSES

    @staticmethod
    def _can_resend(
        method: str,
        error: requests.exceptions.RequestException,
        response: Optional[requests.Response] = None,
    ) -> bool:
        """
        Whether a failed attempt may be sent again

        A POST creates a ledger record, so it is only re-sent when the
        request never reached the server or the server refused it with 429.
        """
        if method.upper() in IDEMPOTENT_METHODS:
            return True
        if isinstance(error, requests.exceptions.ConnectTimeout):
            return True
        return response is not None and response.status_code == 429

    @staticmethod
    def _normalize_error(
        error: Exception, response: Optional[requests.Response] = None
    ) -> BookError:
        if isinstance(error, BookError):
            return error
        if isinstance(error, requests.exceptions.Timeout):
            return NetworkError.timeout()
        if isinstance(error, requests.exceptions.ConnectionError):
            return NetworkError.connection_refused(f"Connection error: {error}")
        if isinstance(error, requests.exceptions.HTTPError) and response is not None:
            try:
                data = response.json()
                message = data.get("error") or data.get("message") or str(error)
            except (ValueError, AttributeError):
                message = str(error)
            return LedgerError(message, status_code=response.status_code, cause=error)
        return NetworkError(f"Request error: {error}")

    def _audit(
        self,
        method: str,
        url: str,
        body: Any,
        request_id: str,
        started: float,
        attempt: int,
        response: Optional[requests.Response] = None,
        error: Optional[Exception] = None,
    ) -> None:
        if not (self.config.enable_audit_log and self._audit_log_callback):
            return
        self._audit_log_callback(HttpAuditEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            request_id=request_id,
            method=method,
            url=url,
            body=self._redact(body),
            status=response.status_code if response is not None else None,
            duration=int((time.time() - started) * 1000),
            success=error is None,
            error=str(error) if error else None,
            attempt=attempt,
        ))

    def _execute_with_retry(self, method: str, path: str, data: Optional[Any]) -> HttpResponse:
        self._check_circuit_breaker()

        url = f"{self.config.ledger_base_url}{path}"
        timeout_seconds = self.config.timeout / 1000.0
        max_attempts = self.config.retry_attempts + 1

        for attempt in range(max_attempts):
            started = time.time()
            request_id = self._generate_request_id()
            response: Optional[requests.Response] = None

            try:
                response = self._session.request(
                    method,
                    url,
                    json=data,
                    headers={"X-Request-ID": request_id},
                    timeout=timeout_seconds,
                )
                response.raise_for_status()
            except requests.exceptions.RequestException as e:
                self._audit(method, url, data, request_id, started, attempt, response, e)
                error = self._normalize_error(e, response)
                retryable = self._is_retryable(error)
                # only retryable failures count towards opening the circuit
                if retryable:
                    self._record_failure()

                if (
                    attempt < max_attempts - 1
                    and retryable
                    and self._can_resend(method, e, response)
                ):
                    delay = self._retry_delay(attempt)
                    logger.warning(
                        f"Ledger request failed (attempt {attempt + 1}/{max_attempts}), "
                        f"retrying in {delay:.2f}s: {error}"
                    )
                    time.sleep(delay)
                    continue
                raise error from e

            self._record_success()
            self._audit(method, url, data, request_id, started, attempt, response)
            try:
                payload = response.json()
            except ValueError:
                payload = response.text

            return HttpResponse(
                data=payload,
                status=response.status_code,
                duration=int((time.time() - started) * 1000),
                request_id=request_id,
            )

        raise BookError("Unknown error occurred", code="NET10")

    def get(self, path: str) -> HttpResponse:
        return self._execute_with_retry("GET", path, None)

    def post(self, path: str, data: Optional[Any] = None) -> HttpResponse:
        return self._execute_with_retry("POST", path, data)

    def set_audit_log_callback(self, callback: Callable[[HttpAuditEntry], None]) -> None:
        self._audit_log_callback = callback

    @property
    def circuit_state(self) -> CircuitState:
        return self._circuit_state

    def reset_circuit_breaker(self) -> None:
        """Reset circuit breaker to closed state"""
        with self._lock:
            self._circuit_state = CircuitState.CLOSED
            self._failure_count = 0
            self._success_count = 0
            self._opened_at = 0.0
        logger.info("Ledger circuit breaker manually reset")

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
