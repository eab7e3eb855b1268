"""
Ledger service contract and its HTTP implementation
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Optional, Protocol

from receipt_books.client.http_client import HttpClient
from receipt_books.config.engine_config import EngineConfig
from receipt_books.exceptions import BookError
from receipt_books.models.entry import AmountBreakdown


logger = logging.getLogger(__name__)

# Ledger payment-mode keys for each amount field
PAYMENT_MODE_KEYS = {
    "cash": "cashTeller1",
    "fonepay": "qrCode",
    "cheque": "chequeReceipt",
    "bank_deposit": "bankDeposit",
    "discount": "discount",
}

RECEIPTS_PATH = "/api/receipts"


@dataclass
class LedgerResult:
    """Outcome of one receipt-record creation"""
    success: bool
    record_id: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, record_id: Optional[str]) -> "LedgerResult":
        return cls(success=True, record_id=record_id)

    @classmethod
    def failed(cls, error: str) -> "LedgerResult":
        return cls(success=False, error=error)


class LedgerClient(Protocol):
    """Anything that can create a receipt record in the accounting ledger"""

    def create_receipt_record(
        self,
        party_name: str,
        entry_date: date,
        amounts: AmountBreakdown,
        narration: Optional[str] = None,
        voucher_number: Optional[str] = None,
    ) -> LedgerResult:
        ...


def build_receipt_payload(
    party_name: str,
    entry_date: date,
    amounts: AmountBreakdown,
    voucher_type: str,
    narration: Optional[str] = None,
    voucher_number: Optional[str] = None,
) -> Dict[str, Any]:
    """Ledger request body; zero amounts are left out"""
    return {
        "partyName": party_name,
        "voucherType": voucher_type,
        "voucherNumber": voucher_number,
        "narration": narration,
        "date": entry_date.strftime("%Y%m%d"),
        "paymentModes": {
            PAYMENT_MODE_KEYS[name]: value for name, value in amounts.nonzero().items()
        },
    }


class HttpLedgerClient:
    """
    Ledger client speaking JSON to the dashboard backend

    Never raises for a rejected or unreachable ledger: every failure comes
    back as a failed LedgerResult carrying the error message.
    """

    def __init__(
        self,
        config: EngineConfig,
        http_client: Optional[HttpClient] = None,
        path: str = RECEIPTS_PATH,
    ) -> None:
        self._config = config
        self._http = http_client or HttpClient(config)
        self._path = path

    def create_receipt_record(
        self,
        party_name: str,
        entry_date: date,
        amounts: AmountBreakdown,
        narration: Optional[str] = None,
        voucher_number: Optional[str] = None,
    ) -> LedgerResult:
        payload = build_receipt_payload(
            party_name,
            entry_date,
            amounts,
            self._config.voucher_type,
            narration=narration,
            voucher_number=voucher_number,
        )
        try:
            response = self._http.post(self._path, payload)
        except BookError as e:
            logger.warning(f"Ledger rejected receipt for {party_name}: {e.get_description()}")
            return LedgerResult.failed(str(e))

        data = response.data if isinstance(response.data, dict) else {}
        if not data.get("success", False):
            return LedgerResult.failed(data.get("error") or "Ledger did not confirm the receipt")

        record_id = data.get("voucherId") or data.get("masterId")
        return LedgerResult.ok(str(record_id) if record_id is not None else None)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "HttpLedgerClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
