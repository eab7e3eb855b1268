"""Collection entry models"""

from datetime import date, datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field


class AmountBreakdown(BaseModel):
    """Amounts per payment mode for one receipt"""

    cash: float = Field(0.0, ge=0)
    fonepay: float = Field(0.0, ge=0)
    cheque: float = Field(0.0, ge=0)
    bank_deposit: float = Field(0.0, ge=0)
    discount: float = Field(0.0, ge=0)

    @property
    def total(self) -> float:
        return round(
            self.cash + self.fonepay + self.cheque + self.bank_deposit + self.discount, 2
        )

    def nonzero(self) -> Dict[str, float]:
        """Payment modes with a positive amount"""
        return {k: v for k, v in self.model_dump().items() if v > 0}


class CollectionEntry(BaseModel):
    """One receipt line in a posting session, not yet committed"""

    receipt_number: Optional[int] = Field(None, description="Page number of the receipt")
    party_name: str = Field("", description="Ledger party the money came from")
    cash: float = Field(0.0, ge=0)
    fonepay: float = Field(0.0, ge=0)
    cheque: float = Field(0.0, ge=0)
    bank_deposit: float = Field(0.0, ge=0)
    discount: float = Field(0.0, ge=0)

    model_config = {
        "str_strip_whitespace": True,
    }

    @property
    def amounts(self) -> AmountBreakdown:
        return AmountBreakdown(
            cash=self.cash,
            fonepay=self.fonepay,
            cheque=self.cheque,
            bank_deposit=self.bank_deposit,
            discount=self.discount,
        )

    @property
    def total(self) -> float:
        return self.amounts.total

    @property
    def is_valid(self) -> bool:
        return bool(self.party_name) and self.total > 0

    @classmethod
    def blank(cls, receipt_number: Optional[int]) -> "CollectionEntry":
        return cls(receipt_number=receipt_number)


class PostedEntry(BaseModel):
    """
    Append-only record of one attempt to post a receipt

    Keyed by (book_id, cycle, receipt_number, attempt). A failed attempt
    keeps the full amount breakdown so the row can be pre-filled on retry.
    """

    book_id: str
    cycle: int = Field(..., ge=0)
    receipt_number: int
    attempt: int = Field(1, ge=1)
    party_name: str
    entry_date: date
    staff_name: Optional[str] = None
    amounts: AmountBreakdown
    success: bool
    external_record_id: Optional[str] = None
    error: Optional[str] = None
    posted_at: datetime

    @property
    def total(self) -> float:
        return self.amounts.total

    def to_entry(self) -> CollectionEntry:
        """Rebuild an editable row from this attempt"""
        return CollectionEntry(
            receipt_number=self.receipt_number,
            party_name=self.party_name,
            **self.amounts.model_dump(),
        )
