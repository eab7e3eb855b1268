"""Receipt book models"""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class BookStatus(str, Enum):
    """Lifecycle status of a receipt book"""
    INACTIVE = "inactive"
    READY = "ready"
    ASSIGNED = "assigned"
    RETURNED = "returned"
    POSTED = "posted"


class NumberingMode(str, Enum):
    """How a bulk page range is split into books"""
    SEQUENTIAL = "sequential"
    RESTART = "restart"


class CycleSummary(BaseModel):
    """Staff-declared expected totals for one cycle"""

    entry_count: int = Field(..., description="Declared number of receipts", gt=0)
    cash: float = Field(0.0, description="Declared cash", ge=0)
    fonepay: float = Field(0.0, description="Declared Fonepay/QR wallet amount", ge=0)
    cheque: float = Field(0.0, description="Declared cheque amount", ge=0)
    bank_deposit: float = Field(0.0, description="Declared bank deposit amount", ge=0)
    discount: float = Field(0.0, description="Declared discount", ge=0)
    locked: bool = Field(True, description="Read-only until explicitly unlocked")
    entered_at: Optional[datetime] = Field(None, description="When the summary was saved")

    @property
    def total(self) -> float:
        return round(
            self.cash + self.fonepay + self.cheque + self.bank_deposit + self.discount, 2
        )


class ReceiptBook(BaseModel):
    """
    A numbered range of receipt pages issued to collection staff

    ``available_from`` is the next unused page. It may run one past
    ``page_end``, at which point the book is exhausted for the cycle.
    """

    id: str = Field(..., description="Opaque book identifier", min_length=1)
    book_number: int = Field(..., description="Running book number", ge=1)
    page_start: int = Field(..., description="First page number", ge=1)
    page_end: int = Field(..., description="Last page number", ge=1)
    book_label: Optional[str] = Field(None, description="Display label, e.g. 'SET1-A'")
    numbering_mode: NumberingMode = Field(NumberingMode.SEQUENTIAL)
    batch_id: Optional[str] = Field(None, description="Bulk allocation this book came from")
    status: BookStatus = Field(BookStatus.READY)
    assigned_to: Optional[str] = Field(None, description="Staff holding the book")
    route_name: Optional[str] = Field(None, description="Collection route")
    assigned_date: Optional[date] = None
    returned_date: Optional[date] = None
    notes: Optional[str] = None
    available_from: int = Field(..., description="Next unused page number")
    current_cycle: int = Field(0, ge=0)
    summary: Optional[CycleSummary] = None
    current_cycle_entries: int = Field(0, ge=0)
    current_cycle_success: int = Field(0, ge=0)
    current_cycle_total: float = Field(0.0)
    created_at: Optional[datetime] = None

    model_config = {
        "validate_assignment": True,
    }

    @field_validator("book_label", "assigned_to", "route_name")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v.strip() == "":
            return None
        return v.strip() if v is not None else v

    @model_validator(mode="after")
    def check_page_bounds(self) -> "ReceiptBook":
        """Enforce page_start <= available_from <= page_end + 1"""
        if self.page_end < self.page_start:
            raise ValueError("page_end must not be less than page_start")
        if not self.page_start <= self.available_from <= self.page_end + 1:
            raise ValueError(
                f"available_from {self.available_from} outside "
                f"[{self.page_start}, {self.page_end + 1}]"
            )
        return self

    @property
    def pages(self) -> int:
        return self.page_end - self.page_start + 1

    @property
    def remaining_pages(self) -> int:
        return self.page_end - self.available_from + 1

    @property
    def is_exhausted(self) -> bool:
        return self.available_from > self.page_end

    @property
    def in_field(self) -> bool:
        """Assigned or returned, i.e. out with staff for the current cycle"""
        return self.status in (BookStatus.ASSIGNED, BookStatus.RETURNED)

    def contains_page(self, page: int) -> bool:
        return self.page_start <= page <= self.page_end

    def start_new_cycle(self) -> None:
        """Move to the next cycle and drop everything tied to the old one"""
        self.current_cycle += 1
        self.summary = None
        self.assigned_to = None
        self.route_name = None
        self.assigned_date = None
        self.returned_date = None
        self.current_cycle_entries = 0
        self.current_cycle_success = 0
        self.current_cycle_total = 0.0
        self.status = BookStatus.READY
