from datetime import time
from pydantic import AliasChoices, Field, field_validator
from typing import Optional

from .base import WireModel


class CashSession(WireModel):
    """
    A till session bookended by open and close.
    expected_amount and discrepancy are computed by the server on close;
    discrepancy = closing_amount - expected_amount (positive is a surplus).
    """
    id: int
    user_id: Optional[int] = None
    opening_amount: float = 0.0
    closing_amount: Optional[float] = None
    expected_amount: Optional[float] = None
    discrepancy: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("discrepancy", "difference"),
    )
    opened_at: Optional[int] = None         # unix seconds
    closed_at: Optional[int] = None
    notes: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.closed_at is None


class StoreSettings(WireModel):
    """Store configuration consumed by the cash session gate."""
    auto_cash_close: bool = False
    closing_time: Optional[str] = None      # "HH:MM", local clock

    @field_validator("closing_time")
    @classmethod
    def validate_closing_time(cls, v):
        """Normalise to zero-padded HH:MM so it compares against strftime("%H:%M")."""
        if v is None or str(v).strip() == "":
            return None
        try:
            hours, minutes = str(v).strip().split(":")
            return time(int(hours), int(minutes)).strftime("%H:%M")
        except ValueError:
            raise ValueError(f"closing_time must be HH:MM, got {v!r}")
