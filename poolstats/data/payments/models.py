"""Pydantic models for ledger records."""

# Pydantic needs these at runtime to validate the fields
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class Payment(BaseModel):
    """Payout record from the payments ledger."""

    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    pool_id: str
    coin: str = ""
    address: str
    amount: Decimal
    transaction_confirmation_data: str = ""
    created: datetime


__all__ = ["Payment"]
