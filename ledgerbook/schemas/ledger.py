"""
Ledgerbook - Ledger Schemas
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ledgerbook.models.accounting import SplitSide


class LedgerCreate(BaseModel):
    owner_name: str = Field(..., min_length=1, max_length=200)
    name: str = Field(..., min_length=1, max_length=200)
    currency_code: Optional[str] = Field(None, min_length=3, max_length=10)
    precision: Optional[int] = Field(None, ge=0, le=8)
    import_chart: bool = True


class LedgerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    currency_code: str
    precision: int
    is_active: bool
    owner_id: Optional[UUID] = None
    root_account_id: Optional[UUID] = None
    created_at: Optional[datetime] = None


class SplitLine(BaseModel):
    """One line of a transaction to record."""
    account_id: UUID
    side: SplitSide
    amount: Decimal = Field(..., ge=0)
    memo: Optional[str] = None


class TransactionCreate(BaseModel):
    post_date: date
    description: Optional[str] = None
    num: Optional[str] = None
    lines: List[SplitLine] = Field(..., min_length=2)


class TransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    ledger_id: UUID
    post_date: date
    description: Optional[str] = None
    num: Optional[str] = None
