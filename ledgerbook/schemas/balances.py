"""
Ledgerbook - Balance & Account Tree Schemas

Presentation-facing shapes for the balance map and the materialized
account tree.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel


class AccountBalanceItem(BaseModel):
    account_id: UUID
    code: str
    name: str
    kind: Optional[int] = None
    own: Decimal
    total: Decimal
    display_total: Decimal


class BalanceReport(BaseModel):
    ledger_id: UUID
    include_descendants: bool
    computed_at: datetime
    balances: Dict[UUID, AccountBalanceItem]


class AccountTreeNode(BaseModel):
    id: UUID
    code: str
    name: str
    kind: Optional[int] = None
    role: Optional[int] = None
    role_label: Optional[str] = None
    is_placeholder: bool
    own: Optional[Decimal] = None
    total: Optional[Decimal] = None
    display_total: Optional[Decimal] = None
    children: List["AccountTreeNode"] = []


AccountTreeNode.model_rebuild()
