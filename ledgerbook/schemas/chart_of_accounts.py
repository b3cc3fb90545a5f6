"""
Ledgerbook - Chart of Accounts Schemas

Pydantic schemas for chart-of-accounts import rows and import results.
Rows accept the camelCase field names of the external JSON format as well
as snake_case names.
"""

from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class DuplicateCodePolicy(str, Enum):
    """What to do when two import rows share a normalized code."""
    FAIL = "fail"
    OVERWRITE = "overwrite"  # Last row wins


class ChartAccountRow(BaseModel):
    """A single row of an external chart-of-accounts source."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=False)

    code: str = Field(..., max_length=60, description="Account code, the import key")
    parent_code: Optional[str] = Field(None, alias="parentCode", max_length=60)
    name: str = Field(..., max_length=200)
    level: int = Field(..., ge=0, description="Depth hint; 0 marks the root row")
    kind: int = Field(..., ge=1, le=5, description="1=Asset .. 5=Expense")
    role: int = Field(..., ge=1, le=12, description="1=Asset .. 12=Expense")
    notes: Optional[str] = None
    is_placeholder: Optional[bool] = Field(
        None, alias="isPlaceholder",
        description="Hint only; placeholder status is derived from children",
    )

    @property
    def is_root_row(self) -> bool:
        return self.level == 0 and not (self.parent_code or "").strip()


class ImportSummary(BaseModel):
    """Outcome of one chart-of-accounts import."""
    ledger_id: UUID
    root_account_id: UUID
    root_code: str
    rows_received: int = 0
    rows_skipped: int = 0
    created: int = 0
    updated: int = 0
    placeholders: int = 0
    orphans: int = 0  # Rows without a parent code, attached to the root
    total_accounts: int = 0
