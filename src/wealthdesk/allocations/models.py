"""Target asset allocation models."""

from __future__ import annotations

from datetime import date, datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, Field

from wealthdesk.core.constants import AssetClass, EntityType


class AllocationLineItem(BaseModel):
    """Target weight for one asset class, with an optional tolerance band."""

    asset_class: AssetClass
    custom_asset_class: str | None = None
    target_percentage: float = Field(ge=0, le=100)
    min_percentage: float | None = Field(default=None, ge=0, le=100)
    max_percentage: float | None = Field(default=None, ge=0, le=100)
    notes: str | None = None
    display_order: int | None = None


class TargetAllocation(BaseModel):
    """The target asset mix for a household, account or person."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    firm_id: str = ""
    entity_type: EntityType = EntityType.HOUSEHOLD
    entity_id: str = ""
    name: str | None = None
    description: str | None = None
    is_active: bool = True
    effective_date: date | None = None
    review_date: date | None = None
    notes: str | None = None
    line_items: list[AllocationLineItem] = Field(default_factory=list)
    created_by: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total_percentage(self) -> float:
        """Sum of ``target_percentage`` across all line items."""
        return sum(item.target_percentage for item in self.line_items)
