"""Billing data models: fee tiers, fee schedules, calculations, fee history."""

from __future__ import annotations

from datetime import date, datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, Field

from wealthdesk.core.constants import BillingMethod, EntityType, FeeFrequency, FeeType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FeeTier(BaseModel):
    """One contiguous amount range of a fee schedule.

    ``rate`` is a percentage applied to the portion of the billable amount
    falling inside ``[min_amount, max_amount)``. When ``flat_amount`` is set
    the tier charges exactly that amount instead. ``display_order`` only
    affects presentation; tiers are always evaluated by ``min_amount``.
    """

    fee_type: FeeType = FeeType.AUM
    fee_frequency: FeeFrequency = FeeFrequency.QUARTERLY
    tier_name: str | None = None
    min_amount: float = Field(default=0.0, ge=0)
    max_amount: float | None = Field(default=None, ge=0)
    rate: float = Field(default=0.0, ge=0, le=100)
    flat_amount: float | None = Field(default=None, ge=0)
    notes: str | None = None
    display_order: int | None = None


class FeeSchedule(BaseModel):
    """A set of fee tiers plus optional minimum/maximum fee clamps."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    firm_id: str = ""
    entity_type: EntityType = EntityType.HOUSEHOLD
    entity_id: str = ""
    name: str | None = None
    description: str | None = None
    is_active: bool = True
    effective_date: date | None = None
    end_date: date | None = None
    billing_method: BillingMethod = BillingMethod.ARREARS
    minimum_fee: float | None = Field(default=None, ge=0)
    maximum_fee: float | None = Field(default=None, ge=0)
    tiers: list[FeeTier] = Field(default_factory=list)
    notes: str | None = None
    created_by: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class TierBreakdown(BaseModel):
    """The contribution of a single tier to a calculated fee."""

    tier_name: str
    amount: float
    rate: float
    fee: float


class FeeCalculation(BaseModel):
    """Result of applying a fee schedule to a billable amount.

    Attributes:
        fee_amount: Total fee after clamps, rounded to cents.
        effective_rate: ``fee_amount`` as a percentage of the billable
            amount, rounded to four decimals.
        breakdown: Per-tier contributions in evaluation order.
    """

    fee_amount: float
    effective_rate: float
    breakdown: list[TierBreakdown] = Field(default_factory=list)


class FeeHistoryRecord(BaseModel):
    """A fee charged (or to be charged) for one billing period."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    fee_schedule_id: str | None = None
    entity_type: EntityType
    entity_id: str
    billing_period_start: date
    billing_period_end: date
    billable_amount: float
    fee_amount: float
    effective_rate: float | None = None
    is_billed: bool = False
    billed_at: datetime | None = None
    invoice_number: str | None = None
    notes: str | None = None
    created_by: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
