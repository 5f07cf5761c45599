"""Tiered fee calculation.

A schedule's tiers are applied progressively: each tier charges for the
slice of the billable amount that falls between its floor and ceiling,
then the total is clamped to the schedule's minimum and maximum fee.
"""

from __future__ import annotations

import math

import structlog

from wealthdesk.billing.models import FeeCalculation, FeeSchedule, FeeTier, TierBreakdown
from wealthdesk.core.config import EngineConfig
from wealthdesk.core.exceptions import ValidationError

logger = structlog.get_logger(__name__)


def round_half_up(value: float, places: int) -> float:
    """Round *value* to *places* decimals, ties towards positive infinity."""
    factor = 10**places
    return math.floor(value * factor + 0.5) / factor


def _format_bound(value: float) -> str:
    if math.isinf(value):
        return "Infinity"
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def default_tier_name(tier: FeeTier) -> str:
    """Label used in the breakdown for a tier without a ``tier_name``."""
    tier_max = tier.max_amount if tier.max_amount else math.inf
    return f"Tier {_format_bound(tier.min_amount)}-{_format_bound(tier_max)}"


class FeeCalculator:
    """Applies a :class:`FeeSchedule` to a billable amount.

    The calculator is stateless apart from its rounding configuration and
    never mutates the schedule it is given.

    Args:
        config: Optional :class:`EngineConfig`; only ``fee_decimals`` and
            ``rate_decimals`` are used.
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        cfg = config or EngineConfig()
        self._fee_decimals = cfg.fee_decimals
        self._rate_decimals = cfg.rate_decimals

    def __repr__(self) -> str:
        return (
            f"FeeCalculator(fee_decimals={self._fee_decimals}, "
            f"rate_decimals={self._rate_decimals})"
        )

    def calculate(self, schedule: FeeSchedule, billable_amount: float) -> FeeCalculation:
        """Calculate the fee owed on *billable_amount* under *schedule*.

        Raises:
            ValidationError: If *billable_amount* is negative.
        """
        if billable_amount < 0:
            raise ValidationError(
                "Billable amount must not be negative",
                code="BILLABLE_NEGATIVE",
                details={"billable_amount": billable_amount},
            )

        total_fee = 0.0
        remaining = float(billable_amount)
        breakdown: list[TierBreakdown] = []

        # sorted() is stable, so equal floors keep their input order.
        for tier in sorted(schedule.tiers, key=lambda t: t.min_amount):
            if remaining <= 0:
                break
            if billable_amount < tier.min_amount:
                continue

            tier_max = tier.max_amount if tier.max_amount else math.inf
            already_allocated = billable_amount - remaining
            amount_in_tier = min(remaining, tier_max - max(tier.min_amount, already_allocated))
            if amount_in_tier <= 0:
                continue

            if tier.flat_amount:
                tier_fee = tier.flat_amount
            else:
                tier_fee = amount_in_tier * (tier.rate / 100)

            breakdown.append(
                TierBreakdown(
                    tier_name=tier.tier_name or default_tier_name(tier),
                    amount=amount_in_tier,
                    rate=tier.rate,
                    fee=tier_fee,
                )
            )
            total_fee += tier_fee
            remaining -= amount_in_tier

        # Minimum first, then maximum: the maximum wins if they conflict.
        if schedule.minimum_fee and total_fee < schedule.minimum_fee:
            total_fee = schedule.minimum_fee
        if schedule.maximum_fee and total_fee > schedule.maximum_fee:
            total_fee = schedule.maximum_fee

        effective_rate = (total_fee / billable_amount) * 100 if billable_amount > 0 else 0.0

        result = FeeCalculation(
            fee_amount=round_half_up(total_fee, self._fee_decimals),
            effective_rate=round_half_up(effective_rate, self._rate_decimals),
            breakdown=breakdown,
        )
        logger.debug(
            "fee_calculated",
            schedule_id=schedule.id,
            billable_amount=billable_amount,
            fee_amount=result.fee_amount,
            tiers_applied=len(breakdown),
        )
        return result


def calculate_fee(schedule: FeeSchedule, billable_amount: float) -> FeeCalculation:
    """Calculate a fee with the default rounding (cents / four-decimal rate)."""
    return FeeCalculator().calculate(schedule, billable_amount)
