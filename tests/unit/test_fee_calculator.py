"""Tests for billing/calculator.py: tiered fee calculation."""
from __future__ import annotations

import pytest

from wealthdesk.billing.calculator import (
    FeeCalculator,
    calculate_fee,
    default_tier_name,
    round_half_up,
)
from wealthdesk.billing.models import FeeSchedule, FeeTier
from wealthdesk.core.config import EngineConfig
from wealthdesk.core.exceptions import ValidationError, WealthDeskError


def _single_tier(rate: float) -> FeeSchedule:
    return FeeSchedule(tiers=[FeeTier(min_amount=0, rate=rate)])


# ---------------------------------------------------------------------------
# Rounding helpers
# ---------------------------------------------------------------------------


def test_round_half_up_rounds_ties_up() -> None:
    assert round_half_up(2.5, 0) == 3.0
    assert round_half_up(0.125, 2) == 0.13
    assert round_half_up(1.23444, 4) == 1.2344


def test_default_tier_name_bounded() -> None:
    tier = FeeTier(min_amount=0, max_amount=1_000_000, rate=1.0)
    assert default_tier_name(tier) == "Tier 0-1000000"


def test_default_tier_name_unbounded() -> None:
    tier = FeeTier(min_amount=5_000_000, rate=0.5)
    assert default_tier_name(tier) == "Tier 5000000-Infinity"


def test_default_tier_name_fractional_bound() -> None:
    tier = FeeTier(min_amount=250.5, max_amount=1000, rate=1.0)
    assert default_tier_name(tier) == "Tier 250.5-1000"


# ---------------------------------------------------------------------------
# Single-tier schedules
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("amount", "rate"),
    [(0, 1.0), (100_000, 1.0), (123_456.78, 0.85), (2_500_000, 0.25), (1, 100.0)],
)
def test_single_unbounded_tier_matches_simple_rate(amount: float, rate: float) -> None:
    result = calculate_fee(_single_tier(rate), amount)
    assert result.fee_amount == round_half_up(amount * rate / 100, 2)


def test_single_tier_breakdown_entry() -> None:
    result = calculate_fee(_single_tier(1.0), 250_000)
    assert len(result.breakdown) == 1
    entry = result.breakdown[0]
    assert entry.tier_name == "Tier 0-Infinity"
    assert entry.amount == 250_000
    assert entry.rate == 1.0
    assert entry.fee == pytest.approx(2500.0)
    assert result.effective_rate == 1.0


# ---------------------------------------------------------------------------
# Progressive tiers
# ---------------------------------------------------------------------------


def test_three_tier_schedule_two_million(three_tier_schedule: FeeSchedule) -> None:
    result = calculate_fee(three_tier_schedule, 2_000_000)
    assert result.fee_amount == 17_500
    assert len(result.breakdown) == 2
    assert [b.fee for b in result.breakdown] == pytest.approx([10_000, 7_500])
    assert [b.amount for b in result.breakdown] == [1_000_000, 1_000_000]
    assert result.effective_rate == 0.875


def test_three_tier_schedule_spans_all_tiers(three_tier_schedule: FeeSchedule) -> None:
    result = calculate_fee(three_tier_schedule, 10_000_000)
    # 10,000 + 30,000 + 25,000
    assert result.fee_amount == 65_000
    assert len(result.breakdown) == 3
    assert result.breakdown[-1].tier_name == "Tier 5000000-Infinity"


def test_tiers_evaluated_by_min_amount_not_display_order() -> None:
    schedule = FeeSchedule(
        tiers=[
            FeeTier(tier_name="top", min_amount=1_000_000, rate=0.5, display_order=0),
            FeeTier(tier_name="base", min_amount=0, max_amount=1_000_000, rate=1.0, display_order=1),
        ]
    )
    result = calculate_fee(schedule, 1_500_000)
    assert [b.tier_name for b in result.breakdown] == ["base", "top"]
    assert result.fee_amount == 12_500


def test_amount_below_tier_floor_skips_tier(three_tier_schedule: FeeSchedule) -> None:
    result = calculate_fee(three_tier_schedule, 500_000)
    assert len(result.breakdown) == 1
    assert result.fee_amount == 5_000


def test_gap_between_tiers_leaves_no_contribution_from_gap() -> None:
    schedule = FeeSchedule(
        tiers=[
            FeeTier(min_amount=0, max_amount=100, rate=10.0),
            FeeTier(min_amount=200, rate=1.0),
        ]
    )
    result = calculate_fee(schedule, 300)
    # The second tier starts at its own floor and takes everything left over.
    assert result.breakdown[0].amount == 100
    assert result.breakdown[0].fee == 10.0
    assert result.breakdown[1].amount == 200
    assert result.breakdown[1].fee == pytest.approx(2.0)
    assert result.fee_amount == 12.0


def test_flat_amount_overrides_rate() -> None:
    schedule = FeeSchedule(
        tiers=[
            FeeTier(tier_name="retainer", min_amount=0, max_amount=250_000, rate=2.0, flat_amount=1_500),
            FeeTier(tier_name="aum", min_amount=250_000, rate=1.0),
        ]
    )
    result = calculate_fee(schedule, 500_000)
    assert result.breakdown[0].fee == 1_500
    assert result.breakdown[0].amount == 250_000
    assert result.breakdown[1].fee == pytest.approx(2_500)
    assert result.fee_amount == 4_000


def test_zero_flat_amount_falls_back_to_rate() -> None:
    schedule = FeeSchedule(tiers=[FeeTier(min_amount=0, rate=1.0, flat_amount=0)])
    assert calculate_fee(schedule, 10_000).fee_amount == 100.0


def test_empty_tiers_yield_zero() -> None:
    result = calculate_fee(FeeSchedule(), 1_000_000)
    assert result.fee_amount == 0
    assert result.effective_rate == 0
    assert result.breakdown == []


def test_empty_tiers_still_apply_minimum() -> None:
    result = calculate_fee(FeeSchedule(minimum_fee=250), 1_000)
    assert result.fee_amount == 250
    assert result.breakdown == []
    assert result.effective_rate == 25.0


# ---------------------------------------------------------------------------
# Clamps and effective rate
# ---------------------------------------------------------------------------


def test_minimum_fee_clamp(three_tier_schedule: FeeSchedule) -> None:
    schedule = three_tier_schedule.model_copy(update={"minimum_fee": 5000})
    result = calculate_fee(schedule, 100_000)
    assert result.fee_amount == 5000
    assert result.breakdown[0].fee == pytest.approx(1000)
    assert result.effective_rate == 5.0


def test_maximum_fee_clamp(three_tier_schedule: FeeSchedule) -> None:
    schedule = three_tier_schedule.model_copy(update={"maximum_fee": 50_000})
    result = calculate_fee(schedule, 10_000_000)
    assert result.fee_amount == 50_000
    assert result.effective_rate == 0.5


def test_maximum_wins_when_minimum_exceeds_it(three_tier_schedule: FeeSchedule) -> None:
    schedule = three_tier_schedule.model_copy(update={"minimum_fee": 8_000, "maximum_fee": 6_000})
    assert calculate_fee(schedule, 100_000).fee_amount == 6_000


@pytest.mark.parametrize("minimum_fee", [None, 0, 5_000])
def test_zero_billable_has_zero_effective_rate(
    three_tier_schedule: FeeSchedule, minimum_fee: float | None
) -> None:
    schedule = three_tier_schedule.model_copy(update={"minimum_fee": minimum_fee})
    result = calculate_fee(schedule, 0)
    assert result.effective_rate == 0
    assert result.breakdown == []


def test_effective_rate_rounded_to_four_places() -> None:
    schedule = FeeSchedule(minimum_fee=1, tiers=[FeeTier(min_amount=0, rate=0.0)])
    result = calculate_fee(schedule, 3)
    assert result.effective_rate == 33.3333


# ---------------------------------------------------------------------------
# Preconditions and purity
# ---------------------------------------------------------------------------


def test_negative_billable_amount_rejected(three_tier_schedule: FeeSchedule) -> None:
    with pytest.raises(ValidationError) as exc_info:
        calculate_fee(three_tier_schedule, -1)
    assert exc_info.value.code == "BILLABLE_NEGATIVE"
    assert exc_info.value.status_code == 400
    assert isinstance(exc_info.value, WealthDeskError)


def test_schedule_not_mutated(three_tier_schedule: FeeSchedule) -> None:
    before = three_tier_schedule.model_dump()
    calculate_fee(three_tier_schedule, 7_500_000)
    assert three_tier_schedule.model_dump() == before


def test_calculator_uses_configured_precision() -> None:
    calc = FeeCalculator(EngineConfig(fee_decimals=0, rate_decimals=2))
    schedule = FeeSchedule(tiers=[FeeTier(min_amount=0, rate=0.333)])
    result = calc.calculate(schedule, 1_000)
    assert result.fee_amount == 3.0
    assert result.effective_rate == 0.33


def test_calculator_repr() -> None:
    assert "fee_decimals=2" in repr(FeeCalculator())
