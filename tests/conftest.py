"""Shared test fixtures."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from wealthdesk.billing.models import FeeSchedule, FeeTier
from wealthdesk.core.constants import TemplateStatus
from wealthdesk.workflows.models import TaskStep, WorkflowTemplate


class FakeClock:
    """Deterministic clock; call :meth:`tick` to move time forward."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def tick(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def three_tier_schedule() -> FeeSchedule:
    """1% to $1M, 0.75% to $5M, 0.5% above."""
    return FeeSchedule(
        firm_id="firm-1",
        entity_id="hh-1",
        tiers=[
            FeeTier(min_amount=0, max_amount=1_000_000, rate=1.0),
            FeeTier(min_amount=1_000_000, max_amount=5_000_000, rate=0.75),
            FeeTier(min_amount=5_000_000, rate=0.5),
        ],
    )


@pytest.fixture
def fan_out_template() -> WorkflowTemplate:
    """A, then B and C in parallel."""
    return WorkflowTemplate(
        name="fan-out",
        status=TemplateStatus.ACTIVE,
        steps=[
            TaskStep(id="A", name="A", order=1),
            TaskStep(id="B", name="B", order=2, depends_on=["A"]),
            TaskStep(id="C", name="C", order=3, depends_on=["A"]),
        ],
    )
