from wealthdesk.billing.calculator import FeeCalculator, calculate_fee
from wealthdesk.billing.engine import FeeScheduleManager
from wealthdesk.billing.models import (
    FeeCalculation,
    FeeHistoryRecord,
    FeeSchedule,
    FeeTier,
    TierBreakdown,
)

__all__ = [
    "FeeCalculation",
    "FeeCalculator",
    "FeeHistoryRecord",
    "FeeSchedule",
    "FeeScheduleManager",
    "FeeTier",
    "TierBreakdown",
    "calculate_fee",
]
