from wealthdesk.allocations.manager import AllocationManager, validate_line_items
from wealthdesk.allocations.models import AllocationLineItem, TargetAllocation

__all__ = [
    "AllocationLineItem",
    "AllocationManager",
    "TargetAllocation",
    "validate_line_items",
]
