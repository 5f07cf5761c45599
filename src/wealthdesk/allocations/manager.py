"""Target allocation registry with percentage validation."""

from __future__ import annotations

from typing import Any

import structlog

from wealthdesk.allocations.models import AllocationLineItem, TargetAllocation
from wealthdesk.core.constants import EntityType
from wealthdesk.core.exceptions import AllocationError, AllocationNotFoundError

logger = structlog.get_logger(__name__)

PERCENTAGE_TOLERANCE = 0.01

_UPDATABLE_FIELDS = frozenset(
    {"name", "description", "is_active", "effective_date", "review_date", "notes", "line_items"}
)


def validate_line_items(line_items: list[AllocationLineItem]) -> None:
    """Raise :class:`AllocationError` unless targets sum to 100%."""
    total = sum(item.target_percentage for item in line_items)
    if abs(total - 100) > PERCENTAGE_TOLERANCE:
        raise AllocationError(
            f"Target percentages must sum to 100% (currently {total:g}%)",
            code="ALLOCATION_TOTAL",
            details={"total_percentage": total},
        )


def _numbered(items: list[AllocationLineItem]) -> list[AllocationLineItem]:
    return [
        item.model_copy(
            update={"display_order": item.display_order if item.display_order is not None else index}
        )
        for index, item in enumerate(items)
    ]


class AllocationManager:
    """Stores target allocations per firm; one active allocation per entity."""

    def __init__(self) -> None:
        self._allocations: dict[str, TargetAllocation] = {}

    def __repr__(self) -> str:
        return f"AllocationManager(allocations={len(self._allocations)})"

    def create_allocation(self, allocation: TargetAllocation) -> TargetAllocation:
        validate_line_items(allocation.line_items)

        for existing in self._allocations.values():
            if (
                existing.firm_id == allocation.firm_id
                and existing.entity_type == allocation.entity_type
                and existing.entity_id == allocation.entity_id
                and existing.is_active
            ):
                existing.is_active = False

        stored = allocation.model_copy(
            update={"is_active": True, "line_items": _numbered(allocation.line_items)},
            deep=True,
        )
        self._allocations[stored.id] = stored
        logger.info(
            "allocation_created",
            allocation_id=stored.id,
            entity_id=stored.entity_id,
            line_items=len(stored.line_items),
        )
        return stored

    def get_allocation(self, allocation_id: str, firm_id: str) -> TargetAllocation:
        allocation = self._allocations.get(allocation_id)
        if allocation is None or allocation.firm_id != firm_id:
            raise AllocationNotFoundError(
                "Target allocation not found",
                code="ALLOCATION_NOT_FOUND",
                details={"allocation_id": allocation_id},
            )
        return allocation

    def list_allocations(
        self,
        firm_id: str,
        *,
        entity_type: EntityType | None = None,
        entity_id: str | None = None,
        active_only: bool = False,
        limit: int | None = None,
        offset: int = 0,
    ) -> tuple[list[TargetAllocation], int]:
        """Return ``(page, total)`` of a firm's allocations, newest first."""
        matches = [
            a
            for a in self._allocations.values()
            if a.firm_id == firm_id
            and (entity_type is None or a.entity_type == entity_type)
            and (entity_id is None or a.entity_id == entity_id)
            and (not active_only or a.is_active)
        ]
        matches.sort(key=lambda a: a.created_at, reverse=True)
        end = offset + limit if limit is not None else None
        return matches[offset:end], len(matches)

    def get_entity_allocation(
        self,
        entity_type: EntityType,
        entity_id: str,
        firm_id: str,
    ) -> TargetAllocation | None:
        for allocation in self._allocations.values():
            if (
                allocation.firm_id == firm_id
                and allocation.entity_type == entity_type
                and allocation.entity_id == entity_id
                and allocation.is_active
            ):
                return allocation
        return None

    def update_allocation(
        self,
        allocation_id: str,
        firm_id: str,
        /,
        **changes: Any,
    ) -> TargetAllocation:
        """Apply a partial update; replacement line items are re-validated."""
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise AllocationError(
                f"Cannot update allocation fields: {', '.join(sorted(unknown))}",
                code="ALLOCATION_FIELD",
            )
        allocation = self.get_allocation(allocation_id, firm_id)
        if "line_items" in changes:
            items = [
                i if isinstance(i, AllocationLineItem) else AllocationLineItem.model_validate(i)
                for i in changes["line_items"]
            ]
            validate_line_items(items)
            changes["line_items"] = _numbered(items)

        updated = allocation.model_validate({**allocation.model_dump(), **changes})
        self._allocations[allocation_id] = updated
        logger.info("allocation_updated", allocation_id=allocation_id, fields=sorted(changes))
        return updated

    def delete_allocation(self, allocation_id: str, firm_id: str) -> None:
        self.get_allocation(allocation_id, firm_id)
        del self._allocations[allocation_id]
        logger.info("allocation_deleted", allocation_id=allocation_id)
