"""Fee schedule registry: schedule lifecycle, fee calculation, fee history, export."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import structlog

from wealthdesk.billing.calculator import FeeCalculator
from wealthdesk.billing.models import (
    FeeCalculation,
    FeeHistoryRecord,
    FeeSchedule,
    FeeTier,
)
from wealthdesk.core.config import EngineConfig
from wealthdesk.core.constants import EntityType
from wealthdesk.core.exceptions import (
    FeeHistoryNotFoundError,
    FeeScheduleNotFoundError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

_UPDATABLE_FIELDS = frozenset(
    {
        "name",
        "description",
        "is_active",
        "effective_date",
        "end_date",
        "billing_method",
        "minimum_fee",
        "maximum_fee",
        "notes",
        "tiers",
    }
)


def _numbered(tiers: list[FeeTier]) -> list[FeeTier]:
    """Copy *tiers*, filling a missing ``display_order`` with the list index."""
    return [
        tier.model_copy(
            update={"display_order": tier.display_order if tier.display_order is not None else index}
        )
        for index, tier in enumerate(tiers)
    ]


class FeeScheduleManager:
    """Stores fee schedules per firm and applies them to billable amounts.

    Only one schedule per (firm, entity type, entity id) is active at a
    time: creating a new one deactivates its predecessor.

    Args:
        config: Optional :class:`EngineConfig` used for rounding and the
            default fee-history page size.
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self._config = config or EngineConfig()
        self._calculator = FeeCalculator(self._config)
        self._schedules: dict[str, FeeSchedule] = {}
        self._history: dict[str, FeeHistoryRecord] = {}

    def __repr__(self) -> str:
        return (
            f"FeeScheduleManager(schedules={len(self._schedules)}, "
            f"history={len(self._history)})"
        )

    # ------------------------------------------------------------------ #
    # Fee schedules
    # ------------------------------------------------------------------ #

    def create_fee_schedule(self, schedule: FeeSchedule) -> FeeSchedule:
        """Store *schedule* as the active schedule for its entity."""
        for existing in self._schedules.values():
            if (
                existing.firm_id == schedule.firm_id
                and existing.entity_type == schedule.entity_type
                and existing.entity_id == schedule.entity_id
                and existing.is_active
            ):
                existing.is_active = False
                logger.info(
                    "fee_schedule_deactivated",
                    schedule_id=existing.id,
                    entity_id=existing.entity_id,
                )

        stored = schedule.model_copy(
            update={"is_active": True, "tiers": _numbered(schedule.tiers)},
            deep=True,
        )
        self._schedules[stored.id] = stored
        logger.info(
            "fee_schedule_created",
            schedule_id=stored.id,
            firm_id=stored.firm_id,
            entity_type=stored.entity_type,
            entity_id=stored.entity_id,
            tiers=len(stored.tiers),
        )
        return stored

    def get_fee_schedule(self, schedule_id: str, firm_id: str) -> FeeSchedule:
        """Return a schedule owned by *firm_id*.

        Raises:
            FeeScheduleNotFoundError: If the id is unknown or belongs to
                another firm.
        """
        schedule = self._schedules.get(schedule_id)
        if schedule is None or schedule.firm_id != firm_id:
            raise FeeScheduleNotFoundError(
                "Fee schedule not found",
                code="FEE_SCHEDULE_NOT_FOUND",
                details={"schedule_id": schedule_id},
            )
        return schedule

    def list_fee_schedules(
        self,
        firm_id: str,
        *,
        entity_type: EntityType | None = None,
        entity_id: str | None = None,
        active_only: bool = False,
        limit: int | None = None,
        offset: int = 0,
    ) -> tuple[list[FeeSchedule], int]:
        """Return ``(page, total)`` of a firm's schedules, newest first."""
        matches = [
            s
            for s in self._schedules.values()
            if s.firm_id == firm_id
            and (entity_type is None or s.entity_type == entity_type)
            and (entity_id is None or s.entity_id == entity_id)
            and (not active_only or s.is_active)
        ]
        matches.sort(key=lambda s: s.created_at, reverse=True)
        end = offset + limit if limit is not None else None
        return matches[offset:end], len(matches)

    def get_entity_fee_schedule(
        self,
        entity_type: EntityType,
        entity_id: str,
        firm_id: str,
    ) -> FeeSchedule | None:
        """Return the active schedule for an entity, or ``None``."""
        for schedule in self._schedules.values():
            if (
                schedule.firm_id == firm_id
                and schedule.entity_type == entity_type
                and schedule.entity_id == entity_id
                and schedule.is_active
            ):
                return schedule
        return None

    def update_fee_schedule(
        self,
        schedule_id: str,
        firm_id: str,
        /,
        **changes: Any,
    ) -> FeeSchedule:
        """Apply a partial update. Passing ``tiers`` replaces all tiers."""
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Cannot update fee schedule fields: {', '.join(sorted(unknown))}",
                code="FEE_SCHEDULE_FIELD",
            )
        schedule = self.get_fee_schedule(schedule_id, firm_id)
        if "tiers" in changes:
            changes["tiers"] = _numbered(
                [t if isinstance(t, FeeTier) else FeeTier.model_validate(t) for t in changes["tiers"]]
            )
        updated = schedule.model_validate(
            {**schedule.model_dump(), **changes, "updated_at": datetime.now(timezone.utc)}
        )
        self._schedules[schedule_id] = updated
        logger.info("fee_schedule_updated", schedule_id=schedule_id, fields=sorted(changes))
        return updated

    def delete_fee_schedule(self, schedule_id: str, firm_id: str) -> None:
        self.get_fee_schedule(schedule_id, firm_id)
        del self._schedules[schedule_id]
        logger.info("fee_schedule_deleted", schedule_id=schedule_id)

    # ------------------------------------------------------------------ #
    # Calculation
    # ------------------------------------------------------------------ #

    def calculate_fee(
        self,
        schedule_id: str,
        firm_id: str,
        billable_amount: float,
    ) -> FeeCalculation:
        """Look up a schedule and apply it to *billable_amount*."""
        schedule = self.get_fee_schedule(schedule_id, firm_id)
        return self._calculator.calculate(schedule, billable_amount)

    # ------------------------------------------------------------------ #
    # Fee history
    # ------------------------------------------------------------------ #

    def record_fee_history(self, record: FeeHistoryRecord) -> FeeHistoryRecord:
        if record.billing_period_end < record.billing_period_start:
            raise ValidationError(
                "Billing period end precedes its start",
                code="BILLING_PERIOD_INVALID",
            )
        stored = record.model_copy(deep=True)
        self._history[stored.id] = stored
        logger.info(
            "fee_history_recorded",
            history_id=stored.id,
            entity_id=stored.entity_id,
            fee_amount=stored.fee_amount,
        )
        return stored

    def get_fee_history(
        self,
        entity_type: EntityType,
        entity_id: str,
        limit: int | None = None,
    ) -> list[FeeHistoryRecord]:
        """Return an entity's fee history, latest billing period first."""
        records = [
            r
            for r in self._history.values()
            if r.entity_type == entity_type and r.entity_id == entity_id
        ]
        records.sort(key=lambda r: r.billing_period_end, reverse=True)
        return records[: limit if limit is not None else self._config.fee_history_limit]

    def mark_fee_as_billed(self, history_id: str, invoice_number: str) -> FeeHistoryRecord:
        record = self._history.get(history_id)
        if record is None:
            raise FeeHistoryNotFoundError(
                "Fee history record not found",
                code="FEE_HISTORY_NOT_FOUND",
                details={"history_id": history_id},
            )
        record.is_billed = True
        record.billed_at = datetime.now(timezone.utc)
        record.invoice_number = invoice_number
        logger.info("fee_marked_billed", history_id=history_id, invoice_number=invoice_number)
        return record

    async def export_fee_history_json(
        self,
        entity_type: EntityType,
        entity_id: str,
        path: str | Path,
    ) -> int:
        """Write an entity's full fee history to *path* as JSON.

        File I/O runs in :func:`asyncio.to_thread`. Returns the number of
        records written.
        """
        dest = Path(path)
        records = [
            r
            for r in self._history.values()
            if r.entity_type == entity_type and r.entity_id == entity_id
        ]
        records.sort(key=lambda r: r.billing_period_end, reverse=True)
        data = [r.model_dump(mode="json") for r in records]
        payload = json.dumps(data, indent=2, default=str, sort_keys=True)

        def _write() -> None:
            dest.parent.mkdir(parents=True, exist_ok=True)
            dest.write_text(payload, encoding="utf-8")

        await asyncio.to_thread(_write)
        logger.info("fee_history_exported", path=str(dest), records=len(records))
        return len(records)
