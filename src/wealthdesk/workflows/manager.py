"""WorkflowManager: template registry plus serialized instance mutations."""
from __future__ import annotations

import asyncio
import math
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Callable

import structlog

from wealthdesk.core.config import EngineConfig
from wealthdesk.core.constants import TemplateStatus, WorkflowTrigger
from wealthdesk.core.exceptions import TemplateNotFoundError, TemplateValidationError
from wealthdesk.utils.logging import log_context
from wealthdesk.workflows.engine import StepDispatcher, WorkflowEngine, validate_template
from wealthdesk.workflows.models import (
    InstanceStatus,
    TriggerContext,
    WorkflowInstance,
    WorkflowStats,
    WorkflowTemplate,
)
from wealthdesk.workflows.presets import DEFAULT_TEMPLATES
from wealthdesk.workflows.store import InMemoryInstanceStore, InstanceStore

logger = structlog.get_logger(__name__)

_SECONDS_PER_DAY = 60 * 60 * 24

_UPDATABLE_FIELDS = frozenset(
    {
        "name",
        "description",
        "trigger",
        "status",
        "trigger_conditions",
        "steps",
        "estimated_duration_days",
        "tags",
    }
)


class WorkflowManager:
    """Service layer over :class:`WorkflowEngine` and an :class:`InstanceStore`.

    Every instance mutation follows the same path: take the per-instance
    lock, load a fresh copy, apply the engine transition, and save it with
    the version that was read. A concurrent writer in another process
    surfaces as :class:`~wealthdesk.core.exceptions.ConcurrentModificationError`.

    Args:
        store: Instance persistence. Defaults to :class:`InMemoryInstanceStore`.
        config: Optional :class:`EngineConfig`.
        on_step_started: Forwarded to the engine; called for each step that
            moves to ``in_progress``.
        clock: Returns the current time. Defaults to UTC ``now``.
    """

    def __init__(
        self,
        store: InstanceStore | None = None,
        *,
        config: EngineConfig | None = None,
        on_step_started: StepDispatcher | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config or EngineConfig()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._engine = WorkflowEngine(
            self._config, clock=self._clock, on_step_started=on_step_started
        )
        self._store: InstanceStore = store if store is not None else InMemoryInstanceStore()
        self._templates: dict[str, WorkflowTemplate] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    def __repr__(self) -> str:
        return f"WorkflowManager(templates={len(self._templates)}, engine={self._engine!r})"

    @property
    def engine(self) -> WorkflowEngine:
        return self._engine

    # ------------------------------------------------------------------ #
    # Templates
    # ------------------------------------------------------------------ #

    def create_template(
        self,
        template: WorkflowTemplate,
        created_by: str | None = None,
    ) -> WorkflowTemplate:
        """Validate and register *template*.

        Raises:
            TemplateValidationError: If the step graph is invalid.
        """
        validate_template(template, check_acyclic=self._config.validate_acyclic)
        stored = template.model_copy(
            update={"created_by": created_by or template.created_by}, deep=True
        )
        self._templates[stored.id] = stored
        logger.info(
            "workflow_template_created",
            template_id=stored.id,
            name=stored.name,
            steps=len(stored.steps),
        )
        return stored

    def get_template(self, template_id: str, *, include_deleted: bool = False) -> WorkflowTemplate:
        template = self._templates.get(template_id)
        if template is None or (template.deleted_at is not None and not include_deleted):
            raise TemplateNotFoundError(
                f"Workflow template with ID {template_id} not found",
                code="TEMPLATE_NOT_FOUND",
                details={"template_id": template_id},
            )
        return template

    def list_templates(
        self,
        *,
        trigger: WorkflowTrigger | None = None,
        status: TemplateStatus | None = None,
        search: str | None = None,
    ) -> list[WorkflowTemplate]:
        """Return non-deleted templates sorted by name.

        *search* is a case-insensitive substring match on the name.
        """
        needle = search.lower() if search else None
        matches = [
            t
            for t in self._templates.values()
            if t.deleted_at is None
            and (trigger is None or t.trigger == trigger)
            and (status is None or t.status == status)
            and (needle is None or needle in t.name.lower())
        ]
        return sorted(matches, key=lambda t: t.name)

    def update_template(self, template_id: str, /, **changes: Any) -> WorkflowTemplate:
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise TemplateValidationError(
                f"Cannot update template fields: {', '.join(sorted(unknown))}",
                code="TEMPLATE_FIELD",
            )
        template = self.get_template(template_id)
        updated = WorkflowTemplate.model_validate(
            {**template.model_dump(), **changes, "updated_at": self._clock()}
        )
        validate_template(updated, check_acyclic=self._config.validate_acyclic)
        self._templates[template_id] = updated
        logger.info("workflow_template_updated", template_id=template_id, fields=sorted(changes))
        return updated

    def delete_template(self, template_id: str) -> None:
        """Soft-delete: running instances keep resolving their template."""
        template = self.get_template(template_id)
        template.deleted_at = self._clock()
        logger.info("workflow_template_deleted", template_id=template_id)

    def activate_template(self, template_id: str) -> WorkflowTemplate:
        return self._set_template_status(template_id, TemplateStatus.ACTIVE)

    def deactivate_template(self, template_id: str) -> WorkflowTemplate:
        return self._set_template_status(template_id, TemplateStatus.INACTIVE)

    def _set_template_status(self, template_id: str, status: TemplateStatus) -> WorkflowTemplate:
        template = self.get_template(template_id)
        template.status = status
        template.updated_at = self._clock()
        logger.info("workflow_template_status", template_id=template_id, status=status.value)
        return template

    def seed_default_templates(self, created_by: str | None = None) -> list[WorkflowTemplate]:
        """Register the built-in templates as active, skipping existing ones.

        Returns:
            Only the templates created by this call.
        """
        existing = {
            t.name for t in self._templates.values() if t.is_default and t.deleted_at is None
        }
        created: list[WorkflowTemplate] = []
        for factory in DEFAULT_TEMPLATES:
            template = factory()
            if template.name in existing:
                continue
            stored = self.create_template(template, created_by=created_by)
            stored.status = TemplateStatus.ACTIVE
            created.append(stored)
        logger.info("workflow_templates_seeded", created=len(created))
        return created

    # ------------------------------------------------------------------ #
    # Instances
    # ------------------------------------------------------------------ #

    async def start_workflow(
        self,
        template_id: str,
        context: TriggerContext | None = None,
    ) -> WorkflowInstance:
        """Start an instance of an active template and persist it."""
        template = self.get_template(template_id)
        instance = self._engine.start_instance(template, context)
        return await self._store.add(instance)

    async def get_instance(self, instance_id: str) -> WorkflowInstance:
        return await self._store.get(instance_id)

    async def get_instances_by_household(self, household_id: str) -> list[WorkflowInstance]:
        return await self._store.list_instances(household_id=household_id)

    async def get_active_instances(self) -> list[WorkflowInstance]:
        return await self._store.list_instances(status=InstanceStatus.RUNNING)

    async def complete_step(
        self,
        instance_id: str,
        step_id: str,
        notes: str | None = None,
    ) -> WorkflowInstance:
        return await self._mutate(
            instance_id,
            lambda template, instance: self._engine.complete_step(
                template, instance, step_id, notes
            ),
        )

    async def skip_step(
        self,
        instance_id: str,
        step_id: str,
        notes: str | None = None,
    ) -> WorkflowInstance:
        return await self._mutate(
            instance_id,
            lambda template, instance: self._engine.skip_step(template, instance, step_id, notes),
        )

    async def fail_step(
        self,
        instance_id: str,
        step_id: str,
        notes: str | None = None,
    ) -> WorkflowInstance:
        return await self._mutate(
            instance_id,
            lambda template, instance: self._engine.fail_step(template, instance, step_id, notes),
        )

    async def advance_workflow(self, instance_id: str) -> WorkflowInstance:
        return await self._mutate(instance_id, self._engine.advance)

    async def cancel_workflow(
        self,
        instance_id: str,
        reason: str | None = None,
    ) -> WorkflowInstance:
        return await self._mutate(
            instance_id,
            lambda _template, instance: self._engine.cancel_instance(instance, reason),
        )

    @asynccontextmanager
    async def _instance_lock(self, instance_id: str) -> AsyncIterator[None]:
        """Hold the instance's lock; it is dropped once nobody holds or awaits it."""
        lock = self._locks.setdefault(instance_id, asyncio.Lock())
        self._lock_users[instance_id] = self._lock_users.get(instance_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[instance_id] -= 1
            if not self._lock_users[instance_id]:
                del self._lock_users[instance_id]
                del self._locks[instance_id]

    async def _mutate(
        self,
        instance_id: str,
        change: Callable[[WorkflowTemplate, WorkflowInstance], object],
    ) -> WorkflowInstance:
        async with self._instance_lock(instance_id):
            with log_context(instance_id=instance_id):
                instance = await self._store.get(instance_id)
                template = self.get_template(instance.template_id, include_deleted=True)
                expected_version = instance.version
                change(template, instance)
                return await self._store.save(instance, expected_version)

    # ------------------------------------------------------------------ #
    # Statistics
    # ------------------------------------------------------------------ #

    async def get_workflow_stats(self, now: datetime | None = None) -> WorkflowStats:
        """Summarise running and completed instances.

        ``average_completion_days`` rounds each instance's duration up to
        whole days, then rounds the mean half-up.
        """
        now = now or self._clock()
        start_of_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

        active = await self._store.list_instances(status=InstanceStatus.RUNNING)
        completed = await self._store.list_instances(status=InstanceStatus.COMPLETED)

        by_template: dict[str, int] = {}
        for instance in active:
            by_template[instance.template_id] = by_template.get(instance.template_id, 0) + 1

        completed_this_month = sum(
            1 for i in completed if i.completed_at is not None and i.completed_at >= start_of_month
        )

        durations = [
            math.ceil((i.completed_at - i.started_at).total_seconds() / _SECONDS_PER_DAY)
            for i in completed
            if i.completed_at is not None
        ]
        average = math.floor(sum(durations) / len(durations) + 0.5) if durations else 0

        return WorkflowStats(
            total_active=len(active),
            by_template=by_template,
            completed_this_month=completed_this_month,
            average_completion_days=average,
        )
