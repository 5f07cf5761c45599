"""Workflow engine: dependency-driven step state machine.

Steps of a :class:`~wealthdesk.workflows.models.WorkflowTemplate` form a
directed graph through their ``depends_on`` edges. The engine only manages
step and instance status; performing a step's side effect (creating a
task, sending an email, booking a meeting) is left to the caller through
the ``on_step_started`` hook.

State per step::

    pending -> in_progress -> completed
    pending -> skipped            (external override)
    pending | in_progress -> failed   (external override)

An instance is ``running`` until every step is ``completed`` or
``skipped``, and may be ``cancelled`` at any time.
"""
from __future__ import annotations

from collections import deque
from datetime import datetime, timezone
from typing import Callable, Protocol, runtime_checkable

import structlog

from wealthdesk.core.config import EngineConfig
from wealthdesk.core.constants import DependencyPolicy, TemplateStatus
from wealthdesk.core.exceptions import (
    InactiveTemplateError,
    TemplateValidationError,
    InvalidStepTransitionError,
    UnknownStepError,
    WorkflowNotRunningError,
)
from wealthdesk.workflows.models import (
    InstanceStatus,
    StepState,
    StepStatus,
    TriggerContext,
    WorkflowInstance,
    WorkflowStep,
    WorkflowTemplate,
)

logger = structlog.get_logger(__name__)

_COMPLETION_STATUSES = frozenset({StepStatus.COMPLETED, StepStatus.SKIPPED})

_ALLOWED_SOURCES: dict[StepStatus, frozenset[StepStatus]] = {
    StepStatus.SKIPPED: frozenset({StepStatus.PENDING}),
    StepStatus.FAILED: frozenset({StepStatus.PENDING, StepStatus.IN_PROGRESS}),
}

_SATISFYING_STATUSES: dict[DependencyPolicy, frozenset[StepStatus]] = {
    DependencyPolicy.COMPLETED_ONLY: frozenset({StepStatus.COMPLETED}),
    DependencyPolicy.COMPLETED_OR_SKIPPED: frozenset(
        {StepStatus.COMPLETED, StepStatus.SKIPPED}
    ),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@runtime_checkable
class StepDispatcher(Protocol):
    """Callback performing the side effect of a step that just started."""

    def __call__(self, step: WorkflowStep, instance: WorkflowInstance) -> None: ...


# ---------------------------------------------------------------------------
# Template validation
# ---------------------------------------------------------------------------


def _kahn_order(template: WorkflowTemplate) -> tuple[list[str], list[str]]:
    """Return ``(ordered, unordered)`` step ids; *unordered* sit on or behind a cycle."""
    position = {step.id: index for index, step in enumerate(template.steps)}
    by_id = {step.id: step for step in template.steps}
    indegree = {step.id: 0 for step in template.steps}
    dependents: dict[str, list[str]] = {step.id: [] for step in template.steps}
    for step in template.steps:
        for dep in step.depends_on:
            if dep in dependents:
                dependents[dep].append(step.id)
                indegree[step.id] += 1

    def _key(step_id: str) -> tuple[int, int]:
        return (by_id[step_id].order, position[step_id])

    ready = deque(sorted((sid for sid, n in indegree.items() if n == 0), key=_key))
    ordered: list[str] = []
    while ready:
        step_id = ready.popleft()
        ordered.append(step_id)
        unlocked = []
        for child in dependents[step_id]:
            indegree[child] -= 1
            if indegree[child] == 0:
                unlocked.append(child)
        ready.extend(sorted(unlocked, key=_key))

    unordered = sorted(sid for sid, n in indegree.items() if n > 0)
    return ordered, unordered


def topological_order(template: WorkflowTemplate) -> list[str]:
    """Return step ids in an order where every step follows its dependencies.

    Ties are broken by ``order`` then by position in the template.

    Raises:
        TemplateValidationError: If the ``depends_on`` edges contain a cycle.
    """
    ordered, cyclic = _kahn_order(template)
    if cyclic:
        raise TemplateValidationError(
            "Step dependencies contain a cycle",
            code="TEMPLATE_CYCLE",
            details={"steps": cyclic},
        )
    return ordered


def validate_template(template: WorkflowTemplate, *, check_acyclic: bool = True) -> None:
    """Check that a template's step graph can run to completion.

    Raises:
        TemplateValidationError: On duplicate step ids, a dependency on an
            unknown step or on itself, or (when *check_acyclic*) a cycle.
    """
    seen: set[str] = set()
    duplicates: set[str] = set()
    for step in template.steps:
        if step.id in seen:
            duplicates.add(step.id)
        seen.add(step.id)
    if duplicates:
        raise TemplateValidationError(
            "Step IDs must be unique",
            code="TEMPLATE_DUPLICATE_STEP",
            details={"steps": sorted(duplicates)},
        )

    for step in template.steps:
        if step.id in step.depends_on:
            raise TemplateValidationError(
                f"Step {step.id} depends on itself",
                code="TEMPLATE_SELF_DEPENDENCY",
                details={"step": step.id},
            )
        missing = [dep for dep in step.depends_on if dep not in seen]
        if missing:
            raise TemplateValidationError(
                f"Step {step.id} depends on unknown steps: {', '.join(missing)}",
                code="TEMPLATE_UNKNOWN_DEPENDENCY",
                details={"step": step.id, "missing": missing},
            )

    if check_acyclic:
        topological_order(template)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class WorkflowEngine:
    """Advances workflow instances through their template's step graph.

    All methods mutate the instance they are given and return it; none of
    them persist anything. Callers that share instances between tasks
    should work on a copy and save it atomically (see
    :class:`~wealthdesk.workflows.manager.WorkflowManager`).

    Args:
        config: Optional :class:`EngineConfig`; ``dependency_policy`` decides
            whether a skipped prerequisite unlocks its dependents.
        clock: Returns the current time. Defaults to UTC ``now``.
        on_step_started: Called once for every step moved to
            ``in_progress``. If it raises, that step is marked ``failed``.

    Example::

        engine = WorkflowEngine(on_step_started=create_task_for_step)
        instance = engine.start_instance(template, TriggerContext(household_id="h1"))
        engine.complete_step(template, instance, "welcome-call", notes="done")
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
        on_step_started: StepDispatcher | None = None,
    ) -> None:
        self._config = config or EngineConfig()
        self._clock = clock or _utcnow
        self._on_step_started = on_step_started
        self._satisfying = _SATISFYING_STATUSES[self._config.dependency_policy]

    def __repr__(self) -> str:
        return f"WorkflowEngine(dependency_policy={self._config.dependency_policy.value!r})"

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def start_instance(
        self,
        template: WorkflowTemplate,
        context: TriggerContext | None = None,
    ) -> WorkflowInstance:
        """Create a running instance and start every step without prerequisites.

        Raises:
            InactiveTemplateError: If the template is not ``active``.
        """
        if template.status != TemplateStatus.ACTIVE:
            raise InactiveTemplateError(
                "Cannot start workflow from inactive template",
                code="TEMPLATE_INACTIVE",
                details={"template_id": template.id, "status": template.status.value},
            )
        ctx = context or TriggerContext()
        instance = WorkflowInstance(
            template_id=template.id,
            household_id=ctx.household_id,
            person_id=ctx.person_id,
            prospect_id=ctx.prospect_id,
            account_id=ctx.account_id,
            status=InstanceStatus.RUNNING,
            started_at=self._clock(),
            current_step=0,
            step_statuses={step.id: StepState() for step in template.steps},
            triggered_by=ctx.triggered_by,
            trigger_data=ctx.trigger_data,
        )
        logger.info(
            "workflow_started",
            instance_id=instance.id,
            template_id=template.id,
            steps=len(template.steps),
        )
        self.advance(template, instance)
        return instance

    def complete_step(
        self,
        template: WorkflowTemplate,
        instance: WorkflowInstance,
        step_id: str,
        notes: str | None = None,
    ) -> WorkflowInstance:
        """Mark *step_id* completed, then start whatever it unblocked.

        Raises:
            WorkflowNotRunningError: If the instance is not running.
            UnknownStepError: If the instance has no such step.
        """
        state = self._require_step(instance, step_id, template)
        state.status = StepStatus.COMPLETED
        state.completed_at = self._clock()
        state.notes = notes
        logger.info("workflow_step_completed", instance_id=instance.id, step_id=step_id)
        self.advance(template, instance)
        return instance

    def skip_step(
        self,
        template: WorkflowTemplate,
        instance: WorkflowInstance,
        step_id: str,
        notes: str | None = None,
    ) -> WorkflowInstance:
        """Manually skip a pending step. Skipped steps count towards completion.

        Raises:
            InvalidStepTransitionError: If the step is not ``pending``.
        """
        state = self._require_step(instance, step_id, template)
        self._check_transition(instance, step_id, state, StepStatus.SKIPPED)
        state.status = StepStatus.SKIPPED
        state.completed_at = self._clock()
        state.notes = notes
        logger.info("workflow_step_skipped", instance_id=instance.id, step_id=step_id)
        self.advance(template, instance)
        return instance

    def fail_step(
        self,
        template: WorkflowTemplate,
        instance: WorkflowInstance,
        step_id: str,
        notes: str | None = None,
    ) -> WorkflowInstance:
        """Manually fail a pending or in-progress step. Its dependents stay pending.

        Raises:
            InvalidStepTransitionError: If the step already reached a
                terminal status.
        """
        state = self._require_step(instance, step_id, template)
        self._check_transition(instance, step_id, state, StepStatus.FAILED)
        state.status = StepStatus.FAILED
        state.completed_at = self._clock()
        state.notes = notes
        logger.warning("workflow_step_failed", instance_id=instance.id, step_id=step_id)
        return instance

    def cancel_instance(
        self,
        instance: WorkflowInstance,
        reason: str | None = None,
    ) -> WorkflowInstance:
        """Cancel from any status. Step statuses are left untouched."""
        instance.status = InstanceStatus.CANCELLED
        instance.metadata = {**instance.metadata, "cancellation_reason": reason}
        logger.info("workflow_cancelled", instance_id=instance.id, reason=reason)
        return instance

    # ------------------------------------------------------------------ #
    # Advance pass
    # ------------------------------------------------------------------ #

    def advance(self, template: WorkflowTemplate, instance: WorkflowInstance) -> list[str]:
        """Start every pending step whose dependencies are satisfied.

        Eligibility is judged against the statuses as they were when the
        pass began, so a step started here cannot unlock another step in
        the same pass. Calling this again without an intervening status
        change does nothing.

        Steps added to the template after the instance started get a
        ``pending`` entry first. Completion is judged over the template's
        current steps.

        Returns:
            Ids of the steps moved to ``in_progress`` by this pass. Always
            empty for an instance that is no longer running.
        """
        if instance.status != InstanceStatus.RUNNING:
            return []
        self._sync_step_states(template, instance)
        statuses = instance.step_statuses
        eligible: list[WorkflowStep] = []
        for step in template.steps:
            if statuses[step.id].status != StepStatus.PENDING:
                continue
            if self._dependencies_met(step, instance):
                eligible.append(step)

        started: list[str] = []
        for step in eligible:
            state = statuses[step.id]
            state.status = StepStatus.IN_PROGRESS
            state.started_at = self._clock()
            started.append(step.id)
            logger.debug(
                "workflow_step_started",
                instance_id=instance.id,
                step_id=step.id,
                step_type=step.type,
            )
            self._dispatch(step, instance)

        in_progress_orders = [
            step.order
            for step in template.steps
            if statuses[step.id].status == StepStatus.IN_PROGRESS
        ]
        if in_progress_orders:
            instance.current_step = max(in_progress_orders)

        if all(statuses[step.id].status in _COMPLETION_STATUSES for step in template.steps):
            instance.status = InstanceStatus.COMPLETED
            instance.completed_at = self._clock()
            logger.info("workflow_completed", instance_id=instance.id)

        return started

    def blocked_steps(self, template: WorkflowTemplate, instance: WorkflowInstance) -> list[str]:
        """Return pending steps that can never start under the current policy.

        A step is blocked when one of its prerequisites is in a terminal
        status that does not satisfy the dependency policy (e.g. ``failed``),
        directly or through another blocked step. Steps on or behind a
        dependency cycle are always blocked.
        """
        ordered, cyclic = _kahn_order(template)
        blocked = {sid for sid in cyclic if self._is_pending(instance, sid)}
        for step_id in ordered:
            step = template.get_step(step_id)
            if step is None or not self._is_pending(instance, step_id):
                continue
            for dep in step.depends_on:
                dep_state = instance.step_statuses.get(dep)
                dep_status = dep_state.status if dep_state else StepStatus.PENDING
                if dep in blocked or (
                    dep_status in (StepStatus.SKIPPED, StepStatus.FAILED)
                    and dep_status not in self._satisfying
                ):
                    blocked.add(step_id)
                    break
        return [step.id for step in template.steps if step.id in blocked]

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _dependencies_met(self, step: WorkflowStep, instance: WorkflowInstance) -> bool:
        for dep in step.depends_on:
            dep_state = instance.step_statuses.get(dep)
            if dep_state is None or dep_state.status not in self._satisfying:
                return False
        return True

    def _dispatch(self, step: WorkflowStep, instance: WorkflowInstance) -> None:
        if self._on_step_started is None:
            return
        try:
            self._on_step_started(step, instance)
        except Exception as exc:
            state = instance.step_statuses[step.id]
            state.status = StepStatus.FAILED
            state.notes = str(exc)
            logger.error(
                "workflow_step_dispatch_failed",
                instance_id=instance.id,
                step_id=step.id,
                error=str(exc),
            )

    @staticmethod
    def _is_pending(instance: WorkflowInstance, step_id: str) -> bool:
        state = instance.step_statuses.get(step_id)
        return state is None or state.status == StepStatus.PENDING

    @staticmethod
    def _sync_step_states(template: WorkflowTemplate, instance: WorkflowInstance) -> None:
        for step in template.steps:
            if step.id not in instance.step_statuses:
                instance.step_statuses[step.id] = StepState()
                logger.info(
                    "workflow_step_state_added",
                    instance_id=instance.id,
                    step_id=step.id,
                )

    @staticmethod
    def _check_transition(
        instance: WorkflowInstance,
        step_id: str,
        state: StepState,
        target: StepStatus,
    ) -> None:
        allowed = _ALLOWED_SOURCES[target]
        if state.status not in allowed:
            raise InvalidStepTransitionError(
                f"Cannot move step {step_id} from {state.status.value} to {target.value}",
                code="STEP_TRANSITION_INVALID",
                details={
                    "instance_id": instance.id,
                    "step_id": step_id,
                    "from": state.status.value,
                    "to": target.value,
                },
            )

    def _require_step(
        self,
        instance: WorkflowInstance,
        step_id: str,
        template: WorkflowTemplate | None = None,
    ) -> StepState:
        if instance.status != InstanceStatus.RUNNING:
            raise WorkflowNotRunningError(
                "Workflow is not running",
                code="WORKFLOW_NOT_RUNNING",
                details={"instance_id": instance.id, "status": instance.status.value},
            )
        if template is not None:
            self._sync_step_states(template, instance)
        state = instance.step_statuses.get(step_id)
        if state is None:
            raise UnknownStepError(
                f"Step {step_id} not found in workflow",
                code="STEP_UNKNOWN",
                details={"instance_id": instance.id, "step_id": step_id},
            )
        return state
