"""Workflow data models: step variants, step state, templates, instances."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum
from typing import Annotated, Any, Literal
from uuid import uuid4

from pydantic import BaseModel, Field

from wealthdesk.core.constants import TemplateStatus, WorkflowTrigger


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StepStatus(StrEnum):
    """Status of one step within a workflow instance."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


TERMINAL_STEP_STATUSES = frozenset(
    {StepStatus.COMPLETED, StepStatus.SKIPPED, StepStatus.FAILED}
)


class InstanceStatus(StrEnum):
    """Status of a workflow instance as a whole."""

    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class StepType(StrEnum):
    """Kind of side effect a step asks the caller to perform."""

    TASK = "task"
    EMAIL = "email"
    NOTIFICATION = "notification"
    WAIT = "wait"
    CONDITION = "condition"
    MEETING = "meeting"


# ---------------------------------------------------------------------------
# Step variants
# ---------------------------------------------------------------------------


class _StepBase(BaseModel):
    id: str
    name: str = ""
    description: str | None = None
    order: int = 0
    """Display hint only; ``depends_on`` decides execution order."""
    depends_on: list[str] = Field(default_factory=list)


class TaskStep(_StepBase):
    type: Literal["task"] = "task"
    task_title: str = ""
    task_description: str | None = None
    task_category: str | None = None
    task_priority: str | None = None
    assign_to: Literal["advisor", "operations", "compliance", "specific_user"] | None = None
    assign_to_user_id: str | None = None
    due_days_from_start: int | None = None
    due_days_from_previous: int | None = None


class EmailStep(_StepBase):
    type: Literal["email"] = "email"
    email_template: str = ""
    email_recipient: Literal["client", "advisor", "specific"] = "client"
    email_recipient_address: str | None = None


class NotificationStep(_StepBase):
    type: Literal["notification"] = "notification"
    notification_message: str = ""
    notify_users: list[str] = Field(default_factory=list)


class WaitStep(_StepBase):
    type: Literal["wait"] = "wait"
    wait_days: int | None = None
    wait_until_date: datetime | None = None
    wait_for_condition: str | None = None


class ConditionStep(_StepBase):
    type: Literal["condition"] = "condition"
    condition: str = ""
    true_steps: list[str] = Field(default_factory=list)
    false_steps: list[str] = Field(default_factory=list)


class MeetingStep(_StepBase):
    type: Literal["meeting"] = "meeting"
    meeting_type: str | None = None
    meeting_title: str = ""
    meeting_duration: int | None = None
    """Length in minutes."""


WorkflowStep = Annotated[
    TaskStep | EmailStep | NotificationStep | WaitStep | ConditionStep | MeetingStep,
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Templates and instances
# ---------------------------------------------------------------------------


class StepState(BaseModel):
    """Runtime state of one step inside an instance."""

    status: StepStatus = StepStatus.PENDING
    started_at: datetime | None = None
    completed_at: datetime | None = None
    task_id: str | None = None
    notes: str | None = None


class WorkflowTemplate(BaseModel):
    """A reusable graph of steps started by a business event."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    name: str
    description: str | None = None
    trigger: WorkflowTrigger = WorkflowTrigger.MANUAL
    status: TemplateStatus = TemplateStatus.DRAFT
    trigger_conditions: dict[str, Any] | None = None
    steps: list[WorkflowStep] = Field(default_factory=list)
    estimated_duration_days: int | None = None
    tags: list[str] = Field(default_factory=list)
    is_default: bool = False
    created_by: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    deleted_at: datetime | None = None

    def get_step(self, step_id: str) -> WorkflowStep | None:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None


class TriggerContext(BaseModel):
    """Who and what a workflow instance is started for."""

    household_id: str | None = None
    person_id: str | None = None
    prospect_id: str | None = None
    account_id: str | None = None
    triggered_by: str | None = None
    trigger_data: dict[str, Any] | None = None


class WorkflowInstance(BaseModel):
    """One execution of a template against a household, person, prospect or account.

    Attributes:
        step_statuses: State of every template step, keyed by step id.
        current_step: Informational pointer to the furthest step in
            progress; the engine never reads it.
        version: Incremented on every successful save; used to detect
            concurrent writers.
    """

    id: str = Field(default_factory=lambda: uuid4().hex)
    template_id: str
    household_id: str | None = None
    person_id: str | None = None
    prospect_id: str | None = None
    account_id: str | None = None
    status: InstanceStatus = InstanceStatus.RUNNING
    started_at: datetime = Field(default_factory=_utcnow)
    completed_at: datetime | None = None
    current_step: int = 0
    step_statuses: dict[str, StepState] = Field(default_factory=dict)
    triggered_by: str | None = None
    trigger_data: dict[str, Any] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    version: int = 0

    def steps_with_status(self, status: StepStatus) -> list[str]:
        """Return ids of steps currently in *status*, in insertion order."""
        return [sid for sid, state in self.step_statuses.items() if state.status == status]


class WorkflowStats(BaseModel):
    """Aggregate counters over all workflow instances."""

    total_active: int = 0
    by_template: dict[str, int] = Field(default_factory=dict)
    completed_this_month: int = 0
    average_completion_days: int = 0
