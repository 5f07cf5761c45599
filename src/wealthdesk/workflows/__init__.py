"""Workflow engine: dependency-graph step state machine for advisory processes."""
from wealthdesk.workflows.engine import (
    StepDispatcher,
    WorkflowEngine,
    topological_order,
    validate_template,
)
from wealthdesk.workflows.manager import WorkflowManager
from wealthdesk.workflows.models import (
    ConditionStep,
    EmailStep,
    InstanceStatus,
    MeetingStep,
    NotificationStep,
    StepState,
    StepStatus,
    StepType,
    TaskStep,
    TriggerContext,
    WaitStep,
    WorkflowInstance,
    WorkflowStats,
    WorkflowStep,
    WorkflowTemplate,
)
from wealthdesk.workflows.presets import (
    DEFAULT_TEMPLATES,
    annual_review_template,
    kyc_renewal_template,
    new_client_onboarding_template,
)
from wealthdesk.workflows.store import InMemoryInstanceStore, InstanceStore

__all__ = [
    "WorkflowEngine",
    "WorkflowManager",
    "StepDispatcher",
    "validate_template",
    "topological_order",
    "InstanceStore",
    "InMemoryInstanceStore",
    "WorkflowTemplate",
    "WorkflowInstance",
    "WorkflowStep",
    "WorkflowStats",
    "TriggerContext",
    "StepState",
    "StepStatus",
    "StepType",
    "InstanceStatus",
    "TaskStep",
    "EmailStep",
    "NotificationStep",
    "WaitStep",
    "ConditionStep",
    "MeetingStep",
    "DEFAULT_TEMPLATES",
    "new_client_onboarding_template",
    "annual_review_template",
    "kyc_renewal_template",
]
