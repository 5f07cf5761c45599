"""wealthdesk: fee billing and workflow automation for wealth-management firms."""

from wealthdesk.__version__ import __version__

from wealthdesk.allocations import AllocationLineItem, AllocationManager, TargetAllocation
from wealthdesk.billing import (
    FeeCalculation,
    FeeCalculator,
    FeeHistoryRecord,
    FeeSchedule,
    FeeScheduleManager,
    FeeTier,
    TierBreakdown,
    calculate_fee,
)
from wealthdesk.core.config import EngineConfig
from wealthdesk.core.constants import (
    AssetClass,
    BillingMethod,
    DependencyPolicy,
    EntityType,
    FeeFrequency,
    FeeType,
    TemplateStatus,
    WorkflowTrigger,
)
from wealthdesk.core.exceptions import (
    AllocationError,
    AllocationNotFoundError,
    BillingError,
    ConcurrentModificationError,
    ConfigurationError,
    FeeHistoryNotFoundError,
    FeeScheduleNotFoundError,
    InactiveTemplateError,
    InstanceNotFoundError,
    InvalidStepTransitionError,
    NotFoundError,
    TemplateNotFoundError,
    TemplateValidationError,
    UnknownStepError,
    ValidationError,
    WealthDeskError,
    WorkflowError,
    WorkflowNotRunningError,
)
from wealthdesk.utils.logging import (
    configure_from_config,
    configure_logging,
    get_logger,
    log_context,
)
from wealthdesk.workflows import (
    InstanceStatus,
    StepStatus,
    TriggerContext,
    WorkflowEngine,
    WorkflowInstance,
    WorkflowManager,
    WorkflowStep,
    WorkflowTemplate,
)

__all__ = [
    "__version__",
    # Billing
    "FeeCalculation",
    "FeeCalculator",
    "FeeHistoryRecord",
    "FeeSchedule",
    "FeeScheduleManager",
    "FeeTier",
    "TierBreakdown",
    "calculate_fee",
    # Allocations
    "AllocationLineItem",
    "AllocationManager",
    "TargetAllocation",
    # Workflows
    "InstanceStatus",
    "StepStatus",
    "TriggerContext",
    "WorkflowEngine",
    "WorkflowInstance",
    "WorkflowManager",
    "WorkflowStep",
    "WorkflowTemplate",
    # Config / constants
    "EngineConfig",
    "AssetClass",
    "BillingMethod",
    "DependencyPolicy",
    "EntityType",
    "FeeFrequency",
    "FeeType",
    "TemplateStatus",
    "WorkflowTrigger",
    # Exceptions
    "AllocationError",
    "AllocationNotFoundError",
    "BillingError",
    "ConcurrentModificationError",
    "ConfigurationError",
    "FeeHistoryNotFoundError",
    "FeeScheduleNotFoundError",
    "InactiveTemplateError",
    "InstanceNotFoundError",
    "InvalidStepTransitionError",
    "NotFoundError",
    "TemplateNotFoundError",
    "TemplateValidationError",
    "UnknownStepError",
    "ValidationError",
    "WealthDeskError",
    "WorkflowError",
    "WorkflowNotRunningError",
    # Logging
    "configure_from_config",
    "configure_logging",
    "get_logger",
    "log_context",
]
