from __future__ import annotations

from typing import Any


class WealthDeskError(Exception):
    """Base exception for all wealthdesk errors.

    Attributes:
        code: Optional machine-readable error code (e.g. ``"STEP_UNKNOWN"``).
        details: Arbitrary key/value context about the error.
        status_code: HTTP-style status code a service layer can surface to
            its caller (``None`` when not applicable).
    """

    default_status_code: int | None = None

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        *,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}
        self.status_code = (
            status_code if status_code is not None else self.default_status_code
        )

    @property
    def is_retryable(self) -> bool:
        """Whether the operation that raised this error can be retried."""
        return False


class ConfigurationError(WealthDeskError): ...


class ValidationError(WealthDeskError):
    """Caller-correctable input or state error (4xx-equivalent)."""

    default_status_code = 400


class NotFoundError(WealthDeskError):
    """A referenced record does not exist for the tenant."""

    default_status_code = 404


# ---------------------------------------------------------------------------
# Billing
# ---------------------------------------------------------------------------


class BillingError(WealthDeskError): ...


class FeeScheduleNotFoundError(NotFoundError, BillingError): ...


class FeeHistoryNotFoundError(NotFoundError, BillingError): ...


# ---------------------------------------------------------------------------
# Allocations
# ---------------------------------------------------------------------------


class AllocationError(ValidationError): ...


class AllocationNotFoundError(NotFoundError): ...


# ---------------------------------------------------------------------------
# Workflows
# ---------------------------------------------------------------------------


class WorkflowError(WealthDeskError): ...


class TemplateNotFoundError(NotFoundError, WorkflowError): ...


class InstanceNotFoundError(NotFoundError, WorkflowError): ...


class InactiveTemplateError(ValidationError, WorkflowError): ...


class WorkflowNotRunningError(ValidationError, WorkflowError): ...


class UnknownStepError(ValidationError, WorkflowError): ...


class InvalidStepTransitionError(ValidationError, WorkflowError): ...


class TemplateValidationError(ValidationError, WorkflowError): ...


class ConcurrentModificationError(WorkflowError):
    """A workflow instance was written by someone else since it was read.

    Always retryable: reload the instance and re-apply the change.
    """

    default_status_code = 409

    @property
    def is_retryable(self) -> bool:  # noqa: D102
        return True
