from __future__ import annotations

import os
from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from wealthdesk.core.constants import DependencyPolicy
from wealthdesk.core.exceptions import ConfigurationError

_TRUE_VALUES = {"1", "true", "yes", "on"}


class EngineConfig(BaseModel):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_json: bool = True
    fee_decimals: int = Field(default=2, ge=0, le=6)
    rate_decimals: int = Field(default=4, ge=0, le=8)
    dependency_policy: DependencyPolicy = DependencyPolicy.COMPLETED_ONLY
    """Which dependency statuses unlock downstream steps.

    ``completed_only`` keeps the historical behaviour: a skipped or failed
    prerequisite leaves its dependents pending forever.
    """
    validate_acyclic: bool = True
    """Reject templates whose ``depends_on`` edges contain a cycle."""
    fee_history_limit: int = Field(default=12, ge=1, le=1000)

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Create an :class:`EngineConfig` from ``WEALTHDESK_*`` environment variables.

        Reads the following env vars (all optional):

        * ``WEALTHDESK_LOG_LEVEL`` → ``log_level``
        * ``WEALTHDESK_LOG_JSON`` → ``log_json`` (``1``/``true``/``yes``/``on``)
        * ``WEALTHDESK_DEPENDENCY_POLICY`` → ``dependency_policy``
        * ``WEALTHDESK_VALIDATE_ACYCLIC`` → ``validate_acyclic``
        * ``WEALTHDESK_FEE_HISTORY_LIMIT`` → ``fee_history_limit``

        Any variable that is not set or is empty is left at its default value.

        Raises:
            ConfigurationError: If a variable holds an invalid value.
        """
        kwargs: dict[str, Any] = {}

        log_level = os.environ.get("WEALTHDESK_LOG_LEVEL")
        if log_level:
            kwargs["log_level"] = log_level.upper()

        log_json = os.environ.get("WEALTHDESK_LOG_JSON")
        if log_json:
            kwargs["log_json"] = log_json.strip().lower() in _TRUE_VALUES

        policy = os.environ.get("WEALTHDESK_DEPENDENCY_POLICY")
        if policy:
            kwargs["dependency_policy"] = policy

        acyclic = os.environ.get("WEALTHDESK_VALIDATE_ACYCLIC")
        if acyclic:
            kwargs["validate_acyclic"] = acyclic.strip().lower() in _TRUE_VALUES

        history_limit = os.environ.get("WEALTHDESK_FEE_HISTORY_LIMIT")
        if history_limit:
            kwargs["fee_history_limit"] = history_limit

        try:
            return cls(**kwargs)
        except PydanticValidationError as exc:
            raise ConfigurationError(
                "Invalid WEALTHDESK_* environment configuration",
                code="CONFIG_INVALID",
                details={"errors": exc.errors(include_url=False)},
            ) from exc
