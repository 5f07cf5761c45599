"""Workflow instance storage with optimistic version checks."""

from __future__ import annotations

from abc import ABC, abstractmethod

import structlog

from wealthdesk.core.exceptions import ConcurrentModificationError, InstanceNotFoundError
from wealthdesk.workflows.models import InstanceStatus, WorkflowInstance

logger = structlog.get_logger(__name__)


class InstanceStore(ABC):
    """Abstract base for workflow instance persistence.

    Implementations must make :meth:`save` a compare-and-set on
    ``WorkflowInstance.version`` so two writers that read the same version
    cannot both succeed.
    """

    @abstractmethod
    async def add(self, instance: WorkflowInstance) -> WorkflowInstance:
        """Insert a new instance and return the stored copy."""

    @abstractmethod
    async def get(self, instance_id: str) -> WorkflowInstance:
        """Return a copy of the stored instance.

        Raises:
            InstanceNotFoundError: If no instance has that id.
        """

    @abstractmethod
    async def save(self, instance: WorkflowInstance, expected_version: int) -> WorkflowInstance:
        """Replace the stored instance if its version is still *expected_version*.

        Raises:
            ConcurrentModificationError: If another writer saved first.
        """

    @abstractmethod
    async def list_instances(
        self,
        *,
        status: InstanceStatus | None = None,
        household_id: str | None = None,
    ) -> list[WorkflowInstance]:
        """Return matching instances, most recently started first."""


class InMemoryInstanceStore(InstanceStore):
    """Dict-backed store. Returned instances are deep copies."""

    def __init__(self) -> None:
        self._instances: dict[str, WorkflowInstance] = {}

    def __len__(self) -> int:
        return len(self._instances)

    async def add(self, instance: WorkflowInstance) -> WorkflowInstance:
        stored = instance.model_copy(deep=True)
        self._instances[stored.id] = stored
        return stored.model_copy(deep=True)

    async def get(self, instance_id: str) -> WorkflowInstance:
        stored = self._instances.get(instance_id)
        if stored is None:
            raise InstanceNotFoundError(
                f"Workflow instance with ID {instance_id} not found",
                code="INSTANCE_NOT_FOUND",
                details={"instance_id": instance_id},
            )
        return stored.model_copy(deep=True)

    async def save(self, instance: WorkflowInstance, expected_version: int) -> WorkflowInstance:
        current = self._instances.get(instance.id)
        if current is None:
            raise InstanceNotFoundError(
                f"Workflow instance with ID {instance.id} not found",
                code="INSTANCE_NOT_FOUND",
                details={"instance_id": instance.id},
            )
        if current.version != expected_version:
            logger.warning(
                "workflow_instance_conflict",
                instance_id=instance.id,
                expected_version=expected_version,
                actual_version=current.version,
            )
            raise ConcurrentModificationError(
                "Workflow instance was modified concurrently",
                code="INSTANCE_VERSION_CONFLICT",
                details={
                    "instance_id": instance.id,
                    "expected_version": expected_version,
                    "actual_version": current.version,
                },
            )
        stored = instance.model_copy(update={"version": expected_version + 1}, deep=True)
        self._instances[stored.id] = stored
        return stored.model_copy(deep=True)

    async def list_instances(
        self,
        *,
        status: InstanceStatus | None = None,
        household_id: str | None = None,
    ) -> list[WorkflowInstance]:
        matches = [
            i.model_copy(deep=True)
            for i in self._instances.values()
            if (status is None or i.status == status)
            and (household_id is None or i.household_id == household_id)
        ]
        matches.sort(key=lambda i: i.started_at, reverse=True)
        return matches
