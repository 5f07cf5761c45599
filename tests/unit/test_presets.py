"""Tests for workflows/presets.py built-in templates."""
from __future__ import annotations

import pytest

from wealthdesk.core.constants import TemplateStatus, WorkflowTrigger
from wealthdesk.workflows.engine import WorkflowEngine, topological_order, validate_template
from wealthdesk.workflows.models import (
    EmailStep,
    InstanceStatus,
    MeetingStep,
    StepStatus,
    TaskStep,
    WorkflowTemplate,
)
from wealthdesk.workflows.presets import (
    DEFAULT_TEMPLATES,
    annual_review_template,
    kyc_renewal_template,
    new_client_onboarding_template,
)


@pytest.mark.parametrize("factory", DEFAULT_TEMPLATES)
def test_presets_are_valid_drafts(factory) -> None:
    template = factory()
    validate_template(template)
    assert template.is_default is True
    assert template.status == TemplateStatus.DRAFT
    assert template.steps


def test_factories_return_fresh_templates() -> None:
    assert new_client_onboarding_template().id != new_client_onboarding_template().id


def test_onboarding_is_sequential() -> None:
    template = new_client_onboarding_template()
    assert template.trigger == WorkflowTrigger.NEW_CLIENT_ONBOARDING
    assert topological_order(template) == [
        "welcome-call",
        "collect-docs",
        "kyc-verification",
        "open-accounts",
        "fund-accounts",
        "initial-investment",
        "welcome-meeting",
    ]
    assert isinstance(template.steps[-1], MeetingStep)
    assert all(isinstance(s, TaskStep) for s in template.steps[:-1])


def test_onboarding_runs_to_completion() -> None:
    template = new_client_onboarding_template().model_copy(
        update={"status": TemplateStatus.ACTIVE}
    )
    engine = WorkflowEngine()
    instance = engine.start_instance(template)
    for step_id in topological_order(template):
        assert instance.steps_with_status(StepStatus.IN_PROGRESS) == [step_id]
        engine.complete_step(template, instance, step_id)
    assert instance.status == InstanceStatus.COMPLETED
    assert instance.current_step == 7


def test_annual_review_fans_out_and_joins() -> None:
    template = annual_review_template().model_copy(update={"status": TemplateStatus.ACTIVE})
    engine = WorkflowEngine()
    instance = engine.start_instance(template)
    engine.complete_step(template, instance, "gather-data")
    assert instance.steps_with_status(StepStatus.IN_PROGRESS) == ["update-planning", "review-ips"]

    engine.complete_step(template, instance, "update-planning")
    assert instance.step_statuses["prepare-presentation"].status == StepStatus.PENDING
    engine.complete_step(template, instance, "review-ips")
    assert instance.step_statuses["prepare-presentation"].status == StepStatus.IN_PROGRESS


def test_kyc_renewal_starts_with_email() -> None:
    template: WorkflowTemplate = kyc_renewal_template()
    first = template.steps[0]
    assert isinstance(first, EmailStep)
    assert first.email_recipient == "client"
    assert first.depends_on == []
    assert template.trigger == WorkflowTrigger.KYC_EXPIRING


def test_step_union_round_trips_through_dump() -> None:
    template = kyc_renewal_template()
    restored = WorkflowTemplate.model_validate(template.model_dump())
    assert [type(s) for s in restored.steps] == [type(s) for s in template.steps]
