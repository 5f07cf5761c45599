"""Built-in workflow templates for common advisory processes."""
from __future__ import annotations

from typing import Callable

from wealthdesk.core.constants import WorkflowTrigger
from wealthdesk.workflows.models import EmailStep, MeetingStep, TaskStep, WorkflowTemplate


def new_client_onboarding_template() -> WorkflowTemplate:
    """Create the standard new-client onboarding workflow.

    Steps run strictly in sequence:

        1. **welcome-call**: schedule the welcome call (advisor).
        2. **collect-docs**: collect ID, applications and IPS signature.
        3. **kyc-verification**: KYC/AML checks (compliance).
        4. **open-accounts**: custodian paperwork.
        5. **fund-accounts**: ACAT transfer or wire instructions.
        6. **initial-investment**: implement the IPS.
        7. **welcome-meeting**: 30-day check-in meeting.
    """
    return WorkflowTemplate(
        name="New Client Onboarding",
        description="Standard workflow for onboarding new wealth management clients",
        trigger=WorkflowTrigger.NEW_CLIENT_ONBOARDING,
        estimated_duration_days=30,
        tags=["onboarding", "new-client"],
        is_default=True,
        steps=[
            TaskStep(
                id="welcome-call",
                name="Schedule Welcome Call",
                order=1,
                task_title="Schedule welcome call with new client",
                task_category="client_onboarding",
                task_priority="high",
                assign_to="advisor",
                due_days_from_start=1,
            ),
            TaskStep(
                id="collect-docs",
                name="Collect Required Documents",
                order=2,
                task_title="Request and collect onboarding documents",
                task_description="ID verification, account applications, IPS signature",
                task_category="document_request",
                task_priority="high",
                assign_to="operations",
                due_days_from_start=3,
                depends_on=["welcome-call"],
            ),
            TaskStep(
                id="kyc-verification",
                name="Complete KYC Verification",
                order=3,
                task_title="Complete KYC/AML verification",
                task_category="kyc_verification",
                task_priority="high",
                assign_to="compliance",
                due_days_from_start=7,
                depends_on=["collect-docs"],
            ),
            TaskStep(
                id="open-accounts",
                name="Open Investment Accounts",
                order=4,
                task_title="Submit account opening paperwork to custodian",
                task_category="client_onboarding",
                task_priority="medium",
                assign_to="operations",
                due_days_from_start=10,
                depends_on=["kyc-verification"],
            ),
            TaskStep(
                id="fund-accounts",
                name="Initiate Asset Transfer",
                order=5,
                task_title="Initiate ACAT transfer or wire instructions",
                task_category="client_onboarding",
                task_priority="medium",
                assign_to="operations",
                due_days_from_start=14,
                depends_on=["open-accounts"],
            ),
            TaskStep(
                id="initial-investment",
                name="Implement Investment Strategy",
                order=6,
                task_title="Execute initial portfolio investment per IPS",
                task_category="trading",
                task_priority="high",
                assign_to="advisor",
                due_days_from_start=21,
                depends_on=["fund-accounts"],
            ),
            MeetingStep(
                id="welcome-meeting",
                name="Schedule 30-Day Check-In",
                order=7,
                meeting_type="initial_consultation",
                meeting_title="30-Day Onboarding Review",
                meeting_duration=60,
                depends_on=["initial-investment"],
            ),
        ],
    )


def annual_review_template() -> WorkflowTemplate:
    """Create the annual review preparation workflow.

    ``update-planning`` and ``review-ips`` both start once
    ``gather-data`` completes; ``prepare-presentation`` waits for both.
    """
    return WorkflowTemplate(
        name="Annual Review Preparation",
        description="Workflow to prepare for annual client review meetings",
        trigger=WorkflowTrigger.ANNUAL_REVIEW_DUE,
        estimated_duration_days=14,
        tags=["review", "annual"],
        is_default=True,
        steps=[
            TaskStep(
                id="gather-data",
                name="Gather Performance Data",
                order=1,
                task_title="Compile annual performance report",
                task_category="annual_review",
                task_priority="medium",
                assign_to="operations",
                due_days_from_start=1,
            ),
            TaskStep(
                id="update-planning",
                name="Update Financial Plan",
                order=2,
                task_title="Update financial planning projections",
                task_category="annual_review",
                task_priority="medium",
                assign_to="advisor",
                due_days_from_start=5,
                depends_on=["gather-data"],
            ),
            TaskStep(
                id="review-ips",
                name="Review IPS",
                order=3,
                task_title="Review Investment Policy Statement for updates",
                task_category="annual_review",
                task_priority="medium",
                assign_to="advisor",
                due_days_from_start=7,
                depends_on=["gather-data"],
            ),
            TaskStep(
                id="prepare-presentation",
                name="Prepare Meeting Materials",
                order=4,
                task_title="Prepare annual review presentation",
                task_category="meeting_prep",
                task_priority="high",
                assign_to="advisor",
                due_days_from_start=10,
                depends_on=["update-planning", "review-ips"],
            ),
            MeetingStep(
                id="schedule-meeting",
                name="Schedule Annual Review Meeting",
                order=5,
                meeting_type="annual_review",
                meeting_title="Annual Portfolio Review",
                meeting_duration=90,
                depends_on=["prepare-presentation"],
            ),
        ],
    )


def kyc_renewal_template() -> WorkflowTemplate:
    """Create the KYC renewal workflow: notify the client, then three checks."""
    return WorkflowTemplate(
        name="KYC Renewal",
        description="Workflow for renewing client KYC verification",
        trigger=WorkflowTrigger.KYC_EXPIRING,
        estimated_duration_days=21,
        tags=["compliance", "kyc"],
        is_default=True,
        steps=[
            EmailStep(
                id="notify-client",
                name="Notify Client",
                order=1,
                email_template="kyc_renewal_request",
                email_recipient="client",
            ),
            TaskStep(
                id="collect-updated-docs",
                name="Collect Updated Documents",
                order=2,
                task_title="Collect updated KYC documentation",
                task_category="kyc_verification",
                task_priority="high",
                assign_to="operations",
                due_days_from_start=7,
                depends_on=["notify-client"],
            ),
            TaskStep(
                id="run-screening",
                name="Run AML Screening",
                order=3,
                task_title="Run updated sanctions and PEP screening",
                task_category="compliance",
                task_priority="high",
                assign_to="compliance",
                due_days_from_start=14,
                depends_on=["collect-updated-docs"],
            ),
            TaskStep(
                id="compliance-review",
                name="Compliance Review",
                order=4,
                task_title="Review and approve KYC renewal",
                task_category="compliance",
                task_priority="high",
                assign_to="compliance",
                due_days_from_start=18,
                depends_on=["run-screening"],
            ),
        ],
    )


DEFAULT_TEMPLATES: list[Callable[[], WorkflowTemplate]] = [
    new_client_onboarding_template,
    annual_review_template,
    kyc_renewal_template,
]
