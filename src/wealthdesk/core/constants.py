from __future__ import annotations

from enum import StrEnum


class EntityType(StrEnum):
    HOUSEHOLD = "household"
    ACCOUNT = "account"
    PERSON = "person"


class FeeType(StrEnum):
    AUM = "aum"
    FLAT = "flat"
    HOURLY = "hourly"
    PERFORMANCE = "performance"
    SUBSCRIPTION = "subscription"
    TRANSACTION = "transaction"
    OTHER = "other"


class FeeFrequency(StrEnum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMI_ANNUALLY = "semi_annually"
    ANNUALLY = "annually"
    ONE_TIME = "one_time"


class BillingMethod(StrEnum):
    ADVANCE = "advance"
    ARREARS = "arrears"


class AssetClass(StrEnum):
    US_LARGE_CAP = "us_large_cap"
    US_MID_CAP = "us_mid_cap"
    US_SMALL_CAP = "us_small_cap"
    INTERNATIONAL_DEVELOPED = "international_developed"
    EMERGING_MARKETS = "emerging_markets"
    US_BONDS = "us_bonds"
    INTERNATIONAL_BONDS = "international_bonds"
    HIGH_YIELD_BONDS = "high_yield_bonds"
    TIPS = "tips"
    CASH = "cash"
    REAL_ESTATE = "real_estate"
    COMMODITIES = "commodities"
    ALTERNATIVES = "alternatives"
    PRIVATE_EQUITY = "private_equity"
    HEDGE_FUNDS = "hedge_funds"
    OTHER = "other"


class WorkflowTrigger(StrEnum):
    # Client lifecycle
    NEW_CLIENT_ONBOARDING = "new_client_onboarding"
    ANNUAL_REVIEW_DUE = "annual_review_due"
    QUARTERLY_REVIEW_DUE = "quarterly_review_due"
    CLIENT_BIRTHDAY = "client_birthday"
    CLIENT_ANNIVERSARY = "client_anniversary"

    # Account events
    ACCOUNT_OPENED = "account_opened"
    ACCOUNT_CLOSED = "account_closed"
    LARGE_DEPOSIT = "large_deposit"
    LARGE_WITHDRAWAL = "large_withdrawal"

    # Compliance
    KYC_EXPIRING = "kyc_expiring"
    DOCUMENT_EXPIRING = "document_expiring"
    COMPLIANCE_REVIEW_DUE = "compliance_review_due"

    # Pipeline
    NEW_PROSPECT = "new_prospect"
    PROSPECT_STAGE_CHANGE = "prospect_stage_change"
    PROSPECT_WON = "prospect_won"

    # Manual
    MANUAL = "manual"
    SCHEDULED = "scheduled"


class TemplateStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DRAFT = "draft"
    ARCHIVED = "archived"


class DependencyPolicy(StrEnum):
    """Which upstream step statuses satisfy a ``depends_on`` edge."""

    COMPLETED_ONLY = "completed_only"
    COMPLETED_OR_SKIPPED = "completed_or_skipped"
