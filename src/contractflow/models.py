"""Core data models for contracts, milestones, and reminder settings."""

from __future__ import annotations

import datetime as dt
from datetime import date, datetime
from enum import Enum
from typing import Iterable

from pydantic import BaseModel, Field, field_validator


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ContractStatus(str, Enum):
    PENDING = "pending"
    UNDER_CONTRACT = "under_contract"
    INSPECTION = "inspection"
    FINANCING = "financing"
    CLOSING = "closing"
    CLOSED = "closed"
    CANCELLED = "cancelled"
    SUPERSEDED = "superseded"


# Statuses that drop a record from the dashboard, calendar mailers and reminders
INACTIVE_STATUSES = frozenset({ContractStatus.CANCELLED, ContractStatus.SUPERSEDED})


class RepresentingSide(str, Enum):
    BUYER = "buyer"
    SELLER = "seller"


class MilestoneType(str, Enum):
    INSPECTION = "inspection"
    INSPECTION_RESPONSE = "inspection_response"
    LOAN_CONTINGENCY = "loan_contingency"
    APPRAISAL = "appraisal"
    FINAL_WALKTHROUGH = "final_walkthrough"
    CLOSING = "closing"

    @property
    def label(self) -> str:
        return _MILESTONE_LABELS[self]

    @property
    def date_field(self) -> str:
        return f"{self.value}_date"

    @property
    def completed_field(self) -> str:
        return f"{self.value}_completed"


_MILESTONE_LABELS = {
    MilestoneType.INSPECTION: "Inspection",
    MilestoneType.INSPECTION_RESPONSE: "Inspection Response",
    MilestoneType.LOAN_CONTINGENCY: "Loan Contingency",
    MilestoneType.APPRAISAL: "Appraisal",
    MilestoneType.FINAL_WALKTHROUGH: "Final Walkthrough",
    MilestoneType.CLOSING: "Closing",
}

# contract_date is display-only: it has no completion flag and is never projected
DATE_FIELDS: tuple[str, ...] = ("contract_date",) + tuple(m.date_field for m in MilestoneType)
COMPLETION_FIELDS: tuple[str, ...] = tuple(m.completed_field for m in MilestoneType)


class Provenance(str, Enum):
    ORIGINAL = "original"
    COUNTER_OFFER = "counter_offer"
    COUNTER_OFFER_ORIGINAL_DATES = "counter_offer_original_dates"


class DeadlineStatus(str, Enum):
    UPCOMING = "upcoming"
    DUE_SOON = "due_soon"  # within 3 days
    DUE_TODAY = "due_today"
    OVERDUE = "overdue"
    COMPLETED = "completed"


# ---------------------------------------------------------------------------
# Contract (the master record)
# ---------------------------------------------------------------------------

class Contract(BaseModel):
    id: str
    owner_id: str = ""

    # Lineage
    is_counter_offer: bool = False
    original_contract_id: str | None = None
    counter_offer_number: int | None = None

    # Signatures
    all_parties_signed: bool = False
    signature_date: date | None = None

    status: ContractStatus = ContractStatus.PENDING

    # Milestone dates
    contract_date: date | None = None
    closing_date: date | None = None
    inspection_date: date | None = None
    inspection_response_date: date | None = None
    loan_contingency_date: date | None = None
    appraisal_date: date | None = None
    final_walkthrough_date: date | None = None

    # Milestone completion
    inspection_completed: bool = False
    inspection_response_completed: bool = False
    loan_contingency_completed: bool = False
    appraisal_completed: bool = False
    final_walkthrough_completed: bool = False
    closing_completed: bool = False

    # Property and parties
    property_address: str = ""
    representing_side: RepresentingSide = RepresentingSide.BUYER
    buyer_name: str = ""
    buyer_email: str = ""
    buyer_phone: str = ""
    seller_name: str = ""
    seller_email: str = ""
    seller_phone: str = ""

    # Financials
    purchase_price: float | None = None
    earnest_money: float | None = None
    down_payment: float | None = None
    loan_amount: float | None = None

    notes: str = ""
    ai_summary: str = ""
    file_path: str = ""
    uncertain_fields: list[str] = Field(default_factory=list)

    # Cancellation
    cancellation_reason: str = ""
    cancellation_notes: str = ""
    cancellation_date: datetime | None = None

    # Metadata
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    def has_milestone_dates(self) -> bool:
        """True if any of the seven milestone date fields is set."""
        return any(getattr(self, f) is not None for f in DATE_FIELDS)

    def client_name(self) -> str:
        if self.representing_side == RepresentingSide.BUYER:
            return self.buyer_name
        return self.seller_name

    def client_email(self) -> str:
        """Email of the party the agent represents."""
        if self.representing_side == RepresentingSide.BUYER:
            return self.buyer_email
        return self.seller_email

    def milestone_date(self, milestone: MilestoneType) -> date | None:
        return getattr(self, milestone.date_field)

    def milestone_completed(self, milestone: MilestoneType) -> bool:
        return getattr(self, milestone.completed_field)


class ActiveContract(Contract):
    """The record whose dates govern a transaction's calendar and reminders."""

    using_original_dates: bool = False

    @property
    def provenance(self) -> Provenance:
        if not self.is_counter_offer:
            return Provenance.ORIGINAL
        if self.using_original_dates:
            return Provenance.COUNTER_OFFER_ORIGINAL_DATES
        return Provenance.COUNTER_OFFER


# ---------------------------------------------------------------------------
# Milestone event (projected from an active contract)
# ---------------------------------------------------------------------------

class MilestoneEvent(BaseModel):
    date: dt.date
    milestone: MilestoneType
    completed: bool = False
    contract_id: str
    property_address: str = ""
    provenance: Provenance = Provenance.ORIGINAL
    counter_offer_number: int | None = None

    @property
    def label(self) -> str:
        return self.milestone.label


# ---------------------------------------------------------------------------
# Reminder preferences
# ---------------------------------------------------------------------------

REMINDER_DAY_CHOICES = (1, 3, 5, 7)


def _default_days() -> list[int]:
    return list(REMINDER_DAY_CHOICES)


class ReminderPreferences(BaseModel):
    """Days-before offsets at which each milestone triggers a reminder."""

    inspection_days: list[int] = Field(default_factory=_default_days)
    inspection_response_days: list[int] = Field(default_factory=_default_days)
    loan_contingency_days: list[int] = Field(default_factory=_default_days)
    appraisal_days: list[int] = Field(default_factory=_default_days)
    final_walkthrough_days: list[int] = Field(default_factory=_default_days)
    closing_days: list[int] = Field(default_factory=_default_days)

    @field_validator("*")
    @classmethod
    def _only_offered_days(cls, v: list[int]) -> list[int]:
        return sorted({d for d in v if d in REMINDER_DAY_CHOICES})

    def offsets_for(self, milestone: MilestoneType) -> set[int]:
        return set(getattr(self, f"{milestone.value}_days"))

    def with_days(self, milestone: MilestoneType, days: Iterable[int]) -> ReminderPreferences:
        """Copy with new offsets for one milestone, validated like any other input."""
        data = self.model_dump()
        data[f"{milestone.value}_days"] = list(days)
        return ReminderPreferences.model_validate(data)


# ---------------------------------------------------------------------------
# Integrity issue
# ---------------------------------------------------------------------------

class IntegrityIssue(BaseModel):
    contract_id: str
    code: str  # dangling_original, missing_original, nested_counter_offer, ...
    message: str


# ---------------------------------------------------------------------------
# Notification / email results
# ---------------------------------------------------------------------------

class Notification(BaseModel):
    title: str
    body: str
    priority: str = "normal"  # low, normal, high, urgent
    url: str = ""
    contract_id: str = ""


class EmailFailure(BaseModel):
    contract_id: str
    reason: str


class BulkEmailResults(BaseModel):
    sent: list[str] = Field(default_factory=list)
    failed: list[EmailFailure] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.sent) + len(self.failed)
