"""
Mentor Applications Schemas

Pydantic schemas for intake payloads, workflow results and API responses.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.modules.mentor_applications.models import (
    MAX_LENGTHS,
    ApplicationSource,
    ApplicationStatus,
    NoteKind,
)
from app.modules.shared import ErrorKind

# ============================================
# Intake
# ============================================


class ApplicationDraft(BaseModel):
    """Canonical application produced by the intake normalizer."""

    email: str = Field(..., max_length=MAX_LENGTHS["email"])
    full_name: str = Field(..., max_length=MAX_LENGTHS["full_name"])
    institution: str = Field(..., max_length=MAX_LENGTHS["institution"])
    graduation_year: int | None = None
    age_confirmed: bool
    agreement_accepted: bool
    perspective_confirmed: bool = False
    topics: list[str] = Field(default_factory=list)
    session_formats: list[str] = Field(default_factory=list)
    hours_per_week: str | None = Field(None, max_length=MAX_LENGTHS["hours_per_week"])
    languages: list[str] = Field(default_factory=list)
    prior_experience: str | None = None
    motivation: str | None = None
    intro_video_url: str | None = Field(None, max_length=MAX_LENGTHS["intro_video_url"])
    social_links: str | None = None
    referral_source: str | None = Field(None, max_length=MAX_LENGTHS["referral_source"])


class IntakeResult(BaseModel):
    """Outcome of normalizing one submission. Never raised, always returned."""

    success: bool
    record: ApplicationDraft | None = None
    errors: list[str] = Field(default_factory=list)


class FormAnswer(BaseModel):
    """One question/answer pair from a form submission."""

    label: str = Field(..., min_length=1, max_length=500)
    answer: str | bool | list[str] | None = None


class FormSubmission(BaseModel):
    """Request body for POST /mentor-applications/form."""

    answers: list[FormAnswer] = Field(..., min_length=1)
    respondent_email: str | None = Field(None, alias="respondentEmail")

    model_config = ConfigDict(populate_by_name=True)


class ImportRequest(BaseModel):
    """Request body for POST /admin/mentor-applications/import (CSV rows keyed by header)."""

    rows: list[dict[str, Any]] = Field(..., min_length=1, max_length=500)


class SubmitApplicationResponse(BaseModel):
    success: bool = True
    id: UUID
    status: ApplicationStatus
    record: ApplicationDraft
    message: str


# ============================================
# Workflow results
# ============================================


class TransitionResult(BaseModel):
    """Result of an approval state machine call."""

    success: bool
    noop: bool = False
    error: ErrorKind | None = None
    status: ApplicationStatus | None = None


class ReviewEdit(BaseModel):
    """
    A single cell edit on the manual-review sheet.

    The row is located by ``application_id`` when present, otherwise by
    the most recent application for ``email``.
    """

    column_label: str = Field(..., min_length=1, alias="columnLabel")
    value: str | bool | None = None
    application_id: UUID | None = Field(None, alias="applicationId")
    email: str | None = None
    editor: str | None = None

    model_config = ConfigDict(populate_by_name=True)


class ReviewEditResult(BaseModel):
    action: str  # "approve", "reject", "note" or "ignored"
    application_id: UUID | None = None
    transition: TransitionResult | None = None
    detail: str | None = None


class ReprocessItem(BaseModel):
    application_id: UUID = Field(..., alias="applicationId")
    target_status: ApplicationStatus = Field(..., alias="targetStatus")

    model_config = ConfigDict(populate_by_name=True)


class ReprocessRequest(BaseModel):
    items: list[ReprocessItem] = Field(..., min_length=1, max_length=500)


class RowResult(BaseModel):
    """Per-row outcome of a batch operation."""

    index: int
    success: bool
    application_id: UUID | None = None
    noop: bool = False
    error: ErrorKind | None = None
    errors: list[str] = Field(default_factory=list)


class BatchResult(BaseModel):
    total: int
    succeeded: int
    failed: int
    rows: list[RowResult]


# ============================================
# Applicant-facing
# ============================================


class ApplicationStatusResponse(BaseModel):
    """Coarse status shown to applicants."""

    id: UUID
    status: ApplicationStatus
    status_label: str
    status_description: str
    submitted_at: datetime


# ============================================
# Reviewer-facing
# ============================================


class DecisionRequest(BaseModel):
    reason: str | None = Field(None, max_length=2000)


class TransitionRequest(BaseModel):
    target_status: ApplicationStatus = Field(..., alias="targetStatus")

    model_config = ConfigDict(populate_by_name=True)


class AddNoteRequest(BaseModel):
    note: str = Field(..., min_length=1, max_length=5000)


class NoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    kind: NoteKind
    body: str
    author: str | None
    created_at: datetime


class ApplicationListItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    full_name: str
    institution: str
    status: ApplicationStatus
    source: ApplicationSource
    submitted_at: datetime
    reviewed_at: datetime | None
    reviewed_by: str | None
    provisioned_at: datetime | None


class ApplicationListResponse(BaseModel):
    items: list[ApplicationListItem]
    total: int
    skip: int
    limit: int


class ApplicationDetailResponse(ApplicationListItem):
    graduation_year: int | None
    age_confirmed: bool
    agreement_accepted: bool
    perspective_confirmed: bool
    topics: list[str]
    session_formats: list[str]
    hours_per_week: str | None
    languages: list[str]
    prior_experience: str | None
    motivation: str | None
    intro_video_url: str | None
    social_links: str | None
    referral_source: str | None
    notes: list[NoteResponse]
