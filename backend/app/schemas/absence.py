from datetime import date, datetime

from pydantic import BaseModel, Field

from app.models.absence import AbsenceRole, AbsenceStatus
from app.models.notification import NotificationEvent
from app.services.substitute_resolver import ResolutionOutcome


class AbsenceCreate(BaseModel):
    # Admins may file on behalf of someone else; everyone else files for themselves.
    person_id: str | None = Field(default=None, max_length=36)
    role: str = Field(max_length=20)
    class_id: str = Field(max_length=36)
    reason: str = Field(max_length=1000)
    absence_date: date
    duration: float
    evidence_ref: str | None = Field(default=None, max_length=1000)


class AbsenceStatusUpdate(BaseModel):
    status: AbsenceStatus


class AbsenceOut(BaseModel):
    id: str
    person_id: str
    role: AbsenceRole
    class_id: str
    reason: str
    absence_date: date
    duration: float
    evidence_ref: str | None = None
    status: AbsenceStatus
    reviewed_by_id: str | None = None
    reviewed_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AbsenceListItem(AbsenceOut):
    person_name: str | None = None
    class_name: str | None = None
    substitute_teacher_id: str | None = None
    substitute_name: str | None = None


class ResolutionOut(BaseModel):
    absence_id: str
    outcome: ResolutionOutcome
    weekday: str | None = None
    substitute_id: str | None = None
    entry_ids: list[str] = []
    skipped: bool

    model_config = {"from_attributes": True}


class RecipientOutcomeOut(BaseModel):
    recipient_id: str
    persisted: bool
    already_notified: bool
    notification_id: str | None = None
    persist_error: str | None = None
    push_status: str
    push_error: str | None = None

    model_config = {"from_attributes": True}


class DispatchReportOut(BaseModel):
    event_type: NotificationEvent
    absence_id: str
    recipients: list[RecipientOutcomeOut]
    persisted_count: int
    push_sent_count: int
    push_failed_count: int
    error: str | None = None

    model_config = {"from_attributes": True}


class AbsenceSubmissionOut(BaseModel):
    absence: AbsenceOut
    resolution: ResolutionOut | None = None
    reassignments: list[ResolutionOut] = []
    notifications: list[DispatchReportOut]

    model_config = {"from_attributes": True}


class ResolutionRunOut(BaseModel):
    resolution: ResolutionOut
    notifications: list[DispatchReportOut]
