from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError, ValidationError
from app.models.absence import AbsenceRecord, AbsenceRole, AbsenceStatus
from app.models.school_class import SchoolClass
from app.models.substitute_assignment import SubstituteAssignment
from app.models.user import User
from app.services.audit import log_activity
from app.services.roster import upstream_guard

logger = logging.getLogger(__name__)


def _normalize_text(value: str | None) -> str | None:
    if value is None:
        return None
    trimmed = str(value).strip()
    return trimmed or None


def _parse_role(value) -> AbsenceRole:
    if isinstance(value, AbsenceRole):
        return value
    normalized = (_normalize_text(value) or "").lower()
    if not normalized:
        raise ValidationError("Role is required", details={"field": "role"})
    try:
        return AbsenceRole(normalized)
    except ValueError:
        raise ValidationError(
            f"Unrecognized role '{value}'",
            details={"field": "role", "allowed": [item.value for item in AbsenceRole]},
        ) from None


def _parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raw = _normalize_text(value)
    if raw is None:
        raise ValidationError("Absence date is required", details={"field": "date"})
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise ValidationError(f"'{raw}' is not a valid calendar date", details={"field": "date"}) from None


def _parse_duration(value) -> float:
    if value is None or isinstance(value, bool):
        raise ValidationError("Duration is required", details={"field": "duration"})
    try:
        duration = float(value)
    except (TypeError, ValueError):
        raise ValidationError("Duration must be a number", details={"field": "duration"}) from None
    if duration <= 0:
        raise ValidationError("Duration must be greater than zero", details={"field": "duration"})
    return duration


@dataclass
class AbsenceFilter:
    status: AbsenceStatus | None = None
    role: AbsenceRole | None = None
    class_id: str | None = None
    person_id: str | None = None
    absence_date: date | None = None
    limit: int = 200
    offset: int = 0


@dataclass
class AbsenceListing:
    record: AbsenceRecord
    person_name: str | None
    class_name: str | None
    substitute_teacher_id: str | None
    substitute_name: str | None


class AbsenceLedger:
    """Persistence for absence submissions. Records are never deleted."""

    service_name = "absence ledger"

    def __init__(self, db: Session, *, max_evidence_ref_length: int = 500) -> None:
        self._db = db
        self._max_evidence_ref_length = max_evidence_ref_length

    def submit(
        self,
        *,
        person_id: str | None,
        role,
        class_id: str | None,
        reason: str | None,
        absence_date,
        duration,
        evidence_ref: str | None = None,
        actor_id: str | None = None,
    ) -> AbsenceRecord:
        person_id = _normalize_text(person_id)
        class_id = _normalize_text(class_id)
        if person_id is None:
            raise ValidationError("Person is required", details={"field": "person_id"})
        if class_id is None:
            raise ValidationError("Class is required", details={"field": "class_id"})
        parsed_role = _parse_role(role)
        cleaned_reason = _normalize_text(reason)
        if cleaned_reason is None:
            raise ValidationError("Reason must not be empty", details={"field": "reason"})
        parsed_date = _parse_date(absence_date)
        parsed_duration = _parse_duration(duration)
        cleaned_evidence = _normalize_text(evidence_ref)
        if cleaned_evidence is not None and len(cleaned_evidence) > self._max_evidence_ref_length:
            raise ValidationError(
                "Evidence reference is too long",
                details={"field": "evidence_ref", "max_length": self._max_evidence_ref_length},
            )

        with upstream_guard(self.service_name):
            if self._db.get(SchoolClass, class_id) is None:
                raise NotFoundError("Class", class_id)
            if self._db.get(User, person_id) is None:
                raise NotFoundError("User", person_id)

            record = AbsenceRecord(
                person_id=person_id,
                role=parsed_role,
                class_id=class_id,
                reason=cleaned_reason,
                absence_date=parsed_date,
                duration=parsed_duration,
                evidence_ref=cleaned_evidence,
                status=AbsenceStatus.pending,
            )
            self._db.add(record)
            self._db.flush()
            log_activity(
                self._db,
                actor_id=actor_id or person_id,
                action="absence.submit",
                entity_type="absence",
                entity_id=record.id,
                details={
                    "role": parsed_role.value,
                    "class_id": class_id,
                    "absence_date": parsed_date.isoformat(),
                },
            )
            self._db.commit()
            self._db.refresh(record)

        logger.info(
            "Recorded %s absence %s for %s on %s",
            record.role.value,
            record.id,
            record.person_id,
            record.absence_date.isoformat(),
        )
        return record

    def get(self, absence_id: str) -> AbsenceRecord:
        with upstream_guard(self.service_name):
            record = self._db.get(AbsenceRecord, absence_id)
        if record is None:
            raise NotFoundError("Absence", absence_id)
        return record

    def set_status(self, absence_id: str, status: AbsenceStatus, *, reviewer_id: str) -> AbsenceRecord:
        record = self.get(absence_id)
        previous = record.status
        record.status = status
        record.reviewed_by_id = reviewer_id
        record.reviewed_at = datetime.now(timezone.utc)
        log_activity(
            self._db,
            actor_id=reviewer_id,
            action="absence.status.update",
            entity_type="absence",
            entity_id=record.id,
            details={"from": previous.value, "to": status.value},
        )
        with upstream_guard(self.service_name):
            self._db.commit()
            self._db.refresh(record)
        return record

    def list_absences(self, filters: AbsenceFilter | None = None) -> list[AbsenceListing]:
        filters = filters or AbsenceFilter()
        query = select(AbsenceRecord)
        if filters.status is not None:
            query = query.where(AbsenceRecord.status == filters.status)
        if filters.role is not None:
            query = query.where(AbsenceRecord.role == filters.role)
        if filters.class_id:
            query = query.where(AbsenceRecord.class_id == filters.class_id)
        if filters.person_id:
            query = query.where(AbsenceRecord.person_id == filters.person_id)
        if filters.absence_date is not None:
            query = query.where(AbsenceRecord.absence_date == filters.absence_date)
        query = (
            query.order_by(AbsenceRecord.absence_date.desc(), AbsenceRecord.created_at.desc(), AbsenceRecord.id)
            .offset(filters.offset)
            .limit(filters.limit)
        )

        with upstream_guard(self.service_name):
            records = list(self._db.execute(query).scalars())
            if not records:
                return []

            assignments = {
                item.absence_id: item
                for item in self._db.execute(
                    select(SubstituteAssignment).where(
                        SubstituteAssignment.absence_id.in_([item.id for item in records])
                    )
                ).scalars()
            }
            people_ids = {item.person_id for item in records}
            people_ids.update(item.substitute_teacher_id for item in assignments.values())
            names_by_user_id = dict(
                self._db.execute(select(User.id, User.name).where(User.id.in_(people_ids))).all()
            )
            class_names = dict(
                self._db.execute(
                    select(SchoolClass.id, SchoolClass.name).where(
                        SchoolClass.id.in_({item.class_id for item in records})
                    )
                ).all()
            )

        output: list[AbsenceListing] = []
        for record in records:
            assignment = assignments.get(record.id)
            substitute_id = assignment.substitute_teacher_id if assignment else None
            output.append(
                AbsenceListing(
                    record=record,
                    person_name=names_by_user_id.get(record.person_id),
                    class_name=class_names.get(record.class_id),
                    substitute_teacher_id=substitute_id,
                    substitute_name=names_by_user_id.get(substitute_id) if substitute_id else None,
                )
            )
        return output
