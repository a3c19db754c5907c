"""Notification fan-out for absence workflow events.

Every dispatch computes a deduplicated recipient set, persists one record per
recipient and pushes to recipients that registered a device. Each leg is
isolated: a failure is written into the per-recipient report and logged, and
``NotificationFanout.dispatch`` itself never raises.
"""

from __future__ import annotations

from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.absence import AbsenceRecord, AbsenceRole
from app.models.notification import Notification, NotificationEvent
from app.models.user import UserRole
from app.services.push_gateway import PushGateway
from app.services.roster import RosterEntry, RosterStore
from app.services.schedule_store import ScheduleStore, weekday_name

logger = logging.getLogger(__name__)

PUSH_SENT = "sent"
PUSH_FAILED = "failed"
PUSH_SKIPPED = "skipped"

# Events that tell the covering substitute and the class students about the cover.
COVER_EVENTS = {NotificationEvent.substitute_assigned, NotificationEvent.substitute_reassigned}


@dataclass
class RecipientOutcome:
    recipient_id: str
    persisted: bool = False
    already_notified: bool = False
    notification_id: str | None = None
    persist_error: str | None = None
    push_status: str = PUSH_SKIPPED
    push_error: str | None = None

    @property
    def failed(self) -> bool:
        return not self.persisted or self.push_status == PUSH_FAILED


@dataclass
class DispatchReport:
    event_type: NotificationEvent
    absence_id: str
    recipients: list[RecipientOutcome] = field(default_factory=list)
    error: str | None = None

    @property
    def recipient_ids(self) -> list[str]:
        return [item.recipient_id for item in self.recipients]

    @property
    def persisted_count(self) -> int:
        return sum(1 for item in self.recipients if item.persisted)

    @property
    def push_sent_count(self) -> int:
        return sum(1 for item in self.recipients if item.push_status == PUSH_SENT)

    @property
    def push_failed_count(self) -> int:
        return sum(1 for item in self.recipients if item.push_status == PUSH_FAILED)

    @property
    def failures(self) -> list[RecipientOutcome]:
        return [item for item in self.recipients if item.failed]


def recipient_ids_for_event(
    event_type: NotificationEvent,
    *,
    absence_role: AbsenceRole,
    hod_id: str | None,
    admin_ids: Iterable[str],
    class_teacher_ids: Iterable[str] = (),
    student_ids: Iterable[str] = (),
    substitute_id: str | None = None,
) -> list[str]:
    """Ordered, deduplicated recipient ids for one event."""
    candidates: list[str | None] = [hod_id]
    if event_type == NotificationEvent.absence_submitted:
        if absence_role == AbsenceRole.student:
            candidates.extend(class_teacher_ids)
    elif event_type in COVER_EVENTS:
        candidates.append(substitute_id)
        candidates.extend(student_ids)
    candidates.extend(admin_ids)
    return [item for item in dict.fromkeys(candidates) if item]


def build_event_payload(
    event_type: NotificationEvent,
    *,
    absence_id: str,
    class_id: str,
    substitute_id: str | None = None,
) -> dict[str, str]:
    payload = {"eventType": event_type.value, "absenceId": absence_id, "classId": class_id}
    if substitute_id:
        payload["substituteId"] = substitute_id
    return payload


def render_message(
    event_type: NotificationEvent,
    *,
    absence: AbsenceRecord,
    class_name: str,
    absentee_name: str | None,
    substitute_name: str | None = None,
) -> tuple[str, str]:
    role_label = absence.role.value.capitalize()
    who = absentee_name or role_label
    day = f"{weekday_name(absence.absence_date)} {absence.absence_date.isoformat()}"
    if event_type == NotificationEvent.absence_submitted:
        return (
            f"{role_label} Absence Application",
            f"{who} submitted an absence application for class {class_name} on {day}.",
        )
    if event_type == NotificationEvent.substitute_assigned:
        return (
            "Substitute Teacher Assigned",
            f"Substitute teacher {substitute_name or 'TBD'} assigned for class {class_name} on {day}.",
        )
    if event_type == NotificationEvent.substitute_reassigned:
        return (
            "Substitute Teacher Changed",
            f"Substitute teacher {substitute_name or 'TBD'} now covers {who} in class {class_name} on {day}.",
        )
    return (
        "No Substitute Available",
        f"No substitute teacher could be found for {who} in class {class_name} on {day}.",
    )


class NotificationFanout:
    def __init__(
        self,
        db: Session,
        *,
        roster: RosterStore,
        schedule: ScheduleStore,
        gateway: PushGateway,
        max_workers: int = 8,
    ) -> None:
        self._db = db
        self._roster = roster
        self._schedule = schedule
        self._gateway = gateway
        self._max_workers = max(1, max_workers)

    def resolve_recipients(
        self,
        event_type: NotificationEvent,
        absence: AbsenceRecord,
        *,
        substitute_id: str | None = None,
    ) -> list[RosterEntry]:
        school_class = self._schedule.get_class(absence.class_id)
        hod_id = school_class.hod_id if school_class is not None else None
        admin_ids = [item.id for item in self._roster.find_by_role(UserRole.admin)]

        class_teacher_ids: list[str] = []
        if event_type == NotificationEvent.absence_submitted and absence.role == AbsenceRole.student:
            class_teacher_ids = self._schedule.teacher_ids_for_class(absence.class_id)
        student_ids: list[str] = []
        if event_type in COVER_EVENTS:
            student_ids = [item.id for item in self._roster.find_students_in_class(absence.class_id)]

        ordered_ids = recipient_ids_for_event(
            event_type,
            absence_role=absence.role,
            hod_id=hod_id,
            admin_ids=admin_ids,
            class_teacher_ids=class_teacher_ids,
            student_ids=student_ids,
            substitute_id=substitute_id,
        )
        entries = self._roster.find_by_ids(ordered_ids)
        return [entries[item] for item in ordered_ids if item in entries and not entries[item].disabled]

    def dispatch(
        self,
        event_type: NotificationEvent,
        absence: AbsenceRecord,
        extra: dict[str, Any] | None = None,
    ) -> DispatchReport:
        extra = extra or {}
        report = DispatchReport(event_type=event_type, absence_id=extra.get("absence_id", ""))
        substitute_id = extra.get("substitute_id")
        try:
            report.absence_id = absence.id
            recipients = self.resolve_recipients(event_type, absence, substitute_id=substitute_id)
            school_class = self._schedule.get_class(absence.class_id)
            absentee = self._roster.find_by_id(absence.person_id)
            substitute = self._roster.find_by_id(substitute_id) if substitute_id else None
            title, body = render_message(
                event_type,
                absence=absence,
                class_name=school_class.name if school_class is not None else "",
                absentee_name=absentee.name if absentee else None,
                substitute_name=substitute.name if substitute else None,
            )
            payload = build_event_payload(
                event_type,
                absence_id=absence.id,
                class_id=absence.class_id,
                substitute_id=substitute_id,
            )
        except Exception as exc:
            logger.exception("Could not prepare %s notifications for absence %s", event_type.value, report.absence_id)
            report.error = str(exc)
            return report

        outcomes = [RecipientOutcome(recipient_id=item.id) for item in recipients]
        for recipient, outcome in zip(recipients, outcomes):
            self._persist_leg(recipient, outcome, event_type=event_type, title=title, body=body, payload=payload)

        push_targets = [
            (recipient, outcome)
            for recipient, outcome in zip(recipients, outcomes)
            if recipient.push_handle and not outcome.already_notified
        ]
        self._push_legs(push_targets, title=title, body=body, payload=payload)

        report.recipients = outcomes
        logger.info(
            "Dispatched %s for absence %s: recipients=%d persisted=%d pushed=%d push_failed=%d",
            event_type.value,
            report.absence_id,
            len(outcomes),
            report.persisted_count,
            report.push_sent_count,
            report.push_failed_count,
        )
        return report

    def _persist_record(
        self,
        recipient: RosterEntry,
        *,
        event_type: NotificationEvent,
        title: str,
        body: str,
        payload: dict[str, str],
    ) -> Notification:
        record = Notification(
            user_id=recipient.id,
            event_type=event_type,
            absence_id=payload["absenceId"],
            title=title,
            message=body,
            payload=dict(payload),
        )
        self._db.add(record)
        self._db.commit()
        return record

    def _persist_leg(
        self,
        recipient: RosterEntry,
        outcome: RecipientOutcome,
        *,
        event_type: NotificationEvent,
        title: str,
        body: str,
        payload: dict[str, str],
    ) -> None:
        try:
            existing_id = self._db.execute(
                select(Notification.id).where(
                    Notification.user_id == recipient.id,
                    Notification.event_type == event_type,
                    Notification.absence_id == payload["absenceId"],
                )
            ).scalar_one_or_none()
            if existing_id is not None:
                outcome.persisted = True
                outcome.already_notified = True
                outcome.notification_id = existing_id
                return
            record = self._persist_record(recipient, event_type=event_type, title=title, body=body, payload=payload)
            outcome.persisted = True
            outcome.notification_id = record.id
        except Exception as exc:
            self._db.rollback()
            outcome.persist_error = str(exc) or exc.__class__.__name__
            logger.warning(
                "Persisting %s notification for %s failed",
                event_type.value,
                recipient.id,
                exc_info=True,
            )

    def _push_legs(
        self,
        targets: list[tuple[RosterEntry, RecipientOutcome]],
        *,
        title: str,
        body: str,
        payload: dict[str, str],
    ) -> None:
        if not targets:
            return
        # Each send is bounded by the gateway's own per-call timeout; every queued leg runs.
        with ThreadPoolExecutor(
            max_workers=min(self._max_workers, len(targets)),
            thread_name_prefix="push-fanout",
        ) as executor:
            futures = {
                executor.submit(self._gateway.send, recipient.push_handle, title, body, dict(payload)): outcome
                for recipient, outcome in targets
            }
            for future in as_completed(futures):
                outcome = futures[future]
                try:
                    result = future.result()
                except Exception as exc:
                    outcome.push_status = PUSH_FAILED
                    outcome.push_error = str(exc) or exc.__class__.__name__
                    logger.warning("Push to %s failed: %s", outcome.recipient_id, outcome.push_error)
                    continue
                if result.ok:
                    outcome.push_status = PUSH_SENT
                else:
                    outcome.push_status = PUSH_FAILED
                    outcome.push_error = result.error or "push rejected"
                    logger.warning("Push to %s rejected: %s", outcome.recipient_id, outcome.push_error)
