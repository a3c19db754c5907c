from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
import logging

from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.models.absence import AbsenceRecord, AbsenceRole
from app.models.notification import NotificationEvent
from app.services.absence_ledger import AbsenceLedger
from app.services.notifications import DispatchReport, NotificationFanout
from app.services.push_gateway import PushGateway
from app.services.roster import RosterStore
from app.services.schedule_store import ClassLockRegistry, ScheduleStore, class_locks
from app.services.substitute_resolver import ResolutionOutcome, ResolutionResult, SubstituteResolver

logger = logging.getLogger(__name__)


@dataclass
class SubmissionResult:
    absence: AbsenceRecord
    resolution: ResolutionResult | None = None
    reassignments: list[ResolutionResult] = field(default_factory=list)
    notifications: list[DispatchReport] = field(default_factory=list)


class AbsenceWorkflow:
    """Submit → persist → (teacher) resolve substitute → fan out, in causal order."""

    def __init__(
        self,
        db: Session,
        *,
        push_gateway: PushGateway,
        settings: Settings | None = None,
        locks: ClassLockRegistry = class_locks,
    ) -> None:
        settings = settings or get_settings()
        self.roster = RosterStore(db)
        self.schedule = ScheduleStore(db)
        self.ledger = AbsenceLedger(db, max_evidence_ref_length=settings.max_evidence_ref_length)
        self.resolver = SubstituteResolver(db, roster=self.roster, schedule=self.schedule, locks=locks)
        self.fanout = NotificationFanout(
            db,
            roster=self.roster,
            schedule=self.schedule,
            gateway=push_gateway,
            max_workers=settings.push_max_workers,
        )

    def submit_absence(
        self,
        *,
        person_id: str | None,
        role,
        class_id: str | None,
        reason: str | None,
        absence_date: date | str | None,
        duration,
        evidence_ref: str | None = None,
        actor_id: str | None = None,
    ) -> SubmissionResult:
        absence = self.ledger.submit(
            person_id=person_id,
            role=role,
            class_id=class_id,
            reason=reason,
            absence_date=absence_date,
            duration=duration,
            evidence_ref=evidence_ref,
            actor_id=actor_id,
        )
        result = SubmissionResult(absence=absence)
        result.notifications.append(self.fanout.dispatch(NotificationEvent.absence_submitted, absence))

        if absence.role == AbsenceRole.teacher:
            result.resolution = self.resolver.resolve(absence)
            result.notifications.extend(self._dispatch_resolution(absence, result.resolution))

        # Whatever role was filed, an absent person can no longer cover anyone that day.
        result.reassignments, reports = self._reassign_cover(absence)
        result.notifications.extend(reports)
        return result

    def resolve_absence(self, absence_id: str) -> tuple[ResolutionResult, list[DispatchReport]]:
        absence = self.ledger.get(absence_id)
        resolution = self.resolver.resolve(absence)
        reports = self._dispatch_resolution(absence, resolution)
        reports.extend(self._reassign_cover(absence)[1])
        return resolution, reports

    def _reassign_cover(self, absence: AbsenceRecord) -> tuple[list[ResolutionResult], list[DispatchReport]]:
        results = self.resolver.reassign_cover(absence)
        reports: list[DispatchReport] = []
        for item in results:
            reports.extend(self._dispatch_resolution(self.ledger.get(item.absence_id), item))
        return results, reports

    def _dispatch_resolution(self, absence: AbsenceRecord, resolution: ResolutionResult) -> list[DispatchReport]:
        if resolution.outcome == ResolutionOutcome.assigned:
            return [
                self.fanout.dispatch(
                    NotificationEvent.substitute_assigned,
                    absence,
                    {"absence_id": resolution.absence_id, "substitute_id": resolution.substitute_id},
                )
            ]
        if resolution.outcome == ResolutionOutcome.reassigned:
            return [
                self.fanout.dispatch(
                    NotificationEvent.substitute_reassigned,
                    absence,
                    {"absence_id": resolution.absence_id, "substitute_id": resolution.substitute_id},
                )
            ]
        if resolution.outcome == ResolutionOutcome.no_candidates:
            return [
                self.fanout.dispatch(
                    NotificationEvent.substitute_unavailable,
                    absence,
                    {"absence_id": resolution.absence_id},
                )
            ]
        if resolution.outcome != ResolutionOutcome.already_assigned:
            logger.info("Substitute resolution skipped for absence %s: %s", resolution.absence_id, resolution.outcome.value)
        return []
