"""Substitute selection for teacher absences.

Selection is a pure function over roster and absence snapshots. The assignment
and reassignment steps are the only writers of
``ScheduleEntry.substitute_teacher_id``. Both run under the per-class mutation
lock and never hold it across notification fan-out.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import ScheduleConflictError
from app.models.absence import AbsenceRecord, AbsenceRole
from app.models.schedule_entry import ScheduleEntry
from app.models.substitute_assignment import SubstituteAssignment
from app.models.user import UserRole
from app.services.audit import log_activity
from app.services.roster import ACTIVE_ABSENCE_STATUSES, RosterEntry, RosterStore, upstream_guard
from app.services.schedule_store import ClassLockRegistry, ScheduleStore, class_locks, normalize_day, weekday_name

logger = logging.getLogger(__name__)


class ResolutionOutcome(str, Enum):
    assigned = "assigned"
    already_assigned = "already_assigned"
    not_teacher = "not_teacher"
    no_schedule = "no_schedule"
    no_matching_entries = "no_matching_entries"
    no_candidates = "no_candidates"
    reassigned = "reassigned"


SKIPPED_OUTCOMES = {
    ResolutionOutcome.not_teacher,
    ResolutionOutcome.no_schedule,
    ResolutionOutcome.no_matching_entries,
    ResolutionOutcome.no_candidates,
}


@dataclass
class ResolutionResult:
    absence_id: str
    outcome: ResolutionOutcome
    weekday: str | None = None
    substitute_id: str | None = None
    entry_ids: list[str] = field(default_factory=list)

    @property
    def skipped(self) -> bool:
        return self.outcome in SKIPPED_OUTCOMES

    @property
    def newly_assigned(self) -> bool:
        return self.outcome == ResolutionOutcome.assigned


def build_candidate_pool(
    absent_teacher_id: str,
    teachers: Sequence[RosterEntry],
    absent_teacher_ids: Iterable[str],
) -> list[RosterEntry]:
    unavailable = set(absent_teacher_ids)
    unavailable.add(absent_teacher_id)
    return [
        item
        for item in teachers
        if item.role == UserRole.teacher and not item.disabled and item.id not in unavailable
    ]


def select_substitute(
    absent_teacher_id: str,
    teachers: Sequence[RosterEntry],
    absent_teacher_ids: Iterable[str],
) -> RosterEntry | None:
    """First eligible teacher in roster order, or ``None`` when nobody is free."""
    pool = build_candidate_pool(absent_teacher_id, teachers, absent_teacher_ids)
    return pool[0] if pool else None


def matching_entries(entries: Iterable[ScheduleEntry], *, weekday: str, teacher_id: str) -> list[ScheduleEntry]:
    return [item for item in entries if item.teacher_id == teacher_id and normalize_day(item.day) == weekday]


class SubstituteResolver:
    def __init__(
        self,
        db: Session,
        *,
        roster: RosterStore,
        schedule: ScheduleStore,
        locks: ClassLockRegistry = class_locks,
    ) -> None:
        self._db = db
        self._roster = roster
        self._schedule = schedule
        self._locks = locks

    def _existing_assignment(self, absence_id: str) -> SubstituteAssignment | None:
        with upstream_guard(ScheduleStore.service_name):
            return self._db.execute(
                select(SubstituteAssignment).where(SubstituteAssignment.absence_id == absence_id)
            ).scalar_one_or_none()

    @staticmethod
    def _from_assignment(assignment: SubstituteAssignment) -> ResolutionResult:
        return ResolutionResult(
            absence_id=assignment.absence_id,
            outcome=ResolutionOutcome.already_assigned,
            weekday=assignment.weekday,
            substitute_id=assignment.substitute_teacher_id,
            entry_ids=list(assignment.entry_ids or []),
        )

    def resolve(self, absence: AbsenceRecord) -> ResolutionResult:
        absence_id = absence.id
        if absence.role != AbsenceRole.teacher:
            return ResolutionResult(absence_id=absence_id, outcome=ResolutionOutcome.not_teacher)

        existing = self._existing_assignment(absence_id)
        if existing is not None:
            return self._from_assignment(existing)

        weekday = weekday_name(absence.absence_date)
        entries = self._schedule.get_schedule_for_class(absence.class_id)
        if not entries:
            logger.info("No schedule for class %s; absence %s needs no substitute", absence.class_id, absence_id)
            return ResolutionResult(absence_id=absence_id, outcome=ResolutionOutcome.no_schedule, weekday=weekday)

        affected = matching_entries(entries, weekday=weekday, teacher_id=absence.person_id)
        if not affected:
            logger.info(
                "Teacher %s has no %s slots in class %s; absence %s needs no substitute",
                absence.person_id,
                weekday,
                absence.class_id,
                absence_id,
            )
            return ResolutionResult(
                absence_id=absence_id,
                outcome=ResolutionOutcome.no_matching_entries,
                weekday=weekday,
            )

        teachers = self._roster.find_by_role(UserRole.teacher)
        absent_ids = self._roster.find_absent_teachers_on_date(absence.absence_date)
        candidate = select_substitute(absence.person_id, teachers, absent_ids)
        if candidate is None:
            logger.info(
                "No substitute available for absence %s (class %s, %s)",
                absence_id,
                absence.class_id,
                absence.absence_date.isoformat(),
            )
            return ResolutionResult(absence_id=absence_id, outcome=ResolutionOutcome.no_candidates, weekday=weekday)

        return self._assign(absence, candidate, weekday=weekday, entry_ids=[item.id for item in affected])

    def _assign(
        self,
        absence: AbsenceRecord,
        candidate: RosterEntry,
        *,
        weekday: str,
        entry_ids: list[str],
    ) -> ResolutionResult:
        absence_id = absence.id
        class_id = absence.class_id
        absent_teacher_id = absence.person_id

        with self._locks.hold(class_id):
            try:
                current = {item.id: item for item in self._schedule.get_schedule_for_class(class_id)}
                mutated: list[str] = []
                for entry_id in entry_ids:
                    entry = current.get(entry_id)
                    if entry is None or entry.teacher_id != absent_teacher_id or normalize_day(entry.day) != weekday:
                        continue
                    if entry.substitute_teacher_id == candidate.id:
                        mutated.append(entry_id)
                        continue
                    if not self._schedule.set_substitute(
                        entry_id,
                        candidate.id,
                        expected=entry.substitute_teacher_id,
                    ):
                        raise ScheduleConflictError(
                            "Schedule entry changed during substitute assignment",
                            details={"entry_id": entry_id, "class_id": class_id},
                        )
                    mutated.append(entry_id)

                self._db.add(
                    SubstituteAssignment(
                        absence_id=absence_id,
                        class_id=class_id,
                        substitute_teacher_id=candidate.id,
                        weekday=weekday,
                        entry_ids=mutated,
                    )
                )
                log_activity(
                    self._db,
                    actor_id=None,
                    action="absence.substitute.assign",
                    entity_type="absence",
                    entity_id=absence_id,
                    details={
                        "class_id": class_id,
                        "weekday": weekday,
                        "substitute_teacher_id": candidate.id,
                        "entry_ids": mutated,
                    },
                )
                with upstream_guard(ScheduleStore.service_name):
                    self._db.commit()
            except IntegrityError:
                # A concurrent run for the same absence committed first.
                self._db.rollback()
                existing = self._existing_assignment(absence_id)
                if existing is None:
                    raise
                return self._from_assignment(existing)
            except Exception:
                self._db.rollback()
                raise

        logger.info(
            "Assigned substitute %s to %d %s slot(s) of class %s for absence %s",
            candidate.id,
            len(mutated),
            weekday,
            class_id,
            absence_id,
        )
        return ResolutionResult(
            absence_id=absence_id,
            outcome=ResolutionOutcome.assigned,
            weekday=weekday,
            substitute_id=candidate.id,
            entry_ids=mutated,
        )

    def reassign_cover(self, absence: AbsenceRecord) -> list[ResolutionResult]:
        """Move cover away from a substitute who is now absent on the date they were covering.

        Returns one result per affected absence: ``reassigned`` with the new substitute, or
        ``no_candidates`` when nobody else is free (the entries are cleared and the
        assignment is dropped so a later ``resolve`` can try again).
        """
        if absence.status not in ACTIVE_ABSENCE_STATUSES:
            return []
        query = (
            select(SubstituteAssignment)
            .join(AbsenceRecord, AbsenceRecord.id == SubstituteAssignment.absence_id)
            .where(
                SubstituteAssignment.substitute_teacher_id == absence.person_id,
                AbsenceRecord.absence_date == absence.absence_date,
                AbsenceRecord.id != absence.id,
            )
            .order_by(SubstituteAssignment.created_at, SubstituteAssignment.id)
        )
        with upstream_guard(ScheduleStore.service_name):
            assignment_ids = [item.id for item in self._db.execute(query).scalars()]
        if not assignment_ids:
            return []

        teachers = self._roster.find_by_role(UserRole.teacher)
        absent_ids = self._roster.find_absent_teachers_on_date(absence.absence_date)
        absent_ids.add(absence.person_id)

        results: list[ResolutionResult] = []
        for assignment_id in assignment_ids:
            result = self._move_cover(assignment_id, absence.person_id, teachers, absent_ids)
            if result is not None:
                results.append(result)
        return results

    def _move_cover(
        self,
        assignment_id: str,
        absent_substitute_id: str,
        teachers: Sequence[RosterEntry],
        absent_ids: set[str],
    ) -> ResolutionResult | None:
        with upstream_guard(ScheduleStore.service_name):
            assignment = self._db.get(SubstituteAssignment, assignment_id)
            original = self._db.get(AbsenceRecord, assignment.absence_id) if assignment is not None else None
        if original is None:
            return None
        class_id = assignment.class_id

        with self._locks.hold(class_id):
            try:
                # Another run may have moved this cover while we waited for the lock.
                assignment = self._db.execute(
                    select(SubstituteAssignment)
                    .where(SubstituteAssignment.id == assignment_id)
                    .execution_options(populate_existing=True)
                ).scalar_one_or_none()
                if assignment is None or assignment.substitute_teacher_id != absent_substitute_id:
                    self._db.rollback()
                    return None
                candidate = select_substitute(original.person_id, teachers, absent_ids)
                new_substitute_id = candidate.id if candidate is not None else None

                current = {item.id: item for item in self._schedule.get_schedule_for_class(class_id)}
                moved: list[str] = []
                for entry_id in assignment.entry_ids or []:
                    entry = current.get(entry_id)
                    if entry is None or entry.substitute_teacher_id != absent_substitute_id:
                        continue
                    if not self._schedule.set_substitute(entry_id, new_substitute_id, expected=absent_substitute_id):
                        raise ScheduleConflictError(
                            "Schedule entry changed during substitute reassignment",
                            details={"entry_id": entry_id, "class_id": class_id},
                        )
                    moved.append(entry_id)

                weekday = assignment.weekday
                if candidate is None:
                    self._db.delete(assignment)
                else:
                    assignment.substitute_teacher_id = candidate.id
                    assignment.entry_ids = moved
                log_activity(
                    self._db,
                    actor_id=None,
                    action="absence.substitute.reassign",
                    entity_type="absence",
                    entity_id=original.id,
                    details={
                        "class_id": class_id,
                        "weekday": weekday,
                        "from_teacher_id": absent_substitute_id,
                        "to_teacher_id": new_substitute_id,
                        "entry_ids": moved,
                    },
                )
                with upstream_guard(ScheduleStore.service_name):
                    self._db.commit()
            except Exception:
                self._db.rollback()
                raise

        if candidate is None:
            logger.info(
                "Substitute %s is absent and nobody else can cover absence %s; cleared %d slot(s)",
                absent_substitute_id,
                original.id,
                len(moved),
            )
            return ResolutionResult(
                absence_id=original.id,
                outcome=ResolutionOutcome.no_candidates,
                weekday=weekday,
                entry_ids=moved,
            )
        logger.info(
            "Moved cover for absence %s from %s to %s on %d slot(s)",
            original.id,
            absent_substitute_id,
            candidate.id,
            len(moved),
        )
        return ResolutionResult(
            absence_id=original.id,
            outcome=ResolutionOutcome.reassigned,
            weekday=weekday,
            substitute_id=candidate.id,
            entry_ids=moved,
        )
