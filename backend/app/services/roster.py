from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.core.exceptions import UpstreamUnavailable
from app.models.absence import AbsenceRecord, AbsenceStatus
from app.models.school_class import ClassEnrollment
from app.models.user import User, UserRole

ACTIVE_ABSENCE_STATUSES = (AbsenceStatus.pending, AbsenceStatus.approved)


@contextmanager
def upstream_guard(service: str) -> Iterator[None]:
    """Translate connectivity failures of a backing store into ``UpstreamUnavailable``."""
    try:
        yield
    except OperationalError as exc:
        raise UpstreamUnavailable(service, f"{service} is unavailable: {exc.orig}") from exc


@dataclass(frozen=True)
class RosterEntry:
    id: str
    name: str
    role: UserRole
    disabled: bool
    push_handle: str | None = None

    @classmethod
    def from_user(cls, user: User) -> RosterEntry:
        return cls(
            id=user.id,
            name=user.name,
            role=user.role,
            disabled=bool(user.is_disabled),
            push_handle=(user.push_handle or "").strip() or None,
        )


class RosterStore:
    """Read-only view over the people known to the school."""

    service_name = "roster"

    def __init__(self, db: Session) -> None:
        self._db = db

    def find_by_role(self, role: UserRole) -> list[RosterEntry]:
        query = select(User).where(User.role == role).order_by(User.created_at, User.name, User.id)
        with upstream_guard(self.service_name):
            return [RosterEntry.from_user(item) for item in self._db.execute(query).scalars()]

    def find_by_id(self, user_id: str) -> RosterEntry | None:
        with upstream_guard(self.service_name):
            user = self._db.get(User, user_id)
        return RosterEntry.from_user(user) if user is not None else None

    def find_by_ids(self, user_ids: Iterable[str]) -> dict[str, RosterEntry]:
        requested = [item for item in dict.fromkeys(user_ids) if item]
        if not requested:
            return {}
        with upstream_guard(self.service_name):
            users = self._db.execute(select(User).where(User.id.in_(requested))).scalars()
            return {item.id: RosterEntry.from_user(item) for item in users}

    def find_absent_teachers_on_date(self, on_date: date) -> set[str]:
        # Any pending/approved record counts, whatever role it was filed under.
        query = (
            select(AbsenceRecord.person_id)
            .join(User, User.id == AbsenceRecord.person_id)
            .where(
                AbsenceRecord.absence_date == on_date,
                AbsenceRecord.status.in_(ACTIVE_ABSENCE_STATUSES),
                User.role == UserRole.teacher,
            )
            .distinct()
        )
        with upstream_guard(self.service_name):
            return set(self._db.execute(query).scalars())

    def find_students_in_class(self, class_id: str) -> list[RosterEntry]:
        query = (
            select(User)
            .join(ClassEnrollment, ClassEnrollment.student_id == User.id)
            .where(ClassEnrollment.class_id == class_id, User.role == UserRole.student)
            .order_by(User.name, User.id)
        )
        with upstream_guard(self.service_name):
            return [RosterEntry.from_user(item) for item in self._db.execute(query).scalars()]
