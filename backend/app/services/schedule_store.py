from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from threading import Lock

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from app.models.schedule_entry import ScheduleEntry
from app.models.school_class import SchoolClass
from app.services.roster import upstream_guard

DAY_SHORT_MAP = {
    "Mon": "Monday",
    "Tue": "Tuesday",
    "Wed": "Wednesday",
    "Thu": "Thursday",
    "Fri": "Friday",
    "Sat": "Saturday",
    "Sun": "Sunday",
}
DAY_ORDER = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

_UNCHECKED = object()


def normalize_day(value: str) -> str:
    stripped = (value or "").strip()
    return DAY_SHORT_MAP.get(stripped[:3].title(), stripped.title()) if stripped else stripped


def weekday_name(value: date) -> str:
    # Independent of the process locale, unlike strftime("%A").
    return DAY_ORDER[value.weekday()]


class ClassLockRegistry:
    """One mutation lock per class so concurrent resolutions cannot interleave on a schedule."""

    def __init__(self) -> None:
        self._locks: dict[str, Lock] = {}
        self._guard = Lock()

    def lock_for(self, class_id: str) -> Lock:
        with self._guard:
            lock = self._locks.get(class_id)
            if lock is None:
                lock = Lock()
                self._locks[class_id] = lock
            return lock

    @contextmanager
    def hold(self, class_id: str) -> Iterator[None]:
        lock = self.lock_for(class_id)
        with lock:
            yield

    def clear(self) -> None:
        with self._guard:
            self._locks.clear()


class_locks = ClassLockRegistry()


class ScheduleStore:
    service_name = "schedule store"

    def __init__(self, db: Session) -> None:
        self._db = db

    def get_class(self, class_id: str) -> SchoolClass | None:
        with upstream_guard(self.service_name):
            return self._db.get(SchoolClass, class_id)

    def get_schedule_for_class(self, class_id: str) -> list[ScheduleEntry]:
        query = (
            select(ScheduleEntry)
            .where(ScheduleEntry.class_id == class_id)
            .order_by(ScheduleEntry.position, ScheduleEntry.start_time, ScheduleEntry.id)
            .execution_options(populate_existing=True)
        )
        with upstream_guard(self.service_name):
            return list(self._db.execute(query).scalars())

    def teacher_ids_for_class(self, class_id: str) -> list[str]:
        return list(dict.fromkeys(item.teacher_id for item in self.get_schedule_for_class(class_id)))

    def set_substitute(self, entry_id: str, substitute_id: str | None, *, expected=_UNCHECKED) -> bool:
        """Point an entry at a substitute (``None`` clears it).

        When ``expected`` is given the write only happens if the entry still holds that
        substitute; the return value tells whether a row was written.
        """
        statement = update(ScheduleEntry).where(ScheduleEntry.id == entry_id)
        if expected is not _UNCHECKED:
            if expected is None:
                statement = statement.where(ScheduleEntry.substitute_teacher_id.is_(None))
            else:
                statement = statement.where(ScheduleEntry.substitute_teacher_id == expected)
        statement = statement.values(substitute_teacher_id=substitute_id, updated_at=func.now())
        with upstream_guard(self.service_name):
            result = self._db.execute(statement.execution_options(synchronize_session=False))
        return result.rowcount == 1
