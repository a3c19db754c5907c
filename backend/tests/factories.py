from datetime import date, timedelta
import uuid

from app.core.security import create_access_token
from app.models.absence import AbsenceRecord, AbsenceRole, AbsenceStatus
from app.models.schedule_entry import ScheduleEntry
from app.models.school_class import ClassEnrollment, SchoolClass
from app.models.user import User, UserRole

MONDAY = date(2026, 10, 19)
TUESDAY = MONDAY + timedelta(days=1)


def make_user(db, name, role, *, push_handle=None, disabled=False) -> User:
    user = User(
        name=name,
        email=f"{name.lower().replace(' ', '-')}-{uuid.uuid4().hex[:8]}@example.com",
        role=UserRole(role),
        push_handle=push_handle,
        is_disabled=disabled,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_class(db, name, *, hod=None, students=()) -> SchoolClass:
    school_class = SchoolClass(name=name, hod_id=hod.id if hod is not None else None)
    db.add(school_class)
    db.flush()
    for student in students:
        db.add(ClassEnrollment(class_id=school_class.id, student_id=student.id))
    db.commit()
    db.refresh(school_class)
    return school_class


def add_entry(db, school_class, day, start, end, teacher, *, position=0) -> ScheduleEntry:
    entry = ScheduleEntry(
        class_id=school_class.id,
        day=day,
        start_time=start,
        end_time=end,
        teacher_id=teacher.id,
        position=position,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def record_absence(db, person, school_class, on_date, *, role="teacher", status="pending") -> AbsenceRecord:
    record = AbsenceRecord(
        person_id=person.id,
        role=AbsenceRole(role),
        class_id=school_class.id,
        reason="Already reported",
        absence_date=on_date,
        duration=1,
        status=AbsenceStatus(status),
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def auth_headers(user) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}
