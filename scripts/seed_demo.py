"""Seed a demo roster and class schedule for exercising the absence workflow.

Run:
  PYTHONPATH=backend python scripts/seed_demo.py
"""

from __future__ import annotations

import os
from typing import Iterable

from sqlalchemy import select

from app.core.security import create_access_token
from app.db.bootstrap import ensure_schema
from app.db.session import SessionLocal
from app.models.schedule_entry import ScheduleEntry
from app.models.school_class import ClassEnrollment, SchoolClass
from app.models.user import User, UserRole

CLASS_NAME = os.getenv("DEMO_CLASS_NAME", "Demo Grade 7A")


def _env_email(key: str, default: str) -> str:
    value = os.getenv(key, "").strip()
    return value or default


DEMO_ACCOUNTS = {
    "admin": {
        "name": "Demo Head of Department",
        "email": _env_email("DEMO_ADMIN_EMAIL", "hod.demo@example.com"),
        "role": UserRole.admin,
    },
    "teacher_1": {
        "name": "Demo Teacher One",
        "email": _env_email("DEMO_TEACHER1_EMAIL", "teacher1.demo@example.com"),
        "role": UserRole.teacher,
    },
    "teacher_2": {
        "name": "Demo Teacher Two",
        "email": _env_email("DEMO_TEACHER2_EMAIL", "teacher2.demo@example.com"),
        "role": UserRole.teacher,
    },
    "teacher_3": {
        "name": "Demo Teacher Three",
        "email": _env_email("DEMO_TEACHER3_EMAIL", "teacher3.demo@example.com"),
        "role": UserRole.teacher,
    },
    "student_a": {
        "name": "Demo Student A",
        "email": _env_email("DEMO_STUDENTA_EMAIL", "studenta.demo@example.com"),
        "role": UserRole.student,
    },
    "student_b": {
        "name": "Demo Student B",
        "email": _env_email("DEMO_STUDENTB_EMAIL", "studentb.demo@example.com"),
        "role": UserRole.student,
    },
}

# (day, start, end, teacher key)
WEEKLY_SLOTS = [
    ("Monday", "08:50", "09:40", "teacher_1"),
    ("Monday", "09:40", "10:30", "teacher_2"),
    ("Tuesday", "08:50", "09:40", "teacher_1"),
    ("Wednesday", "10:30", "11:20", "teacher_2"),
    ("Thursday", "08:50", "09:40", "teacher_1"),
    ("Friday", "11:20", "12:10", "teacher_2"),
]


def _upsert_user(*, name: str, email: str, role: UserRole) -> User:
    with SessionLocal() as session:
        existing = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if existing is None:
            existing = User(name=name, email=email, role=role, is_disabled=False)
            session.add(existing)
        else:
            existing.name = name
            existing.role = role
            existing.is_disabled = False
        session.commit()
        session.refresh(existing)
        return existing


def _upsert_class(users: dict[str, User]) -> SchoolClass:
    with SessionLocal() as session:
        school_class = session.execute(
            select(SchoolClass).where(SchoolClass.name == CLASS_NAME)
        ).scalar_one_or_none()
        if school_class is None:
            school_class = SchoolClass(name=CLASS_NAME, description="Demo class for absence workflow checks")
            session.add(school_class)
        school_class.hod_id = users["admin"].id
        session.flush()

        enrolled = set(
            session.execute(
                select(ClassEnrollment.student_id).where(ClassEnrollment.class_id == school_class.id)
            ).scalars()
        )
        for key in ("student_a", "student_b"):
            if users[key].id not in enrolled:
                session.add(ClassEnrollment(class_id=school_class.id, student_id=users[key].id))

        existing_slots = {
            (item.day, item.start_time)
            for item in session.execute(
                select(ScheduleEntry).where(ScheduleEntry.class_id == school_class.id)
            ).scalars()
        }
        for position, (day, start, end, teacher_key) in enumerate(WEEKLY_SLOTS):
            if (day, start) in existing_slots:
                continue
            session.add(
                ScheduleEntry(
                    class_id=school_class.id,
                    position=position,
                    day=day,
                    start_time=start,
                    end_time=end,
                    teacher_id=users[teacher_key].id,
                )
            )
        session.commit()
        session.refresh(school_class)
        return school_class


def _print_accounts(items: Iterable[tuple[str, User]], school_class: SchoolClass) -> None:
    print(f"\nDemo class ready: {school_class.name} (id={school_class.id})")
    print("\nDemo accounts ready (bearer tokens):")
    for label, user in items:
        print(f"  - {label}: {user.email} | role={user.role.value}")
        print(f"      {create_access_token(user.id)}")
    print("\nExpected flow:")
    print("  - teacher_1 reports a Monday absence; teacher_2, first in roster order, covers teacher_1's Monday slot")
    print("  - the HOD, teacher_2 and both students receive a substitute notification")


def main() -> None:
    ensure_schema()
    created_users: dict[str, User] = {}
    for key, item in DEMO_ACCOUNTS.items():
        created_users[key] = _upsert_user(name=item["name"], email=item["email"], role=item["role"])

    school_class = _upsert_class(created_users)
    _print_accounts(created_users.items(), school_class)


if __name__ == "__main__":
    main()
