from __future__ import annotations

import logging

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

import app.models  # noqa: F401
from app.db.base import Base
from app.db.session import engine as default_engine

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "users": {"id", "role", "is_disabled", "push_handle"},
    "classes": {"id", "name", "hod_id"},
    "class_enrollments": {"class_id", "student_id"},
    "schedule_entries": {"id", "class_id", "day", "teacher_id", "substitute_teacher_id"},
    "absences": {"id", "person_id", "role", "class_id", "absence_date", "status"},
    "substitute_assignments": {"absence_id", "substitute_teacher_id", "entry_ids"},
    "notifications": {"id", "user_id", "event_type", "absence_id", "payload", "is_read"},
}


def missing_schema_items(bind: Engine | None = None) -> tuple[list[str], dict[str, list[str]]]:
    bind = bind or default_engine
    with bind.connect() as connection:
        inspector = inspect(connection)
        table_names = set(inspector.get_table_names())
        missing_tables: list[str] = []
        missing_columns: dict[str, list[str]] = {}
        for table_name, columns in REQUIRED_COLUMNS.items():
            if table_name not in table_names:
                missing_tables.append(table_name)
                continue
            existing = {item["name"] for item in inspector.get_columns(table_name)}
            missing = sorted(columns - existing)
            if missing:
                missing_columns[table_name] = missing
    return missing_tables, missing_columns


def ensure_schema(bind: Engine | None = None) -> bool:
    """Create missing tables and report columns that need a migration. Never raises."""
    bind = bind or default_engine
    try:
        Base.metadata.create_all(bind=bind)
        missing_tables, missing_columns = missing_schema_items(bind)
    except SQLAlchemyError:
        logger.exception("Database schema bootstrap failed")
        return False
    if missing_tables or missing_columns:
        logger.warning(
            "Database schema is behind the models (tables=%s columns=%s); run `alembic upgrade head`",
            missing_tables,
            missing_columns,
        )
        return False
    return True
