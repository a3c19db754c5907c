import uuid
from datetime import date, datetime
from enum import Enum

from sqlalchemy import Date, DateTime, Enum as SAEnum, Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class AbsenceRole(str, Enum):
    student = "student"
    teacher = "teacher"


class AbsenceStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class AbsenceRecord(Base):
    __tablename__ = "absences"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    person_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    role: Mapped[AbsenceRole] = mapped_column(SAEnum(AbsenceRole, name="absence_role"), nullable=False)
    class_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    absence_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    duration: Mapped[float] = mapped_column(Float, nullable=False)
    evidence_ref: Mapped[str | None] = mapped_column(String(500), nullable=True)
    status: Mapped[AbsenceStatus] = mapped_column(
        SAEnum(AbsenceStatus, name="absence_status"),
        nullable=False,
        default=AbsenceStatus.pending,
    )
    reviewed_by_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
