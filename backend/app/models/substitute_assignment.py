import uuid
from datetime import datetime

from sqlalchemy import DateTime, JSON, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class SubstituteAssignment(Base):
    __tablename__ = "substitute_assignments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    absence_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True, index=True)
    class_id: Mapped[str] = mapped_column(String(36), nullable=False)
    substitute_teacher_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    weekday: Mapped[str] = mapped_column(String(16), nullable=False)
    entry_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
