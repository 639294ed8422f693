import uuid
import datetime as dt
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
import sqlalchemy as sa

from app.db.base import Base


class TimesheetEntry(Base):
    __tablename__ = "timesheet_entries"
    __table_args__ = (
        CheckConstraint(
            "status IN ('DRAFT','PENDING_SUPERVISOR','PENDING_FACULTY','APPROVED','REJECTED')",
            name="ck_timesheet_entries_status",
        ),
        CheckConstraint(
            "category IN ('DIRECT','INDIRECT','TRAINING','ADMIN')",
            name="ck_timesheet_entries_category",
        ),
        CheckConstraint("hours > 0 AND hours <= 24", name="ck_timesheet_entries_hours"),
        # unsubmitted statuses never carry a submission stamp
        CheckConstraint(
            "(status NOT IN ('DRAFT','REJECTED')) OR (submitted_at IS NULL)",
            name="ck_timesheet_ts_unsubmitted",
        ),
        # faculty approval only on APPROVED entries
        CheckConstraint(
            "(faculty_approved_at IS NULL) OR (status = 'APPROVED')",
            name="ck_timesheet_ts_faculty",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    placement_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("placements.id", ondelete="CASCADE"), nullable=False, index=True
    )

    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    hours: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(30), nullable=False, default="DRAFT")
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    supervisor_approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    supervisor_approved_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    faculty_approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    faculty_approved_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    # set on supervisor approval; locked rows are immutable for the student
    locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
        onupdate=sa.func.now(),
    )

    placement = relationship("Placement")
