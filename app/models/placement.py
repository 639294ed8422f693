import uuid
from datetime import date, datetime

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
import sqlalchemy as sa

from app.db.base import Base, JSONType


class Placement(Base):
    __tablename__ = "placements"
    __table_args__ = (
        CheckConstraint(
            "status IN ('DRAFT','PENDING','APPROVED_PENDING_CHECKLIST','APPROVED',"
            "'ACTIVE','ARCHIVED','DECLINED')",
            name="ck_placements_status",
        ),
        CheckConstraint("required_hours >= 0", name="ck_placements_required_hours"),
        CheckConstraint("end_date >= start_date", name="ck_placements_dates"),
        # ARCHIVED => archived_at set, supervisor cleared
        CheckConstraint(
            "(status <> 'ARCHIVED') OR (archived_at IS NOT NULL AND supervisor_id IS NULL)",
            name="ck_placements_archived",
        ),
        # DECLINED => declined stamp present
        CheckConstraint(
            "(status <> 'DECLINED') OR (declined_at IS NOT NULL)",
            name="ck_placements_declined",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    student_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    site_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("sites.id", ondelete="RESTRICT"), nullable=False
    )
    supervisor_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    faculty_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    # Classes live in the enrollment system; kept as an opaque reference
    class_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    required_hours: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(String(40), nullable=False, default="PENDING")

    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    declined_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    declined_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    decline_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Document URLs; the blobs themselves live in external storage
    cell_policy: Mapped[str | None] = mapped_column(String(500), nullable=True)
    learning_contract: Mapped[str | None] = mapped_column(String(500), nullable=True)
    checklist: Mapped[str | None] = mapped_column(String(500), nullable=True)

    compliance_checklist: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
        onupdate=sa.func.now(),
    )

    site = relationship("Site")
    student = relationship("User", foreign_keys=[student_id])
    supervisor = relationship("User", foreign_keys=[supervisor_id])
    faculty = relationship("User", foreign_keys=[faculty_id])
