import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
import sqlalchemy as sa

from app.db.base import Base


class Evaluation(Base):
    __tablename__ = "evaluations"
    __table_args__ = (
        UniqueConstraint("placement_id", "type", name="uq_evaluations_placement_type"),
        CheckConstraint("type IN ('MIDTERM','FINAL')", name="ck_evaluations_type"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    placement_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("placements.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)

    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    student_msg: Mapped[str | None] = mapped_column(Text, nullable=True)
    supervisor_msg: Mapped[str | None] = mapped_column(Text, nullable=True)

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
    submissions = relationship(
        "EvaluationSubmission",
        back_populates="evaluation",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
