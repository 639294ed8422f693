import uuid
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
import sqlalchemy as sa

from app.db.base import Base, JSONType


class EvaluationSubmission(Base):
    __tablename__ = "evaluation_submissions"
    __table_args__ = (
        UniqueConstraint("evaluation_id", "role", name="uq_eval_submission_role"),
        CheckConstraint("role IN ('STUDENT','SUPERVISOR')", name="ck_eval_submissions_role"),
        CheckConstraint(
            "status IN ('PENDING','IN_PROGRESS','LOCKED')",
            name="ck_eval_submissions_status",
        ),
        # LOCKED <=> locked_at present
        CheckConstraint(
            "(status = 'LOCKED') = (locked_at IS NOT NULL)",
            name="ck_eval_submissions_locked_ts",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    evaluation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("evaluations.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")

    answers: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    last_saved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    submitted_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
        onupdate=sa.func.now(),
    )

    # Optimistic locking
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version}

    evaluation = relationship("Evaluation", back_populates="submissions")
