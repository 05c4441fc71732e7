from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.fbms.models import Base

if TYPE_CHECKING:
    from app.fbms.models import User
    from app.fbms.modules.questions.models import Question


class Feedback(Base):
    __tablename__ = "feedback"
    __table_args__ = (
        # At most one row per (user, question); the submit path relies on it.
        UniqueConstraint("user_id", "question_id", name="uq_feedback_user_question"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_feedback_rating_range"),
        Index("idx_feedback_question", "question_id"),
        Index("idx_feedback_submitted_at", "submitted_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    question_id: Mapped[int] = mapped_column(ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)

    user: Mapped["User"] = relationship(back_populates="feedback", lazy="selectin")
    question: Mapped["Question"] = relationship(back_populates="feedback", lazy="selectin")
