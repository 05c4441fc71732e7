from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.fbms.constants import QuestionAudience
from app.fbms.lifecycle import LifecycleState
from app.fbms.models import Base

if TYPE_CHECKING:
    from app.fbms.models import User
    from app.fbms.modules.departments.models import Department
    from app.fbms.modules.feedback.models import Feedback


class Question(Base):
    __tablename__ = "questions"
    __table_args__ = (
        Index("idx_questions_department_year", "department_id", "year"),
        Index("idx_questions_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)  # 1-5
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=QuestionAudience.BOTH.value)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=LifecycleState.ACTIVE.value)

    department_id: Mapped[int] = mapped_column(ForeignKey("departments.id", ondelete="RESTRICT"), nullable=False)
    created_by_user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    department: Mapped["Department"] = relationship(back_populates="questions", lazy="selectin")
    created_by: Mapped["User | None"] = relationship(foreign_keys=[created_by_user_id])
    feedback: Mapped[list["Feedback"]] = relationship(
        back_populates="question",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @hybrid_property
    def active(self) -> bool:
        return self.status == LifecycleState.ACTIVE.value
