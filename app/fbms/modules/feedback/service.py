from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError

from app.fbms.audit import record_event
from app.fbms.constants import RATING_MAX, RATING_MIN
from app.fbms.errors import DenyReason, Forbidden, NotFound, ValidationError
from app.fbms.identity import context_for
from app.fbms.rbac import question_visibility

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.fbms.models import User
    from app.fbms.modules.feedback.models import Feedback
    from app.fbms.modules.questions.models import Question

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmissionResult:
    feedback: "Feedback"
    created: bool


def parse_rating(value) -> int:
    """Accept ints and integral strings; reject bools, floats with fractions, and out-of-range values."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"Rating must be an integer between {RATING_MIN} and {RATING_MAX}.")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"Rating must be an integer between {RATING_MIN} and {RATING_MAX}.")
        value = int(value)
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            raise ValidationError(f"Rating must be an integer between {RATING_MIN} and {RATING_MAX}.")
    if not isinstance(value, int) or not (RATING_MIN <= value <= RATING_MAX):
        raise ValidationError(f"Rating must be an integer between {RATING_MIN} and {RATING_MAX}.")
    return value


def check_submission(user: "User", question: "Question | None", rating) -> int:
    """
    Preconditions for a submission, first failure wins. Returns the parsed rating.
    """
    if question is None:
        raise NotFound("Question not found")
    if not question.active:
        raise ValidationError("This question is no longer active")
    parsed = parse_rating(rating)
    if question.department_id != user.department_id:
        raise Forbidden("You cannot submit feedback for a different department", reason=DenyReason.SCOPE_MISMATCH)
    if question.year != user.year:
        raise Forbidden("You cannot submit feedback for a different year", reason=DenyReason.SCOPE_MISMATCH)
    if not question_visibility(context_for(user)).matches(question.role):
        raise Forbidden(f"This question is only for {question.role}", reason=DenyReason.ROLE_MISMATCH)
    return parsed


def _find_feedback(s: "Session", user_id: int, question_id: int) -> "Feedback | None":
    from app.fbms.modules.feedback.models import Feedback

    return (
        s.query(Feedback)
        .filter(Feedback.user_id == user_id, Feedback.question_id == question_id)
        .one_or_none()
    )


def _apply_update(feedback: "Feedback", rating: int, notes: str | None) -> None:
    feedback.rating = rating
    if notes:
        feedback.notes = notes
    feedback.submitted_at = datetime.utcnow()


def submit_feedback(
    s: "Session",
    user: "User",
    question_id: int,
    rating,
    notes: str | None = None,
) -> SubmissionResult:
    """
    Insert-or-update the caller's feedback for a question.

    The insert runs in a SAVEPOINT; if a concurrent request won the race the
    unique constraint fires and we fall back to updating that row.
    """
    from app.fbms.modules.feedback.models import Feedback
    from app.fbms.modules.questions.models import Question

    question = s.get(Question, question_id)
    parsed = check_submission(user, question, rating)
    notes = (notes or "").strip() or None

    existing = _find_feedback(s, user.id, question.id)
    created = False
    if existing is None:
        try:
            with s.begin_nested():
                existing = Feedback(
                    rating=parsed,
                    notes=notes,
                    user_id=user.id,
                    question_id=question.id,
                    submitted_at=datetime.utcnow(),
                )
                s.add(existing)
            created = True
        except IntegrityError:
            logger.info("Concurrent feedback insert for user=%s question=%s; retrying as update", user.id, question.id)
            existing = _find_feedback(s, user.id, question.id)
            if existing is None:
                raise
    if not created:
        _apply_update(existing, parsed, notes)
        s.flush()

    record_event(
        s,
        actor=user,
        action="feedback.submit" if created else "feedback.update",
        entity_type="Feedback",
        entity_id=str(existing.id),
        metadata={"question_id": question.id, "rating": parsed},
    )
    return SubmissionResult(feedback=existing, created=created)


def feedback_for_user(s: "Session", user_id: int) -> list["Feedback"]:
    from app.fbms.modules.feedback.models import Feedback

    return (
        s.query(Feedback)
        .filter(Feedback.user_id == user_id)
        .order_by(Feedback.submitted_at.desc())
        .all()
    )


def all_feedback(s: "Session") -> list["Feedback"]:
    from app.fbms.modules.feedback.models import Feedback

    return s.query(Feedback).order_by(Feedback.submitted_at.desc(), Feedback.id.desc()).all()


def serialize_feedback(fb: "Feedback", *, include_user: bool = False, include_question: bool = True) -> dict:
    out = {
        "id": fb.id,
        "rating": fb.rating,
        "notes": fb.notes,
        "submittedAt": fb.submitted_at.isoformat() if fb.submitted_at else None,
        "userId": fb.user_id,
        "questionId": fb.question_id,
    }
    if include_question and fb.question is not None:
        q = fb.question
        out["question"] = {
            "id": q.id,
            "text": q.text,
            "year": q.year,
            "departmentId": q.department_id,
            "department": {"id": q.department.id, "name": q.department.name} if q.department else None,
        }
    if include_user and fb.user is not None:
        u = fb.user
        out["user"] = {
            "id": u.id,
            "username": u.username,
            "fullName": u.full_name,
            "year": u.year,
            "departmentId": u.department_id,
            "department": {"id": u.department.id, "name": u.department.name} if u.department else None,
        }
    return out
