from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.fbms.audit import record_event
from app.fbms.constants import QUESTION_YEAR_MAX, QUESTION_YEAR_MIN, QuestionAudience
from app.fbms.errors import NotFound, ValidationError
from app.fbms.lifecycle import LifecycleState, apply_active_flag, parse_state, transition
from app.fbms.rbac import is_director, question_visibility
from app.fbms.utils import parse_bool, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Query, Session
    from app.fbms.identity import AuthorityContext
    from app.fbms.models import User
    from app.fbms.modules.questions.models import Question


def parse_audience(value: str | None, default: QuestionAudience | None = None) -> QuestionAudience | None:
    raw = (value or "").strip().lower()
    if not raw:
        return default
    try:
        return QuestionAudience(raw)
    except ValueError:
        allowed = ", ".join(a.value for a in QuestionAudience)
        raise ValidationError(f"Invalid role {value!r}. Must be one of: {allowed}")


def validate_question_payload(payload: dict, *, partial: bool = False) -> list[str]:
    """Validate question create/update payload. Returns list of errors."""
    errors = []
    text = payload.get("text")
    if not partial or text is not None:
        if not (text or "").strip():
            errors.append("Question text is required.")

    year = payload.get("year")
    if not partial or year is not None:
        try:
            y = parse_int(year, "year")
        except ValidationError as e:
            errors.append(e.message)
        else:
            if y is None:
                errors.append("Year is required.")
            elif not (QUESTION_YEAR_MIN <= y <= QUESTION_YEAR_MAX):
                errors.append(f"Year must be between {QUESTION_YEAR_MIN} and {QUESTION_YEAR_MAX}.")

    dept = payload.get("departmentId")
    if not partial or dept is not None:
        try:
            if parse_int(dept, "departmentId") is None:
                errors.append("Department is required.")
        except ValidationError as e:
            errors.append(e.message)

    try:
        parse_audience(payload.get("role"))
    except ValidationError as e:
        errors.append(e.message)
    return errors


def _require_department(s: "Session", department_id: int):
    from app.fbms.modules.departments.models import Department

    department = s.get(Department, department_id)
    if department is None:
        raise NotFound("Department not found")
    return department


def get_question(s: "Session", question_id: int) -> "Question":
    from app.fbms.modules.questions.models import Question

    question = s.get(Question, question_id)
    if question is None:
        raise NotFound("Question not found")
    return question


def create_question(s: "Session", payload: dict, user: "User") -> "Question":
    from app.fbms.modules.questions.models import Question

    errors = validate_question_payload(payload)
    if errors:
        raise ValidationError(errors[0], errors)

    department = _require_department(s, parse_int(payload.get("departmentId"), "departmentId"))
    status = parse_state(payload["status"]) if payload.get("status") else LifecycleState.ACTIVE

    now = datetime.utcnow()
    question = Question(
        text=payload["text"].strip(),
        year=parse_int(payload.get("year"), "year"),
        role=parse_audience(payload.get("role"), QuestionAudience.BOTH).value,
        status=status.value,
        department_id=department.id,
        created_by_user_id=user.id,
        created_at=now,
        updated_at=now,
    )
    s.add(question)
    s.flush()

    record_event(
        s,
        actor=user,
        action="question.create",
        entity_type="Question",
        entity_id=str(question.id),
        metadata={"department_id": department.id, "year": question.year, "role": question.role},
    )
    return question


def update_question(s: "Session", question: "Question", payload: dict, user: "User") -> "Question":
    errors = validate_question_payload(payload, partial=True)
    if errors:
        raise ValidationError(errors[0], errors)

    changes = {}
    new_text = (payload.get("text") or "").strip()
    if new_text and new_text != question.text:
        changes["text"] = {"old": question.text, "new": new_text}
        question.text = new_text

    if payload.get("year") is not None:
        new_year = parse_int(payload["year"], "year")
        if new_year != question.year:
            changes["year"] = {"old": question.year, "new": new_year}
            question.year = new_year

    if payload.get("departmentId") is not None:
        department = _require_department(s, parse_int(payload["departmentId"], "departmentId"))
        if department.id != question.department_id:
            changes["department_id"] = {"old": question.department_id, "new": department.id}
            question.department_id = department.id
            question.department = department

    new_role = parse_audience(payload.get("role"))
    if new_role is not None and new_role.value != question.role:
        changes["role"] = {"old": question.role, "new": new_role.value}
        question.role = new_role.value

    old_status = question.status
    if payload.get("status"):
        moved = transition(question, parse_state(payload["status"]))
    elif payload.get("active") is not None:
        moved = apply_active_flag(question, parse_bool(payload["active"], "active"))
    else:
        moved = False
    if moved:
        changes["status"] = {"old": old_status, "new": question.status}

    question.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="question.update",
        entity_type="Question",
        entity_id=str(question.id),
        metadata={"changes": changes},
    )
    return question


def delete_question(s: "Session", question: "Question", user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="question.delete",
        entity_type="Question",
        entity_id=str(question.id),
        metadata={"text": question.text, "department_id": question.department_id},
    )
    s.delete(question)


def visible_questions_query(
    s: "Session",
    ctx: "AuthorityContext",
    user: "User",
    *,
    department_id: int | None = None,
    year: int | None = None,
    include_inactive: bool = False,
) -> "Query":
    """
    Questions the caller may list.

    Directors see every question (inactive ones only on request). Everyone
    else sees active questions whose role target matches their authorities,
    restricted to their own department and year.
    """
    from app.fbms.modules.questions.models import Question

    q = s.query(Question)
    director = is_director(ctx)
    if not (director and include_inactive):
        q = q.filter(Question.active)

    if not director:
        q = q.filter(question_visibility(ctx).clause(Question.role))
        q = q.filter(Question.department_id == user.department_id, Question.year == user.year)

    if department_id is not None:
        q = q.filter(Question.department_id == department_id)
    if year is not None:
        q = q.filter(Question.year == year)
    return q.order_by(Question.id.asc())


def questions_by_creator(s: "Session", creator_id: int) -> list["Question"]:
    from app.fbms.modules.questions.models import Question

    return s.query(Question).filter(Question.created_by_user_id == creator_id).order_by(Question.id.asc()).all()


def serialize_question(q: "Question") -> dict:
    return {
        "id": q.id,
        "text": q.text,
        "year": q.year,
        "role": q.role,
        "status": q.status,
        "active": q.active,
        "departmentId": q.department_id,
        "department": {"id": q.department.id, "name": q.department.name} if q.department else None,
        "createdBy": q.created_by_user_id,
        "createdAt": q.created_at.isoformat() if q.created_at else None,
        "updatedAt": q.updated_at.isoformat() if q.updated_at else None,
    }
