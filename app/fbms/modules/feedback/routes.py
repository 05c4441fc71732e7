from __future__ import annotations

from flask import Blueprint, g

from app.fbms.db import db_session
from app.fbms.errors import ValidationError
from app.fbms.modules.feedback.service import all_feedback, feedback_for_user, serialize_feedback, submit_feedback
from app.fbms.modules.feedback.stats import department_stats, overall_stats, question_stats
from app.fbms.modules.users.service import get_user
from app.fbms.rbac import Action, enforce, login_required, require_action
from app.fbms.utils import json_payload, parse_int

bp = Blueprint("feedback", __name__)


@bp.post("/submit")
@require_action(Action.SUBMIT_FEEDBACK)
def feedback_submit():
    s = db_session()
    payload = json_payload()
    question_id = parse_int(payload.get("questionId"), "questionId")
    if question_id is None or payload.get("rating") in (None, ""):
        raise ValidationError("Required fields missing")

    result = submit_feedback(s, g.current_user, question_id, payload.get("rating"), payload.get("notes"))
    s.commit()
    if result.created:
        return {"message": "Feedback submitted successfully", "feedback": serialize_feedback(result.feedback)}, 201
    return {"message": "Feedback updated successfully", "feedback": serialize_feedback(result.feedback)}, 200


@bp.get("/my-feedback")
@login_required
def my_feedback():
    ctx = enforce(Action.READ_FEEDBACK, owner_id=g.current_user.id)
    return {"feedback": [serialize_feedback(f) for f in feedback_for_user(db_session(), ctx.user_id)]}


@bp.get("/user/<int:user_id>")
@login_required
def feedback_by_user(user_id: int):
    enforce(Action.READ_FEEDBACK, owner_id=user_id)
    s = db_session()
    get_user(s, user_id)
    return {"feedback": [serialize_feedback(f) for f in feedback_for_user(s, user_id)]}


@bp.get("/question/<int:question_id>")
@require_action(Action.VIEW_QUESTION_STATS)
def feedback_by_question(question_id: int):
    out = question_stats(db_session(), question_id)
    out["feedback"] = [serialize_feedback(f, include_user=True, include_question=False) for f in out["feedback"]]
    return out


@bp.get("/stats/department/<int:department_id>")
@require_action(Action.VIEW_DEPARTMENT_STATS)
def feedback_department_stats(department_id: int):
    return department_stats(db_session(), department_id)


@bp.get("/all")
@require_action(Action.LIST_FEEDBACK)
def feedback_all():
    return {"feedback": [serialize_feedback(f, include_user=True) for f in all_feedback(db_session())]}


@bp.get("/stats/overall")
@require_action(Action.VIEW_GLOBAL_STATS)
def feedback_overall_stats():
    return overall_stats(db_session())
