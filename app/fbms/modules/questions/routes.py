from __future__ import annotations

from flask import Blueprint, g, request

from app.fbms.db import db_session
from app.fbms.errors import NotFound, ValidationError
from app.fbms.modules.questions.service import (
    create_question,
    delete_question,
    get_question,
    questions_by_creator,
    serialize_question,
    update_question,
    visible_questions_query,
)
from app.fbms.rbac import Action, enforce, login_required, require_action
from app.fbms.utils import json_payload, parse_bool, parse_int

bp = Blueprint("questions", __name__)


def _listing(**filters):
    ctx = enforce(Action.LIST_QUESTIONS)
    include_inactive = parse_bool(request.args.get("include_inactive") or "0", "include_inactive")
    q = visible_questions_query(
        db_session(), ctx, g.current_user, include_inactive=include_inactive, **filters
    )
    return {"questions": [serialize_question(x) for x in q.all()]}


@bp.get("/")
@login_required
def questions_list():
    return _listing(
        department_id=parse_int(request.args.get("departmentId"), "departmentId"),
        year=parse_int(request.args.get("year"), "year"),
    )


@bp.get("/department/<int:department_id>/year/<year>")
@login_required
def questions_by_department_and_year(department_id: int, year: str):
    parsed = parse_int(year, "year")
    if parsed is None:
        raise ValidationError("year must be an integer.")
    return _listing(department_id=department_id, year=parsed)


@bp.get("/<int:question_id>")
@login_required
def question_detail(question_id: int):
    ctx = enforce(Action.LIST_QUESTIONS)
    q = visible_questions_query(db_session(), ctx, g.current_user, include_inactive=True)
    question = q.filter_by(id=question_id).one_or_none()
    if question is None:
        raise NotFound("Question not found")
    return serialize_question(question)


@bp.post("/")
@require_action(Action.CREATE_QUESTION)
def question_create():
    s = db_session()
    question = create_question(s, json_payload(), g.current_user)
    s.commit()
    return serialize_question(question), 201


@bp.put("/<int:question_id>")
@require_action(Action.UPDATE_QUESTION)
def question_update(question_id: int):
    s = db_session()
    question = update_question(s, get_question(s, question_id), json_payload(), g.current_user)
    s.commit()
    return {"message": "Question updated successfully", "question": serialize_question(question)}


@bp.delete("/<int:question_id>")
@require_action(Action.DELETE_QUESTION)
def question_delete(question_id: int):
    s = db_session()
    delete_question(s, get_question(s, question_id), g.current_user)
    s.commit()
    return {"message": "Question deleted successfully"}


@bp.get("/creator/<int:creator_id>")
@require_action(Action.LIST_QUESTIONS_BY_CREATOR)
def questions_for_creator(creator_id: int):
    return {"questions": [serialize_question(q) for q in questions_by_creator(db_session(), creator_id)]}
