from __future__ import annotations

from flask import Blueprint, g, request

from app.fbms.db import db_session
from app.fbms.modules.departments.models import Department
from app.fbms.modules.departments.service import (
    create_department,
    delete_department,
    get_department,
    serialize_department,
    update_department,
)
from app.fbms.rbac import Action, require_action
from app.fbms.utils import json_payload, parse_bool

bp = Blueprint("departments", __name__)


# Listing and detail are public: the signup form needs them.
@bp.get("/")
def departments_list():
    s = db_session()
    q = s.query(Department)
    if parse_bool(request.args.get("active_only") or "0", "active_only"):
        q = q.filter(Department.active)
    return {"departments": [serialize_department(d) for d in q.order_by(Department.name.asc()).all()]}


@bp.get("/<int:department_id>")
def department_detail(department_id: int):
    return serialize_department(get_department(db_session(), department_id))


@bp.post("/")
@require_action(Action.MANAGE_DEPARTMENTS)
def department_create():
    s = db_session()
    department = create_department(s, json_payload(), g.current_user)
    s.commit()
    return serialize_department(department), 201


@bp.put("/<int:department_id>")
@require_action(Action.MANAGE_DEPARTMENTS)
def department_update(department_id: int):
    s = db_session()
    department = update_department(s, get_department(s, department_id), json_payload(), g.current_user)
    s.commit()
    return {"message": "Department was updated successfully.", "department": serialize_department(department)}


@bp.delete("/<int:department_id>")
@require_action(Action.MANAGE_DEPARTMENTS)
def department_delete(department_id: int):
    s = db_session()
    delete_department(s, get_department(s, department_id), g.current_user)
    s.commit()
    return {"message": "Department was deleted successfully!"}
