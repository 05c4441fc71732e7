from __future__ import annotations

from flask import Blueprint, g

from app.fbms.db import db_session
from app.fbms.models import User
from app.fbms.modules.users.service import (
    all_users,
    change_password,
    delete_user,
    get_user,
    reassign_roles,
    serialize_user,
    update_user,
    users_by_department,
    users_by_year,
)
from app.fbms.rbac import Action, enforce, login_required, require_action
from app.fbms.utils import json_payload

bp = Blueprint("users", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


@bp.get("/profile")
@login_required
def profile():
    return serialize_user(_current_user())


@bp.get("/all")
@require_action(Action.LIST_USERS)
def users_list():
    return {"users": [serialize_user(u) for u in all_users(db_session())]}


@bp.get("/<int:user_id>")
@login_required
def user_detail(user_id: int):
    enforce(Action.READ_USER, owner_id=user_id)
    return serialize_user(get_user(db_session(), user_id))


@bp.put("/<int:user_id>")
@login_required
def user_update(user_id: int):
    enforce(Action.UPDATE_USER, owner_id=user_id)
    s = db_session()
    user = update_user(s, get_user(s, user_id), json_payload(), _current_user())
    s.commit()
    return {"message": "User updated successfully", "user": serialize_user(user)}


@bp.delete("/<int:user_id>")
@login_required
def user_delete(user_id: int):
    enforce(Action.DELETE_USER, owner_id=user_id)
    s = db_session()
    delete_user(s, get_user(s, user_id), _current_user())
    s.commit()
    return {"message": "User deleted successfully"}


@bp.put("/<int:user_id>/password")
@login_required
def user_change_password(user_id: int):
    enforce(Action.CHANGE_PASSWORD, owner_id=user_id)
    s = db_session()
    payload = json_payload()
    change_password(
        s,
        get_user(s, user_id),
        payload.get("oldPassword") or "",
        payload.get("newPassword") or "",
        _current_user(),
    )
    s.commit()
    return {"message": "Password changed successfully"}


@bp.put("/<int:user_id>/roles")
@require_action(Action.REASSIGN_ROLES)
def user_reassign_roles(user_id: int):
    s = db_session()
    user = reassign_roles(s, get_user(s, user_id), json_payload().get("roles"), _current_user())
    s.commit()
    return {"message": "User roles updated successfully", "user": serialize_user(user)}


@bp.get("/department/<int:department_id>")
@require_action(Action.LIST_USERS)
def users_in_department(department_id: int):
    return {"users": [serialize_user(u) for u in users_by_department(db_session(), department_id)]}


@bp.get("/year/<year>")
@require_action(Action.LIST_USERS)
def users_in_year(year: str):
    return {"users": [serialize_user(u) for u in users_by_year(db_session(), year)]}
