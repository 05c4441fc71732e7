from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.fbms.audit import record_event
from app.fbms.constants import RoleName
from app.fbms.errors import Conflict, NotFound, ValidationError
from app.fbms.lifecycle import LifecycleState, apply_active_flag, parse_state, transition
from app.fbms.utils import parse_bool, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.fbms.models import User
    from app.fbms.modules.departments.models import Department


def get_department(s: "Session", department_id: int) -> "Department":
    from app.fbms.modules.departments.models import Department

    department = s.get(Department, department_id)
    if department is None:
        raise NotFound(f"Department with id={department_id} not found")
    return department


def _ensure_name_free(s: "Session", name: str, *, exclude_id: int | None = None) -> None:
    from app.fbms.modules.departments.models import Department

    q = s.query(Department).filter(Department.name == name)
    if exclude_id is not None:
        q = q.filter(Department.id != exclude_id)
    if q.first() is not None:
        raise Conflict("Department with this name already exists!")


def _resolve_role_id(s: "Session", value) -> int | None:
    """Historical department->role link: accepts a role id or a role name."""
    from app.fbms.models import Role

    if value is None or value == "":
        return None
    if isinstance(value, str) and not value.strip().isdigit():
        try:
            name = RoleName(value.strip().lower())
        except ValueError:
            raise ValidationError(f"Role {value} does not exist!")
        role = s.query(Role).filter(Role.name == name.value).one_or_none()
    else:
        role = s.get(Role, parse_int(value, "roleId"))
    if role is None:
        raise ValidationError(f"Role {value} does not exist!")
    return role.id


def create_department(s: "Session", payload: dict, user: "User") -> "Department":
    from app.fbms.modules.departments.models import Department

    name = (payload.get("name") or "").strip()
    if not name:
        raise ValidationError("Department name is required!")
    _ensure_name_free(s, name)

    if payload.get("status"):
        status = parse_state(payload["status"])
    elif payload.get("active") is not None:
        status = LifecycleState.ACTIVE if parse_bool(payload["active"], "active") else LifecycleState.DRAFT
    else:
        status = LifecycleState.ACTIVE

    now = datetime.utcnow()
    department = Department(
        name=name,
        description=(payload.get("description") or "").strip() or None,
        status=status.value,
        role_id=_resolve_role_id(s, payload.get("roleId")),
        created_at=now,
        updated_at=now,
    )
    s.add(department)
    s.flush()

    record_event(
        s,
        actor=user,
        action="department.create",
        entity_type="Department",
        entity_id=str(department.id),
        metadata={"name": department.name, "status": department.status},
    )
    return department


def update_department(s: "Session", department: "Department", payload: dict, user: "User") -> "Department":
    changes = {}

    new_name = (payload.get("name") or "").strip()
    if new_name and new_name != department.name:
        _ensure_name_free(s, new_name, exclude_id=department.id)
        changes["name"] = {"old": department.name, "new": new_name}
        department.name = new_name

    if "description" in payload:
        new_description = (payload.get("description") or "").strip() or None
        if new_description != department.description:
            changes["description"] = {"old": department.description, "new": new_description}
            department.description = new_description

    if "roleId" in payload:
        new_role_id = _resolve_role_id(s, payload.get("roleId"))
        if new_role_id != department.role_id:
            changes["role_id"] = {"old": department.role_id, "new": new_role_id}
            department.role_id = new_role_id

    old_status = department.status
    if payload.get("status"):
        moved = transition(department, parse_state(payload["status"]))
    elif payload.get("active") is not None:
        moved = apply_active_flag(department, parse_bool(payload["active"], "active"))
    else:
        moved = False
    if moved:
        changes["status"] = {"old": old_status, "new": department.status}

    department.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="department.update",
        entity_type="Department",
        entity_id=str(department.id),
        metadata={"changes": changes},
    )
    return department


def delete_department(s: "Session", department: "Department", user: "User") -> None:
    from app.fbms.models import User as UserModel
    from app.fbms.modules.questions.models import Question

    users_count = s.query(UserModel).filter(UserModel.department_id == department.id).count()
    questions_count = s.query(Question).filter(Question.department_id == department.id).count()
    if users_count > 0 or questions_count > 0:
        raise Conflict("Cannot delete department because it has associated users or questions")

    record_event(
        s,
        actor=user,
        action="department.delete",
        entity_type="Department",
        entity_id=str(department.id),
        metadata={"name": department.name},
    )
    s.delete(department)


def serialize_department(d: "Department") -> dict:
    return {
        "id": d.id,
        "name": d.name,
        "description": d.description,
        "status": d.status,
        "active": d.active,
        "roleId": d.role_id,
        "createdAt": d.created_at.isoformat() if d.created_at else None,
        "updatedAt": d.updated_at.isoformat() if d.updated_at else None,
    }
