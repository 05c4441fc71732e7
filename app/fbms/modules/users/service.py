from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from werkzeug.security import check_password_hash, generate_password_hash

from app.fbms.audit import record_event
from app.fbms.constants import DEFAULT_ROLE, SELF_SIGNUP_ROLES, USER_YEAR_MAX, USER_YEAR_MIN, RoleName
from app.fbms.errors import Conflict, DenyReason, Forbidden, NotFound, Unauthenticated, UserNotFound, ValidationError
from app.fbms.identity import build_authorities
from app.fbms.utils import is_valid_email, parse_bool, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.fbms.models import Role, User

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def parse_role_names(values) -> list[RoleName]:
    if isinstance(values, str):
        values = [values]
    if not isinstance(values, (list, tuple)):
        raise ValidationError("Roles must be a list of role names.")
    out: list[RoleName] = []
    for v in values:
        try:
            name = RoleName(str(v).strip().lower())
        except ValueError:
            raise ValidationError(f"Failed! Role {v} does not exist!")
        if name not in out:
            out.append(name)
    return out


def roles_by_name(s: "Session", names: list[RoleName]) -> list["Role"]:
    from app.fbms.models import Role

    rows = {r.name: r for r in s.query(Role).filter(Role.name.in_([n.value for n in names])).all()}
    missing = [n.value for n in names if n.value not in rows]
    if missing:
        raise RuntimeError(f"Roles not seeded: {', '.join(missing)}. Run scripts/init_db.py.")
    return [rows[n.value] for n in names]


def assign_roles(user: "User", roles: list["Role"]) -> None:
    """Replace assigned roles; the first one doubles as the primary role."""
    user.roles.clear()
    for role in roles:
        user.roles.append(role)
    user.primary_role = roles[0] if roles else None


def _parse_year(value) -> int | None:
    year = parse_int(value, "year")
    if year is not None and not (USER_YEAR_MIN <= year <= USER_YEAR_MAX):
        raise ValidationError(f"Invalid year. Year must be between {USER_YEAR_MIN} and {USER_YEAR_MAX}.")
    return year


def _ensure_unique(
    s: "Session",
    *,
    username: str | None = None,
    email: str | None = None,
    sin_number: str | None = None,
    exclude_id: int | None = None,
) -> None:
    from app.fbms.models import User

    checks = (
        (User.username, username, "Failed! Username is already in use!"),
        (User.email, email, "Failed! Email is already in use!"),
        (User.sin_number, sin_number, "Failed! SIN number is already in use!"),
    )
    for column, value, message in checks:
        if not value:
            continue
        q = s.query(User).filter(column == value)
        if exclude_id is not None:
            q = q.filter(User.id != exclude_id)
        if q.first() is not None:
            raise Conflict(message)


def _require_department(s: "Session", department_id: int):
    from app.fbms.modules.departments.models import Department

    department = s.get(Department, department_id)
    if department is None:
        raise NotFound("Department not found")
    return department


def get_user(s: "Session", user_id: int) -> "User":
    from app.fbms.models import User

    user = s.get(User, user_id)
    if user is None:
        raise UserNotFound()
    return user


def signup(s: "Session", payload: dict) -> "User":
    from app.fbms.models import User

    username = (payload.get("username") or "").strip()
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""
    full_name = (payload.get("fullName") or "").strip()

    errors = []
    if not username or not password or not email or not full_name:
        errors.append("Required fields missing")
    if email and not is_valid_email(email):
        errors.append("Invalid email format.")
    if password and len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    if errors:
        raise ValidationError(errors[0], errors)

    year = _parse_year(payload.get("year"))
    sin_number = (str(payload.get("sinNumber") or "")).strip() or None
    requested = parse_role_names(payload["roles"]) if payload.get("roles") else [DEFAULT_ROLE]
    if any(r not in SELF_SIGNUP_ROLES for r in requested):
        raise Forbidden("Director roles cannot be self-assigned", reason=DenyReason.ROLE_MISMATCH)

    _ensure_unique(s, username=username, email=email, sin_number=sin_number)

    department = None
    department_id = parse_int(payload.get("departmentId"), "departmentId")
    if department_id is not None:
        department = _require_department(s, department_id)

    user = User(
        username=username,
        email=email,
        password_hash=generate_password_hash(password),
        full_name=full_name,
        year=year,
        sin_number=sin_number,
        is_active=True,
        department_id=department.id if department else None,
    )
    s.add(user)
    assign_roles(user, roles_by_name(s, requested))
    s.flush()

    record_event(
        s,
        actor=user,
        action="auth.signup",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"username": username, "roles": [r.value for r in requested]},
    )
    logger.info("User registered: id=%s username=%s roles=%s", user.id, username, [r.value for r in requested])
    return user


def authenticate(s: "Session", login: str, password: str) -> "User":
    """Sign in by username, or by email when the login contains '@'."""
    from app.fbms.models import User

    login = (login or "").strip()
    if not login or not password:
        raise ValidationError("Username and password are required.")
    if "@" in login:
        user = s.query(User).filter(User.email == login.lower()).one_or_none()
    else:
        user = s.query(User).filter(User.username == login).one_or_none()

    if user is None:
        raise UserNotFound()
    if not user.is_active:
        raise Forbidden("Account is inactive", reason=DenyReason.INACTIVE)
    if not check_password_hash(user.password_hash, password):
        raise Unauthenticated("Invalid password")

    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
    return user


def update_user(s: "Session", user: "User", payload: dict, actor: "User") -> "User":
    changes = {}

    new_full_name = (payload.get("fullName") or "").strip()
    if new_full_name and new_full_name != user.full_name:
        changes["full_name"] = {"old": user.full_name, "new": new_full_name}
        user.full_name = new_full_name

    new_email = (payload.get("email") or "").strip().lower()
    if new_email and new_email != user.email:
        if not is_valid_email(new_email):
            raise ValidationError("Invalid email format.")
        _ensure_unique(s, email=new_email, exclude_id=user.id)
        changes["email"] = {"old": user.email, "new": new_email}
        user.email = new_email

    new_year = _parse_year(payload.get("year"))
    if new_year is not None and new_year != user.year:
        changes["year"] = {"old": user.year, "new": new_year}
        user.year = new_year

    new_sin = (str(payload.get("sinNumber") or "")).strip()
    if new_sin and new_sin != user.sin_number:
        _ensure_unique(s, sin_number=new_sin, exclude_id=user.id)
        changes["sin_number"] = {"old": user.sin_number, "new": new_sin}
        user.sin_number = new_sin

    if payload.get("active") is not None:
        new_active = parse_bool(payload["active"], "active")
        if new_active != user.is_active:
            changes["is_active"] = {"old": user.is_active, "new": new_active}
            user.is_active = new_active

    department_id = parse_int(payload.get("departmentId"), "departmentId")
    if department_id is not None and department_id != user.department_id:
        department = _require_department(s, department_id)
        changes["department_id"] = {"old": user.department_id, "new": department.id}
        user.department_id = department.id
        user.department = department

    record_event(
        s,
        actor=actor,
        action="user.update",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"changes": changes},
    )
    return user


def delete_user(s: "Session", user: "User", actor: "User") -> None:
    record_event(
        s,
        actor=actor if actor.id != user.id else None,
        action="user.delete",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"username": user.username, "deleted_by": actor.username},
    )
    s.delete(user)


def change_password(s: "Session", user: "User", old_password: str, new_password: str, actor: "User") -> None:
    """
    Users prove the old password; a director resetting someone else's password
    (already authorized by the caller) does not need it.
    """
    is_reset = actor.id != user.id
    if not new_password or (not is_reset and not old_password):
        raise ValidationError("Old password and new password are required")
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    if not is_reset and not check_password_hash(user.password_hash, old_password):
        raise Unauthenticated("Invalid old password")

    user.password_hash = generate_password_hash(new_password)
    record_event(
        s,
        actor=actor,
        action="user.change_password",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"target": user.username, "changed_by": actor.username},
    )


def reassign_roles(s: "Session", user: "User", role_values, actor: "User") -> "User":
    if not role_values or not isinstance(role_values, (list, tuple)):
        raise ValidationError("Roles must be a non-empty array")
    names = parse_role_names(role_values)
    before = sorted(r.name for r in user.roles)
    assign_roles(user, roles_by_name(s, names))

    record_event(
        s,
        actor=actor,
        action="user.reassign_roles",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"before": before, "after": [n.value for n in names]},
    )
    return user


def users_by_department(s: "Session", department_id: int) -> list["User"]:
    from app.fbms.models import User

    _require_department(s, department_id)
    return s.query(User).filter(User.department_id == department_id).order_by(User.username.asc()).all()


def users_by_year(s: "Session", year) -> list["User"]:
    from app.fbms.models import User

    try:
        parsed = _parse_year(year)
    except ValidationError:
        raise ValidationError(f"Invalid year. Year must be between {USER_YEAR_MIN} and {USER_YEAR_MAX}.")
    if parsed is None:
        raise ValidationError(f"Invalid year. Year must be between {USER_YEAR_MIN} and {USER_YEAR_MAX}.")
    return s.query(User).filter(User.year == parsed).order_by(User.username.asc()).all()


def all_users(s: "Session") -> list["User"]:
    from app.fbms.models import User

    return s.query(User).order_by(User.username.asc()).all()


def serialize_user(u: "User") -> dict:
    return {
        "id": u.id,
        "username": u.username,
        "email": u.email,
        "fullName": u.full_name,
        "year": u.year,
        "sinNumber": u.sin_number,
        "active": u.is_active,
        "departmentId": u.department_id,
        "department": {"id": u.department.id, "name": u.department.name} if u.department else None,
        "primaryRole": u.primary_role.name if u.primary_role else None,
        "roles": [{"id": r.id, "name": r.name} for r in sorted(u.roles, key=lambda r: r.id)],
        "authorities": sorted(build_authorities(u)),
    }
