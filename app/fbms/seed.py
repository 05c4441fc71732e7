"""
Idempotent seeding of the fixed role table and default departments.

Used by scripts/init_db.py and by the test fixtures.
"""
from __future__ import annotations

from sqlalchemy.orm import Session

from app.fbms.constants import DEFAULT_DEPARTMENTS, RoleName
from app.fbms.models import Role


def ensure_roles(s: Session) -> dict[RoleName, Role]:
    existing = {r.name: r for r in s.query(Role).all()}
    out: dict[RoleName, Role] = {}
    for name in RoleName:
        role = existing.get(name.value)
        if role is None:
            role = Role(name=name.value)
            s.add(role)
        out[name] = role
    s.flush()
    return out


def ensure_departments(s: Session, roles: dict[RoleName, Role]) -> int:
    """Create the default departments when none exist. Returns number created."""
    from app.fbms.modules.departments.models import Department

    if s.query(Department).count() > 0:
        return 0
    for name, description, role_name in DEFAULT_DEPARTMENTS:
        s.add(Department(name=name, description=description, role_id=roles[role_name].id))
    s.flush()
    return len(DEFAULT_DEPARTMENTS)
