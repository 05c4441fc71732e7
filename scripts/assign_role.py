#!/usr/bin/env python3
"""Assign a role to a user by username or email (idempotent).

Usage:
  python scripts/assign_role.py --user jdoe --role academic_director
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.fbms.constants import RoleName
from app.fbms.models import Role, User
from scripts._db_utils import database_url, script_session


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--user", required=True, help="Username or email")
    parser.add_argument("--role", required=True, choices=[r.value for r in RoleName])
    parser.add_argument("--primary", action="store_true", help="Also make it the primary role")
    args = parser.parse_args()

    with script_session(database_url()) as s:
        login = args.user.strip()
        if "@" in login:
            user = s.query(User).filter(User.email.ilike(login)).one_or_none()
        else:
            user = s.query(User).filter(User.username == login).one_or_none()
        if not user:
            print(f"User not found: {login}")
            return
        role = s.query(Role).filter(Role.name == args.role).one_or_none()
        if not role:
            print("Role not found. Run python scripts/init_db.py first.")
            return
        if role not in (user.roles or []):
            user.roles.append(role)
            print(f"Role {args.role} attached to {login}")
        else:
            print(f"User already has role {args.role}: {login}")
        if args.primary or user.primary_role is None:
            user.primary_role = role


if __name__ == "__main__":
    main()
