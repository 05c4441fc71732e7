"""
Create tables and seed roles, default departments and a bootstrap
executive director (idempotent; never overwrites an existing password).

Usage:
  python scripts/init_db.py
"""
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.fbms.constants import RoleName
from app.fbms.models import User
from app.fbms.seed import ensure_departments, ensure_roles
from scripts._db_utils import database_url, script_session

logger = logging.getLogger("fbms.init_db")


def seed_only(*, database_url_override: str | None = None) -> None:
    """
    Seed roles/departments/admin in an idempotent way.
    Does NOT overwrite an existing admin user's password.
    """
    admin_username = (os.environ.get("ADMIN_USERNAME") or "executive").strip()
    admin_email = (os.environ.get("ADMIN_EMAIL") or "executive@example.com").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    db_url = database_url(database_url_override)
    with script_session(db_url, create_schema=True) as s:
        roles = ensure_roles(s)
        created = ensure_departments(s, roles)
        if created:
            logger.info("Seeded %s default departments", created)

        executive = roles[RoleName.EXECUTIVE_DIRECTOR]
        user = s.query(User).filter(User.username == admin_username).one_or_none()
        if not user:
            user = User(
                username=admin_username,
                email=admin_email,
                password_hash=generate_password_hash(admin_password),
                full_name="Executive Director",
                is_active=True,
            )
            s.add(user)
            logger.info("Created bootstrap executive director %s", admin_username)
        if executive not in user.roles:
            user.roles.append(executive)
        if user.primary_role is None:
            user.primary_role = executive

    logger.info("Initialized database (seed_only). Admin username: %s", admin_username)


def main() -> None:
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    seed_only()


if __name__ == "__main__":
    main()
