import pytest
from werkzeug.security import generate_password_hash

from app.fbms import create_app
from app.fbms.constants import RoleName
from app.fbms.db import session_scope
from app.fbms.models import Base, Role, User
from app.fbms.modules.departments.models import Department
from app.fbms.modules.questions.models import Question
from app.fbms.seed import ensure_roles
from app.fbms.tokens import issue_token

PASSWORD = "secret-pw"


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("TOKEN_EXPIRATION_SECONDS", "3600")

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        ensure_roles(s)

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


class Factory:
    """Direct-to-DB builders so tests don't depend on the HTTP layer for setup."""

    def __init__(self, app):
        self.app = app
        self.password = PASSWORD

    def department(self, name: str = "Computer Science", status: str = "active") -> int:
        with session_scope(self.app) as s:
            d = Department(name=name, status=status)
            s.add(d)
            s.flush()
            return d.id

    def user(
        self,
        username: str,
        *roles: RoleName,
        department_id: int | None = None,
        year: int | None = None,
        active: bool = True,
        primary: RoleName | None = None,
    ) -> int:
        with session_scope(self.app) as s:
            u = User(
                username=username,
                email=f"{username}@example.com",
                password_hash=generate_password_hash(PASSWORD),
                full_name=username.title(),
                year=year,
                department_id=department_id,
                is_active=active,
            )
            by_name = {r.name: r for r in s.query(Role).all()}
            for r in roles:
                u.roles.append(by_name[r.value])
            if primary is not None:
                u.primary_role = by_name[primary.value]
            elif roles:
                u.primary_role = by_name[roles[0].value]
            s.add(u)
            s.flush()
            return u.id

    def question(
        self,
        department_id: int,
        year: int,
        role: str = "both",
        text: str = "How was the course?",
        status: str = "active",
        creator_id: int | None = None,
    ) -> int:
        with session_scope(self.app) as s:
            q = Question(
                text=text,
                year=year,
                role=role,
                status=status,
                department_id=department_id,
                created_by_user_id=creator_id,
            )
            s.add(q)
            s.flush()
            return q.id

    def headers(self, user_id: int) -> dict:
        with self.app.app_context():
            return {"x-access-token": issue_token(user_id)}


@pytest.fixture()
def factory(app):
    return Factory(app)
