import pytest

from app.fbms.constants import RoleName


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True
    assert r.json["service"] == "fbms"


def test_healthz_ok(client):
    r = client.get("/healthz")
    assert r.status_code == 200


def test_unknown_route_is_json_404(client):
    r = client.get("/api/nope")
    assert r.status_code == 404
    assert r.json["code"] == "not_found"


def test_signup_signin_and_profile(client, factory):
    dept_id = factory.department("Mathematics")
    r = client.post(
        "/api/auth/signup",
        json={
            "username": "alice",
            "email": "Alice@Example.com",
            "password": factory.password,
            "fullName": "Alice A",
            "year": 2,
            "departmentId": dept_id,
        },
    )
    assert r.status_code == 201
    assert [x["name"] for x in r.json["user"]["roles"]] == ["student"]

    r = client.post("/api/auth/signin", json={"username": "alice", "password": factory.password})
    assert r.status_code == 200
    assert r.json["roles"] == ["ROLE_STUDENT"]
    token = r.json["accessToken"]

    # Email login works as well.
    r = client.post("/api/auth/signin", json={"username": "alice@example.com", "password": factory.password})
    assert r.status_code == 200

    r = client.get("/api/users/profile", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json["username"] == "alice"
    assert r.json["department"]["name"] == "Mathematics"


def test_missing_and_invalid_token(client):
    r = client.get("/api/users/profile")
    assert r.status_code == 401
    assert r.json["code"] == "unauthenticated"

    r = client.get("/api/users/profile", headers={"x-access-token": "garbage"})
    assert r.status_code == 401


def test_token_for_deleted_user_is_user_not_found(client, factory):
    uid = factory.user("ghost", RoleName.STUDENT)
    headers = factory.headers(uid)
    r = client.delete(f"/api/users/{uid}", headers=headers)
    assert r.status_code == 200

    r = client.get("/api/users/profile", headers=headers)
    assert r.status_code == 404
    assert r.json["code"] == "user_not_found"


def test_inactive_user_rejected(client, factory):
    uid = factory.user("sleepy", RoleName.STUDENT, active=False)
    r = client.get("/api/users/profile", headers=factory.headers(uid))
    assert r.status_code == 403
    assert r.json["reason"] == "inactive"

    r = client.post("/api/auth/signin", json={"username": "sleepy", "password": factory.password})
    assert r.status_code == 403


def test_signin_wrong_password_and_unknown_user(client, factory):
    factory.user("bob", RoleName.STAFF)
    r = client.post("/api/auth/signin", json={"username": "bob", "password": "nope"})
    assert r.status_code == 401

    r = client.post("/api/auth/signin", json={"username": "nobody", "password": "nope"})
    assert r.status_code == 404


def test_resolve_builds_context_from_token(app, factory):
    from app.fbms.db import session_scope
    from app.fbms.errors import Unauthenticated
    from app.fbms.identity import resolve
    from app.fbms.tokens import issue_token

    uid = factory.user("carol", RoleName.STAFF, RoleName.STUDENT)
    with app.app_context(), session_scope(app) as s:
        ctx = resolve(s, issue_token(uid))
        assert ctx.user_id == uid
        assert ctx.authorities == frozenset({"ROLE_STAFF", "ROLE_STUDENT"})

        forged = issue_token(uid, secret_key="someone-else")
        with pytest.raises(Unauthenticated, match="Unauthorized!"):
            resolve(s, forged)


def test_unexpected_failure_is_json_500(app, client, monkeypatch):
    from app.fbms.db import session_scope
    from app.fbms.modules.departments.models import Department
    from app.fbms.modules.departments import routes as department_routes

    def boom(*args, **kwargs):
        raise RuntimeError("database exploded")

    monkeypatch.setattr(department_routes, "serialize_department", boom)
    with session_scope(app) as s:
        s.add(Department(name="Broken"))

    r = client.get("/api/departments/", headers={"X-Request-ID": "trace-123"})
    assert r.status_code == 500
    assert r.json == {"message": "Internal server error", "code": "internal_error", "requestId": "trace-123"}


def test_oversized_request_id_is_replaced(app, client, factory):
    from app.fbms.auth import _request_id_from
    from app.fbms.db import session_scope
    from app.fbms.models import AuditEvent

    dept = factory.department("Optics")
    r = client.post(
        "/api/auth/signup",
        json={
            "username": "longtrace",
            "email": "longtrace@example.com",
            "password": factory.password,
            "fullName": "Long Trace",
            "departmentId": dept,
        },
        headers={"X-Request-ID": "a" * 200},
    )
    assert r.status_code == 201

    with session_scope(app) as s:
        event = s.query(AuditEvent).filter(AuditEvent.action == "auth.signup").one()
        assert event.request_id is not None
        assert len(event.request_id) <= 64
        assert event.request_id != "a" * 200

    assert _request_id_from("trace-123") == "trace-123"
    assert len(_request_id_from("bad id; drop table")) == 32
