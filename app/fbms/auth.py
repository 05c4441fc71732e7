from __future__ import annotations

import re
import uuid

from flask import Blueprint, current_app, g, request

from app.fbms.audit import record_event
from app.fbms.db import db_session
from app.fbms.errors import Unauthenticated
from app.fbms.identity import build_authorities
from app.fbms.modules.users.service import authenticate, serialize_user, signup
from app.fbms.tokens import issue_token
from app.fbms.utils import json_payload

bp = Blueprint("auth", __name__)

# Fits AuditEvent.request_id (String(64)).
_REQUEST_ID_RE = re.compile(r"[A-Za-z0-9-]{1,64}")


def _request_id_from(header: str | None) -> str:
    candidate = (header or "").strip()
    if _REQUEST_ID_RE.fullmatch(candidate):
        return candidate
    return uuid.uuid4().hex


def load_current_user() -> None:
    """
    Assigns a per-request request_id (for audit/log correlation) and clears
    identity. Handlers that need a caller go through rbac.login_required,
    which resolves the bearer token against the store on every request.
    """
    if not getattr(g, "request_id", None):
        g.request_id = _request_id_from(request.headers.get("X-Request-ID"))
    g.current_user = None
    g.identity = None


@bp.post("/signup")
def signup_post():
    s = db_session()
    user = signup(s, json_payload())
    s.commit()
    message = "User registered successfully"
    return {"message": message, "user": serialize_user(user)}, 201


@bp.post("/signin")
def signin_post():
    s = db_session()
    payload = json_payload()
    login = payload.get("username") or payload.get("email") or ""

    try:
        user = authenticate(s, login, payload.get("password") or "")
    except Unauthenticated:
        record_event(
            s,
            actor=None,
            action="auth.login_failed",
            entity_type="User",
            entity_id=login,
            reason="Invalid credentials",
        )
        s.commit()
        raise
    s.commit()

    current_app.logger.info("Signed in user_id=%s request_id=%s", user.id, g.request_id)
    out = serialize_user(user)
    out["roles"] = sorted(build_authorities(user))
    out["accessToken"] = issue_token(user.id)
    return out, 200
