"""
Bearer token issuance and verification.

Tokens are signed, timestamped payloads (`itsdangerous`) whose subject is the
user id. They carry no role data: authorities are re-derived from the store on
every request.
"""
from __future__ import annotations

from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from app.fbms.errors import Unauthenticated

_TOKEN_SALT = "fbms-access-token"


def _serializer(secret_key: str | None = None) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key or current_app.config["SECRET_KEY"], salt=_TOKEN_SALT)


def issue_token(user_id: int, *, secret_key: str | None = None) -> str:
    return _serializer(secret_key).dumps({"sub": user_id})


def verify_token(token: str | None, *, max_age: int | None = None, secret_key: str | None = None) -> int:
    """Return the subject user id, or raise Unauthenticated."""
    if not token:
        raise Unauthenticated("No token provided!")
    if max_age is None:
        max_age = int(current_app.config["TOKEN_EXPIRATION_SECONDS"])
    try:
        payload = _serializer(secret_key).loads(token, max_age=max_age)
    except SignatureExpired:
        raise Unauthenticated("Token expired.")
    except BadSignature:
        raise Unauthenticated("Unauthorized!")
    sub = payload.get("sub") if isinstance(payload, dict) else None
    if not isinstance(sub, int):
        raise Unauthenticated("Unauthorized!")
    return sub


def token_from_headers(headers) -> str | None:
    token = (headers.get("x-access-token") or "").strip()
    if token:
        return token
    auth = (headers.get("Authorization") or "").strip()
    scheme, _, value = auth.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None
