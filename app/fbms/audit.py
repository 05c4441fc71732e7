"""
Audit trail for account, catalogue and feedback mutations.

Rows are written into the caller's session so they commit (or roll back)
together with the change they describe.
"""
import json
from typing import Any

from flask import g, has_request_context, request
from sqlalchemy.orm import Session

from app.fbms.models import AuditEvent, User


def _request_fields(request_id: str | None) -> tuple[str | None, str | None]:
    if not has_request_context():
        return request_id, None
    return request_id or getattr(g, "request_id", None), request.remote_addr


def record_event(
    s: Session,
    *,
    actor: User | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> AuditEvent:
    """`actor` is None for anonymous attempts (failed sign-in) and self-deletes."""
    rid, client_ip = _request_fields(request_id)
    event = AuditEvent(
        request_id=rid,
        actor_user_id=actor.id if actor else None,
        actor_username=actor.username if actor else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
        metadata_json=json.dumps(metadata, sort_keys=True, default=str) if metadata else None,
        client_ip=client_ip,
    )
    s.add(event)
    return event
