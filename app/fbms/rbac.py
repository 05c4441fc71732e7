"""
Authorization decisions and question visibility.

`authorize()` is a pure function of the caller's authority context, the
action, and (for user-owned targets) the owner id. Rules, first match wins:

1. self-access on the caller's own profile/feedback;
2. director escalation (executive passes everything, academic everything
   except role reassignment and system-wide statistics);
3. functional gates for everyone else.

The Flask decorators at the bottom wire this into request handling.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from functools import wraps
from typing import Any

from flask import g, request

from app.fbms.constants import QuestionAudience, RoleName
from app.fbms.errors import DenyReason, Forbidden
from app.fbms.identity import AuthorityContext, context_for, load_user
from app.fbms.tokens import token_from_headers

logger = logging.getLogger(__name__)


class Action(str, Enum):
    READ_USER = "user.read"
    UPDATE_USER = "user.update"
    DELETE_USER = "user.delete"
    CHANGE_PASSWORD = "user.change_password"
    LIST_USERS = "user.list"
    REASSIGN_ROLES = "user.reassign_roles"

    MANAGE_DEPARTMENTS = "department.manage"

    LIST_QUESTIONS = "question.list"
    CREATE_QUESTION = "question.create"
    UPDATE_QUESTION = "question.update"
    DELETE_QUESTION = "question.delete"
    LIST_QUESTIONS_BY_CREATOR = "question.list_by_creator"

    SUBMIT_FEEDBACK = "feedback.submit"
    READ_FEEDBACK = "feedback.read"
    LIST_FEEDBACK = "feedback.list"
    VIEW_QUESTION_STATS = "stats.question"
    VIEW_DEPARTMENT_STATS = "stats.department"
    VIEW_GLOBAL_STATS = "stats.global"


class Gate(Enum):
    AUTHENTICATED = "authenticated"
    SELF_OR_DIRECTOR = "self_or_director"
    SUBMITTER = "submitter"
    DIRECTOR = "director"
    EXECUTIVE = "executive"


class Escalation(Enum):
    NONE = 0
    ACADEMIC = 1
    EXECUTIVE = 2


@dataclass(frozen=True)
class _Rule:
    gate: Gate
    message: str


_RULES: dict[Action, _Rule] = {
    Action.READ_USER: _Rule(Gate.SELF_OR_DIRECTOR, "Unauthorized to view this user"),
    Action.UPDATE_USER: _Rule(Gate.SELF_OR_DIRECTOR, "Unauthorized to update this user"),
    Action.DELETE_USER: _Rule(Gate.SELF_OR_DIRECTOR, "Unauthorized to delete this user"),
    Action.CHANGE_PASSWORD: _Rule(Gate.SELF_OR_DIRECTOR, "Unauthorized to change this user's password"),
    Action.LIST_USERS: _Rule(Gate.DIRECTOR, "Require Academic Director or Executive Director Role!"),
    Action.REASSIGN_ROLES: _Rule(Gate.EXECUTIVE, "Unauthorized to update user roles"),
    Action.MANAGE_DEPARTMENTS: _Rule(Gate.DIRECTOR, "Require Academic Director or Executive Director Role!"),
    Action.LIST_QUESTIONS: _Rule(Gate.AUTHENTICATED, ""),
    Action.CREATE_QUESTION: _Rule(Gate.DIRECTOR, "Require Academic Director Role!"),
    Action.UPDATE_QUESTION: _Rule(Gate.DIRECTOR, "Require Academic Director Role!"),
    Action.DELETE_QUESTION: _Rule(Gate.DIRECTOR, "Require Academic Director Role!"),
    Action.LIST_QUESTIONS_BY_CREATOR: _Rule(Gate.DIRECTOR, "Require Academic Director or Executive Director Role!"),
    Action.SUBMIT_FEEDBACK: _Rule(Gate.SUBMITTER, "Require Student or Staff Role!"),
    Action.READ_FEEDBACK: _Rule(Gate.SELF_OR_DIRECTOR, "Unauthorized to view this feedback"),
    Action.LIST_FEEDBACK: _Rule(Gate.DIRECTOR, "Unauthorized to view all feedback"),
    Action.VIEW_QUESTION_STATS: _Rule(Gate.DIRECTOR, "Unauthorized to view feedback statistics"),
    Action.VIEW_DEPARTMENT_STATS: _Rule(Gate.DIRECTOR, "Unauthorized to view feedback statistics"),
    Action.VIEW_GLOBAL_STATS: _Rule(Gate.EXECUTIVE, "Unauthorized to view overall feedback statistics"),
}

# Actions where rule 1 (self-access) applies when owner_id == caller.
SELF_ACCESS_ACTIONS = frozenset(
    {Action.READ_USER, Action.UPDATE_USER, Action.DELETE_USER, Action.CHANGE_PASSWORD, Action.READ_FEEDBACK}
)

_ESCALATION: dict[RoleName, Escalation] = {
    RoleName.STUDENT: Escalation.NONE,
    RoleName.STAFF: Escalation.NONE,
    RoleName.ACADEMIC_DIRECTOR: Escalation.ACADEMIC,
    RoleName.EXECUTIVE_DIRECTOR: Escalation.EXECUTIVE,
}

_SUBMITTER_ROLES = frozenset({RoleName.STUDENT, RoleName.STAFF})

# None = no audience restriction.
_AUDIENCES: dict[RoleName, frozenset[QuestionAudience] | None] = {
    RoleName.STUDENT: frozenset({QuestionAudience.STUDENT, QuestionAudience.BOTH}),
    RoleName.STAFF: frozenset({QuestionAudience.STAFF, QuestionAudience.BOTH}),
    RoleName.ACADEMIC_DIRECTOR: None,
    RoleName.EXECUTIVE_DIRECTOR: None,
}


def _check_exhaustive() -> None:
    for table, enum_cls in ((_RULES, Action), (_ESCALATION, RoleName), (_AUDIENCES, RoleName)):
        missing = set(enum_cls) - set(table)
        if missing:
            raise RuntimeError(f"Authorization table missing entries: {sorted(m.value for m in missing)}")


_check_exhaustive()


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: DenyReason | None = None
    message: str = ""

    @classmethod
    def allow(cls) -> "Decision":
        return cls(True)

    @classmethod
    def deny(cls, reason: DenyReason, message: str) -> "Decision":
        return cls(False, reason, message)

    def raise_for_denial(self) -> None:
        if not self.allowed:
            raise Forbidden(self.message or "Forbidden", reason=self.reason or DenyReason.ROLE_MISMATCH)


def escalation_of(ctx: AuthorityContext) -> Escalation:
    level = Escalation.NONE
    for role in ctx.role_names:
        if _ESCALATION[role].value > level.value:
            level = _ESCALATION[role]
    return level


def is_director(ctx: AuthorityContext) -> bool:
    return escalation_of(ctx) is not Escalation.NONE


def authorize(ctx: AuthorityContext, action: Action, owner_id: int | None = None) -> Decision:
    rule = _RULES[action]

    if action in SELF_ACCESS_ACTIONS and owner_id is not None and owner_id == ctx.user_id:
        return Decision.allow()

    level = escalation_of(ctx)
    if level is Escalation.EXECUTIVE:
        return Decision.allow()
    if level is Escalation.ACADEMIC:
        if rule.gate is Gate.EXECUTIVE:
            return Decision.deny(DenyReason.ROLE_MISMATCH, rule.message)
        return Decision.allow()

    if rule.gate is Gate.AUTHENTICATED:
        return Decision.allow()
    if rule.gate is Gate.SUBMITTER:
        if ctx.role_names & _SUBMITTER_ROLES:
            return Decision.allow()
        return Decision.deny(DenyReason.ROLE_MISMATCH, rule.message)
    if rule.gate is Gate.SELF_OR_DIRECTOR:
        return Decision.deny(DenyReason.SELF_ONLY, rule.message)
    return Decision.deny(DenyReason.ROLE_MISMATCH, rule.message)


@dataclass(frozen=True)
class AudiencePredicate:
    """Which question role targets a caller may see; None means all."""

    audiences: frozenset[QuestionAudience] | None

    @property
    def unrestricted(self) -> bool:
        return self.audiences is None

    @property
    def empty(self) -> bool:
        return self.audiences is not None and not self.audiences

    def matches(self, question_role: str) -> bool:
        if self.audiences is None:
            return True
        return question_role in {a.value for a in self.audiences}

    def clause(self, column):
        from sqlalchemy import false, true

        if self.audiences is None:
            return true()
        if not self.audiences:
            return false()
        return column.in_(sorted(a.value for a in self.audiences))


def question_visibility(ctx: AuthorityContext) -> AudiencePredicate:
    allowed: set[QuestionAudience] = set()
    for role in ctx.role_names:
        audiences = _AUDIENCES[role]
        if audiences is None:
            return AudiencePredicate(None)
        allowed |= audiences
    return AudiencePredicate(frozenset(allowed))


# ---------- Flask wiring ----------
def current_identity() -> AuthorityContext:
    ctx: AuthorityContext | None = getattr(g, "identity", None)
    if ctx is None:
        raise RuntimeError("No identity on request; missing @login_required?")
    return ctx


def enforce(action: Action, owner_id: int | None = None) -> AuthorityContext:
    ctx = current_identity()
    decision = authorize(ctx, action, owner_id)
    if not decision.allowed:
        logger.warning(
            "Forbidden: action=%s user_id=%s reason=%s request_id=%s",
            action.value,
            ctx.user_id,
            decision.reason.value if decision.reason else None,
            getattr(g, "request_id", None),
        )
    decision.raise_for_denial()
    return ctx


def login_required(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        from app.fbms.db import db_session

        user = load_user(db_session(), token_from_headers(request.headers))
        g.current_user = user
        g.identity = context_for(user)
        return fn(*args, **kwargs)

    return wrapped


def require_action(action: Action) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Authenticate, then gate on an action that has no per-target owner."""

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        @login_required
        def wrapped(*args: Any, **kwargs: Any):
            enforce(action)
            return fn(*args, **kwargs)

        return wrapped

    return decorator
