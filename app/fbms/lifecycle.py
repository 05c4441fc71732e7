"""
Lifecycle states for questions and departments.

Rows carry a `status` column instead of a bare active flag; every change goes
through `transition()` so illegal moves (e.g. retired -> draft) are rejected
in one place.
"""
from __future__ import annotations

from enum import Enum

from app.fbms.errors import ValidationError


class LifecycleState(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    RETIRED = "retired"


_ALLOWED: dict[LifecycleState, frozenset[LifecycleState]] = {
    LifecycleState.DRAFT: frozenset({LifecycleState.ACTIVE, LifecycleState.RETIRED}),
    LifecycleState.ACTIVE: frozenset({LifecycleState.RETIRED}),
    LifecycleState.RETIRED: frozenset({LifecycleState.ACTIVE}),
}


def parse_state(value: str | None) -> LifecycleState:
    raw = (value or "").strip().lower()
    try:
        return LifecycleState(raw)
    except ValueError:
        allowed = ", ".join(s.value for s in LifecycleState)
        raise ValidationError(f"Invalid status {value!r}. Must be one of: {allowed}")


def can_transition(current: LifecycleState, target: LifecycleState) -> bool:
    return target in _ALLOWED[current]


def transition(entity, target: LifecycleState) -> bool:
    """
    Move `entity.status` to `target`. Returns False when already there.
    """
    current = LifecycleState(entity.status)
    if current == target:
        return False
    if not can_transition(current, target):
        raise ValidationError(f"Cannot move from {current.value} to {target.value}.")
    entity.status = target.value
    return True


def activate(entity) -> bool:
    return transition(entity, LifecycleState.ACTIVE)


def retire(entity) -> bool:
    return transition(entity, LifecycleState.RETIRED)


def apply_active_flag(entity, active: bool) -> bool:
    """Legacy `active: true/false` payloads map onto activate/retire."""
    return activate(entity) if active else retire(entity)
