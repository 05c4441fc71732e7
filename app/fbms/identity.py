from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.fbms.constants import RoleName
from app.fbms.errors import DenyReason, Forbidden, UserNotFound
from app.fbms.models import User
from app.fbms.tokens import verify_token


@dataclass(frozen=True)
class AuthorityContext:
    """Who is calling, and the role tags they hold for this request."""

    user_id: int
    authorities: frozenset[str]

    def has(self, role: RoleName) -> bool:
        return role.authority in self.authorities

    def has_any(self, *roles: RoleName) -> bool:
        return any(self.has(r) for r in roles)

    @property
    def role_names(self) -> frozenset[RoleName]:
        return frozenset(RoleName.from_authority(a) for a in self.authorities)


def build_authorities(user: User) -> frozenset[str]:
    """
    Primary role (if any) unioned with every assigned role, as ROLE_* tags.
    """
    names: set[str] = set()
    if user.primary_role is not None:
        names.add(user.primary_role.name)
    names.update(r.name for r in user.roles or [])
    return frozenset(RoleName(n).authority for n in names)


def context_for(user: User) -> AuthorityContext:
    return AuthorityContext(user_id=user.id, authorities=build_authorities(user))


def load_user(s: Session, token: str | None) -> User:
    """
    Verify `token` and load its user. Raises Unauthenticated, UserNotFound,
    or Forbidden(inactive).
    """
    user_id = verify_token(token)
    user = s.get(User, user_id)
    if user is None:
        raise UserNotFound()
    if not user.is_active:
        raise Forbidden("Account is inactive", reason=DenyReason.INACTIVE)
    return user


def resolve(s: Session, token: str | None) -> AuthorityContext:
    return context_for(load_user(s, token))
