"""
Role-to-capability table and the single authorization check used by the
admission controller.
"""

import enum
from dataclasses import dataclass
from typing import Optional

from admissions.core.exceptions import AuthorizationError, ValidationError
from admissions.models.enums import ParticipationRole, Role


class Capability(str, enum.Enum):
    JOIN_EVENTS = "join_events"
    MANAGE_PARTICIPANTS = "manage_participants"
    MANAGE_EVENTS = "manage_events"


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.ADMIN: frozenset({Capability.JOIN_EVENTS, Capability.MANAGE_PARTICIPANTS, Capability.MANAGE_EVENTS}),
    Role.STAFF: frozenset({Capability.JOIN_EVENTS, Capability.MANAGE_PARTICIPANTS, Capability.MANAGE_EVENTS}),
    Role.VOLUNTEER: frozenset({Capability.JOIN_EVENTS}),
    Role.SCHOLAR: frozenset({Capability.JOIN_EVENTS}),
    Role.SPONSOR: frozenset(),
}


@dataclass(frozen=True)
class Actor:
    """Who is performing a transition; attached to notices for attribution."""

    id: int
    name: str
    role: Role
    avatar: Optional[str] = None

    @classmethod
    def from_user(cls, user) -> "Actor":
        return cls(id=user.id, name=user.name, role=Role(user.role), avatar=user.avatar)


def has_capability(actor: Actor, capability: Capability) -> bool:
    return capability in ROLE_CAPABILITIES.get(actor.role, frozenset())


def require_capability(actor: Actor, capability: Capability) -> None:
    if not has_capability(actor, capability):
        raise AuthorizationError(f"Role '{actor.role.value}' may not {capability.value.replace('_', ' ')}")


def default_participation_role(account_role: Role) -> ParticipationRole:
    if account_role == Role.SCHOLAR:
        return ParticipationRole.SCHOLAR
    return ParticipationRole.VOLUNTEER


def resolve_participation_role(account_role: Role, requested: Optional[str]) -> ParticipationRole:
    """
    Scholar accounts count against the scholar pool, every other account
    against the volunteer pool. An explicit role must match that pool.
    """
    expected = default_participation_role(account_role)
    if requested is None:
        return expected
    try:
        role = ParticipationRole(requested)
    except ValueError:
        raise ValidationError(f"Invalid role '{requested}'. Expected one of: volunteer, scholar")
    if role != expected:
        raise ValidationError(f"A {account_role.value} account cannot join as {role.value}")
    return role
