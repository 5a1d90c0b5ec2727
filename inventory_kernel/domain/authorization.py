"""
Authorization seam (``inventory_kernel.domain.authorization``).

Responsibility
--------------
The kernel does not resolve identities or permissions itself.  It consumes
two pluggable interfaces supplied by the authentication/role subsystem:

* ``ActorDirectory``  -- who exists and which role each actor holds.
* ``AuthorizationPolicy``  -- opaque yes/no capability predicates.

``RoleBasedAuthorization`` is the default policy: it answers the
predicates from the role table in ``domain.roles``.  ``StaticActorDirectory``
is an in-memory directory for tests and small deployments.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from inventory_kernel.domain.dtos import RequestSnapshot
from inventory_kernel.domain.roles import Capability, Role, has_capability
from inventory_kernel.domain.workflow import RequestType, role_for_stage


class ActorDirectory(Protocol):
    """Pluggable lookup of actors and their roles."""

    def role_of(self, actor_id: UUID) -> Role | None:
        """Return the actor's role, or None if the actor is unknown."""
        ...

    def default_actor_for(self, role: Role) -> UUID | None:
        """Return an actor to assign work of ``role`` to, if any."""
        ...


class AuthorizationPolicy(Protocol):
    """Opaque capability predicates."""

    def can_move_stock(self, actor_id: UUID) -> bool:
        ...

    def can_create_request(self, actor_id: UUID, request_type: RequestType) -> bool:
        ...

    def can_approve(self, actor_id: UUID, request: RequestSnapshot) -> bool:
        ...


class StaticActorDirectory:
    """In-memory directory: actor id -> role."""

    def __init__(self, roles: dict[UUID, Role] | None = None):
        self._roles: dict[UUID, Role] = dict(roles or {})

    def add(self, actor_id: UUID, role: Role) -> UUID:
        self._roles[actor_id] = role
        return actor_id

    def role_of(self, actor_id: UUID) -> Role | None:
        return self._roles.get(actor_id)

    def default_actor_for(self, role: Role) -> UUID | None:
        # First registered actor of the role
        for actor_id, actor_role in self._roles.items():
            if actor_role == role:
                return actor_id
        return None


class RoleBasedAuthorization:
    """Capability predicates answered from the role table."""

    def __init__(self, directory: ActorDirectory):
        self._directory = directory

    def _has(self, actor_id: UUID, capability: Capability) -> bool:
        role = self._directory.role_of(actor_id)
        return role is not None and has_capability(role, capability)

    def can_move_stock(self, actor_id: UUID) -> bool:
        return self._has(actor_id, Capability.MOVE_STOCK)

    def can_create_request(self, actor_id: UUID, request_type: RequestType) -> bool:
        if not self._has(actor_id, Capability.CREATE_REQUESTS):
            return False
        if request_type == RequestType.INVENTORY_SHARE:
            return self._has(actor_id, Capability.SHARE_INVENTORY)
        return True

    def can_approve(self, actor_id: UUID, request: RequestSnapshot) -> bool:
        expected = role_for_stage(request.request_type, request.status)
        return expected is not None and self._directory.role_of(actor_id) == expected
