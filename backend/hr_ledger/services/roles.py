from __future__ import annotations

from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict


class RoleSnapshot(BaseModel):
    """Immutable view of an actor's roles, resolved once per request."""

    model_config = ConfigDict(frozen=True)

    actor_id: int
    employee_id: int | None = None
    managed_departments: frozenset[str] = frozenset()
    is_hrd_manager: bool = False
    is_super_admin: bool = False

    def manages(self, department: str | None) -> bool:
        return department is not None and department in self.managed_departments


@runtime_checkable
class RoleResolver(Protocol):
    """Interface for identity/role resolution."""

    async def resolve(self, actor_id: int) -> RoleSnapshot:
        """Return the actor's role snapshot. Unknown actors have no roles."""
        ...


class InMemoryRoleResolver:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._snapshots: dict[int, RoleSnapshot] = {}

    def seed(self, snapshot: RoleSnapshot) -> None:
        """Seed an actor's roles for testing."""
        self._snapshots[snapshot.actor_id] = snapshot

    async def resolve(self, actor_id: int) -> RoleSnapshot:
        return self._snapshots.get(actor_id, RoleSnapshot(actor_id=actor_id))


_role_resolver: RoleResolver = InMemoryRoleResolver()


def get_role_resolver() -> RoleResolver:
    """FastAPI dependency for the Role Resolver."""
    return _role_resolver


def set_role_resolver(resolver: RoleResolver) -> None:
    """Override the resolver (for testing or production wiring)."""
    global _role_resolver
    _role_resolver = resolver
