from __future__ import annotations

from pydantic import BaseModel

from hr_ledger.services.roles import RoleSnapshot


class AuthContext(BaseModel):
    """Acting user and their role snapshot, resolved once per request."""

    actor_id: int
    roles: RoleSnapshot

    @property
    def is_hrd(self) -> bool:
        """HRD manager or super-admin."""
        return self.roles.is_hrd_manager or self.roles.is_super_admin

    @property
    def is_super_admin(self) -> bool:
        return self.roles.is_super_admin
