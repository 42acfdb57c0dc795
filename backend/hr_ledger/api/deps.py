# ruff: noqa: B008
from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, Path

from hr_ledger.exceptions import Unauthorized
from hr_ledger.models.enums import ApprovalLevel
from hr_ledger.schemas.auth import AuthContext
from hr_ledger.services.employee import EmployeeDirectory, get_employee_directory
from hr_ledger.services.roles import RoleResolver, get_role_resolver
from hr_ledger.services.workflow import may_act_for


async def get_auth_context(
    x_actor_id: int = Header(),
    resolver: RoleResolver = Depends(get_role_resolver),
) -> AuthContext:
    """Resolve the acting user's roles once for the whole request."""
    roles = await resolver.resolve(x_actor_id)
    return AuthContext(actor_id=x_actor_id, roles=roles)


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]
DirectoryDep = Annotated[EmployeeDirectory, Depends(get_employee_directory)]


async def validate_employee_scope(
    auth: AuthDep,
    directory: DirectoryDep,
    employee_id: int = Path(),
) -> AuthContext:
    """Ensure the actor is the path employee, their approver or HRD."""
    employee = await directory.get_employee(employee_id)
    if not may_act_for(auth.roles, employee_id, employee):
        raise Unauthorized(
            "Actor may not view this employee's records",
            required_role=ApprovalLevel.DEPARTMENT_OR_HRD,
        )
    return auth


EmployeeScopeDep = Annotated[AuthContext, Depends(validate_employee_scope)]
