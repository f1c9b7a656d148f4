"""
Resolution of the caller's tenant (company) and role.

The company assignment is read from ``user_roles`` on every request. A user
who finishes company setup after signing in is therefore picked up on the
next call without a new token.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import PermissionDeniedError, TenantNotResolvedError
from app.models.company import Company, UserRoleAssignment, ROLE_COMPANY_ADMIN, ROLE_EMPLOYEE, ROLE_SUPER_ADMIN
from app.models.user import User

logger = logging.getLogger("hse.tenant")


@dataclass(frozen=True)
class TenantContext:
    user_id: str
    company_id: Optional[str]
    role: str
    actor_name: str
    company_name: Optional[str] = None

    @property
    def is_super_admin(self) -> bool:
        return self.role == ROLE_SUPER_ADMIN

    @property
    def is_company_admin(self) -> bool:
        return self.role in (ROLE_COMPANY_ADMIN, ROLE_SUPER_ADMIN)

    def require_company(self) -> str:
        """Company id of the caller, or TenantNotResolvedError when none is assigned yet."""
        if not self.company_id:
            raise TenantNotResolvedError()
        return self.company_id

    def require_admin(self) -> None:
        if not self.is_company_admin:
            raise PermissionDeniedError("Company administrator role required")


async def resolve_tenant_context(db: AsyncSession, user: User) -> TenantContext:
    """Build the TenantContext for ``user`` from the current role assignment."""
    row = (
        await db.execute(
            select(UserRoleAssignment.role, UserRoleAssignment.company_id, Company.name)
            .outerjoin(Company, Company.id == UserRoleAssignment.company_id)
            .where(UserRoleAssignment.user_id == user.id)
        )
    ).first()

    actor_name = user.full_name or user.email
    if row is None:
        logger.debug("No role assignment for user %s", user.id)
        return TenantContext(user_id=user.id, company_id=None, role=ROLE_EMPLOYEE, actor_name=actor_name)

    role, company_id, company_name = row
    return TenantContext(
        user_id=user.id,
        company_id=company_id,
        role=role,
        actor_name=actor_name,
        company_name=company_name,
    )
