# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Header, Path, status

from leave_ledger.exceptions import AppError
from leave_ledger.models.enums import Role
from leave_ledger.schemas.auth import AuthContext


async def get_auth_context(
    x_company_id: uuid.UUID = Header(),
    x_user_id: uuid.UUID = Header(),
    x_role: Role = Header(default=Role.EMPLOYEE),
) -> AuthContext:
    """Extract dev auth context from request headers."""
    return AuthContext(company_id=x_company_id, user_id=x_user_id, role=x_role)


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]


async def require_admin(
    auth: AuthDep,
) -> AuthContext:
    """Require admin or owner role for the request."""
    if not auth.role.is_administrative:
        raise AppError("Admin access required", status_code=status.HTTP_403_FORBIDDEN)
    return auth


AdminDep = Annotated[AuthContext, Depends(require_admin)]


async def require_reviewer(
    auth: AuthDep,
) -> AuthContext:
    """Require a role that can sit on an approval stage."""
    if auth.role == Role.EMPLOYEE:
        raise AppError("Reviewer access required", status_code=status.HTTP_403_FORBIDDEN)
    return auth


ReviewerDep = Annotated[AuthContext, Depends(require_reviewer)]


async def validate_company_scope(
    company_id: uuid.UUID = Path(),
    auth: AuthContext = Depends(get_auth_context),
) -> AuthContext:
    """Ensure the path company_id matches the auth header company_id."""
    if company_id != auth.company_id:
        raise AppError("Company ID mismatch", status_code=status.HTTP_403_FORBIDDEN)
    return auth
