"""Request-scoped dependencies: database session, settings and the signed-in user."""

import logging
from typing import Annotated, Iterable

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from fieldsmart.auth.models import Role, User
from fieldsmart.auth.utils import decode_token
from fieldsmart.config import Settings

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer()

# Office staff manage customers and paperwork; technicians read and work jobs
OFFICE_ROLES = (Role.ADMIN, Role.DISPATCHER)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_db(request: Request) -> AsyncSession:
    async with request.app.state.session_factory() as session:
        yield session


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> User:
    """Resolve the access token to an active user of the tenant it was issued for."""
    token = decode_token(credentials.credentials, settings)
    if token is None or token.token_type != "access":
        raise _unauthorized("Invalid or expired token")

    user = await db.get(User, token.sub)
    if user is None or not user.is_active or user.tenant_id != token.tenant_id:
        raise _unauthorized("User not found or inactive")
    return user


def require_role(allowed_roles: Iterable[Role]):
    """Dependency factory that checks if the current user has one of the allowed roles."""
    allowed = frozenset(allowed_roles)

    async def check_role(
        current_user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        if current_user.role not in allowed:
            logger.info("Denied %s to user %s", current_user.role.value, current_user.id)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return check_role


DbSession = Annotated[AsyncSession, Depends(get_db)]
AppSettings = Annotated[Settings, Depends(get_settings)]
CurrentUser = Annotated[User, Depends(get_current_user)]
OfficeUser = Annotated[User, Depends(require_role(OFFICE_ROLES))]
AdminUser = Annotated[User, Depends(require_role([Role.ADMIN]))]
