"""Bearer token authentication and role checks."""

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from cropbroker.config import Settings, get_settings
from cropbroker.models import User, UserRole
from cropbroker.repositories import Repositories, get_repositories
from cropbroker.services.accounts import decode_access_token
from cropbroker.services.errors import AuthenticationError

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
    repos: Repositories = Depends(get_repositories),
    settings: Settings = Depends(get_settings),
) -> User:
    """Validate the bearer token and return its user.

    Raises:
        HTTPException: 401 if the token is missing, invalid, or names no user
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = decode_access_token(settings, credentials.credentials)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await repos.users.get(payload["id"])
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_roles(*roles: UserRole):
    """Dependency factory admitting only users with one of ``roles``."""

    async def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied",
            )
        return user

    return checker


require_broker = require_roles(UserRole.BROKER)
require_supplier = require_roles(UserRole.SUPPLIER)
require_financer = require_roles(UserRole.FINANCER)
