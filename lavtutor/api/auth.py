"""
Authentication Dependencies

Bearer token authentication: the token issued by the identity provider is
looked up on the users table. Token issuance itself lives outside this
service.
"""
import logging
from typing import Callable, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lavtutor.database import get_db
from lavtutor.models.user import Role, User

logger = logging.getLogger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)


def _unauthorized(code: str, message: str, details: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={
            "error": {
                "code": code,
                "message": message,
                "details": details
            }
        },
        headers={"WWW-Authenticate": "Bearer"}
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the bearer token to a user.

    Raises:
        401 AUTH_001: Authorization header missing
        401 AUTH_003: Not a bearer token
        401 AUTH_002: Token does not belong to any user
    """
    if credentials is None:
        raise _unauthorized("AUTH_001", "Authorization header missing", "Please provide a valid bearer token")

    if credentials.scheme.lower() != "bearer":
        raise _unauthorized("AUTH_003", "Invalid authorization format", "Use 'Bearer <token>' format")

    token = credentials.credentials
    result = await db.execute(select(User).where(User.access_token == token))
    user = result.scalars().first()

    if user is None:
        logger.warning(f"Invalid token attempt: {token[:10]}...")
        raise _unauthorized("AUTH_002", "Invalid or expired token", "The provided token is not valid")

    return user


def require_role(*roles: Role) -> Callable:
    """Dependency factory: the current user must hold one of the roles"""
    allowed = {role.value for role in roles}

    async def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": {
                        "code": "PERMISSION_DENIED",
                        "message": "You do not have access to this resource",
                        "details": f"Requires role: {', '.join(sorted(allowed))}"
                    }
                },
            )
        return user

    return checker


require_admin = require_role(Role.ADMIN)
require_tutor = require_role(Role.TUTOR)
