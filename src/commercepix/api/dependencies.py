"""FastAPI dependencies for request validation and common operations.

This module provides reusable FastAPI dependencies for:
- Settings and app-state services (UoW factory, object storage, rate limiter)
- Bearer-token authentication and admin authorization
- Request correlation id
"""

from typing import Callable, Optional

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from commercepix.core.config import Settings
from commercepix.services.exceptions import ForbiddenError, UnauthorizedError
from commercepix.services.rate_limit import RateLimiter
from commercepix.services.storage import ObjectStorage
from commercepix.uow import UnitOfWork

logger = structlog.get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


class CurrentUser(BaseModel):
    id: str
    email: Optional[str] = None


def get_settings() -> Settings:
    """Get application settings instance.

    Returns:
        Settings instance loaded from environment variables.
    """
    return Settings()  # type: ignore[call-arg]


def get_uow_factory(request: Request) -> Callable[[], UnitOfWork]:
    """Get UnitOfWork factory from app state.

    Example:
        >>> @router.post("/endpoint")
        >>> async def endpoint(uow_factory=Depends(get_uow_factory)):
        ...     async with await uow_factory() as uow:
        ...         await uow.projects.list_for_user(user.id)
    """
    return request.app.state.uow_factory


def get_storage(request: Request) -> ObjectStorage:
    """Get the object storage client created in the app lifespan."""
    return request.app.state.storage


def get_rate_limiter(
    request: Request, settings: Settings = Depends(get_settings)
) -> RateLimiter:
    return RateLimiter(
        request.app.state.uow_factory,
        per_minute_limit=settings.rate_limit_per_minute,
        per_day_limit=settings.rate_limit_per_day,
    )


def get_request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> CurrentUser:
    """Verify the bearer JWT issued by the auth provider and return the caller.

    Tokens are HS256-signed with the provider's shared secret; ``sub`` is the
    user id and ``email`` is used for admin checks.

    Raises:
        UnauthorizedError: Missing, malformed, expired or wrongly signed token
    """
    if credentials is None:
        raise UnauthorizedError("Missing bearer token")

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
        )
    except JWTError as e:
        logger.warning("auth.token_invalid", error=str(e))
        raise UnauthorizedError("Invalid authentication credentials") from e

    user_id = payload.get("sub")
    if not user_id:
        logger.warning("auth.token_missing_subject")
        raise UnauthorizedError("Invalid token: no user id found")

    structlog.contextvars.bind_contextvars(user_id=user_id)
    return CurrentUser(id=user_id, email=payload.get("email"))


async def require_admin(
    user: CurrentUser = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
) -> CurrentUser:
    """Allow only users whose email is listed in ADMIN_EMAILS."""
    if not user.email or user.email.lower() not in settings.admin_emails_list:
        logger.warning("auth.admin_denied", user_id=user.id)
        raise ForbiddenError("Admin access required")
    return user
