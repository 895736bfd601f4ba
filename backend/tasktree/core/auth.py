"""Bearer-token authentication resolving requests to their owning user."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from tasktree.core.logging import get_logger
from tasktree.core.user_tokens import hash_user_token
from tasktree.db.session import get_session
from tasktree.models.users import User

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

logger = get_logger(__name__)
security = HTTPBearer(auto_error=False)
SECURITY_DEP = Depends(security)
SESSION_DEP = Depends(get_session)


@dataclass
class AuthContext:
    """Authenticated user context resolved from inbound auth headers."""

    actor_type: Literal["user"]
    user: User

    @property
    def owner_id(self) -> UUID:
        return self.user.id


def _extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    value = authorization.strip()
    if not value:
        return None
    if not value.lower().startswith("bearer "):
        return None
    token = value.split(" ", maxsplit=1)[1].strip()
    return token or None


async def get_auth_context(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = SECURITY_DEP,
    session: AsyncSession = SESSION_DEP,
) -> AuthContext:
    """Resolve the user owning the presented bearer token or answer 401."""
    token = credentials.credentials.strip() if credentials is not None else None
    if not token:
        token = _extract_bearer_token(request.headers.get("Authorization"))
    if token is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)

    token_hash = hash_user_token(token)
    user = await User.objects.filter_by(api_token_hash=token_hash).first(session)
    if user is None or user.api_token_hash is None:
        logger.info("auth.token.rejected path=%s", request.url.path)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    return AuthContext(actor_type="user", user=user)
