"""Provisioning of task owners and their API tokens."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tasktree.core.logging import get_logger
from tasktree.core.time import utcnow
from tasktree.core.user_tokens import generate_user_token, hash_user_token
from tasktree.models.users import User

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

logger = get_logger(__name__)


class UserExistsError(ValueError):
    """Raised when provisioning a user whose email is already registered."""


async def create_user(
    session: AsyncSession,
    *,
    email: str,
    name: str | None = None,
) -> tuple[User, str]:
    """Create a user and return it with its plaintext token."""
    normalized = email.strip().lower()
    existing = await User.objects.filter_by(email=normalized).first(session)
    if existing is not None:
        raise UserExistsError(f"User already exists: {normalized}")
    token = generate_user_token()
    user = User(email=normalized, name=name, api_token_hash=hash_user_token(token))
    session.add(user)
    await session.commit()
    await session.refresh(user)
    logger.info("user.create.success user_id=%s", user.id)
    return user, token


async def rotate_user_token(session: AsyncSession, user: User) -> str:
    """Replace a user's token; the previous token stops working immediately."""
    token = generate_user_token()
    user.api_token_hash = hash_user_token(token)
    user.updated_at = utcnow()
    session.add(user)
    await session.commit()
    logger.info("user.token.rotated user_id=%s", user.id)
    return token
