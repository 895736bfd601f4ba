"""Reusable FastAPI dependencies for authenticated task routes."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Depends

from tasktree.core.auth import AuthContext, get_auth_context
from tasktree.db.session import get_session

if TYPE_CHECKING:
    from uuid import UUID

AUTH_DEP = Depends(get_auth_context)
SESSION_DEP = Depends(get_session)


def require_owner_id(auth: AuthContext = AUTH_DEP) -> UUID:
    """Return the id every task query in the request is scoped to."""
    return auth.owner_id


OWNER_DEP = Depends(require_owner_id)
