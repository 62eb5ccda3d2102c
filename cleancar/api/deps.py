from __future__ import annotations

from fastapi import Depends, Header, HTTPException

from cleancar.application.ports.user_repository import UserRepositoryPort
from cleancar.domain.entities.user import User
from cleancar.wiring.dependencies import get_store


def get_current_user(
    x_user_id: str | None = Header(None, alias="X-User-Id"),
    users: UserRepositoryPort = Depends(get_store),
) -> User:
    """Resolve the caller. Authentication itself happens in front of this service."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    user = users.get_user(x_user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    if not user.active:
        raise HTTPException(status_code=403, detail="Account is deactivated")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
