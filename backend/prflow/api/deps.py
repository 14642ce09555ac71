"""PRFlow — FastAPI dependencies (auth, DB, roles)."""
from fastapi import Depends, HTTPException, Request, status

from prflow.core.identity import CurrentUser
from prflow.db.session import get_db  # noqa: F401


async def require_auth(request: Request) -> CurrentUser:
    """Require authenticated user. Raise 401 if not logged in."""
    user = getattr(request.state, "user", None)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return user


def require_role(*roles: str):
    """Dependency factory: require one of the given roles."""

    async def _check(user: CurrentUser = Depends(require_auth)) -> CurrentUser:
        if not user.has_role(*roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied. Your role: {user.role}",
            )
        return user

    return _check
