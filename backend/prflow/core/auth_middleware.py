"""PRFlow — JWT auth middleware: extracts the bearer token, sets request.state.user."""
import logging
from typing import Callable
from uuid import UUID

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from prflow.core.identity import ROLE_REQUESTER, CurrentUser
from prflow.core.security import decode_token

logger = logging.getLogger(__name__)


class JWTAuthMiddleware(BaseHTTPMiddleware):
    """Extract JWT from the Authorization header and populate request.state.user."""

    PUBLIC_PATHS = {
        "/api/v1/auth/login",
        "/health",
        "/api/v1/docs",
        "/api/v1/redoc",
        "/api/v1/openapi.json",
    }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.user = None

        path = request.url.path
        if path in self.PUBLIC_PATHS or path.startswith("/api/v1/docs"):
            return await call_next(request)

        auth = request.headers.get("Authorization", "")
        if auth.startswith("Bearer "):
            token = auth[7:].strip()
            payload = decode_token(token)
            if payload and payload.get("type") == "access" and payload.get("sub"):
                try:
                    user_id = UUID(payload["sub"])
                except ValueError:
                    logger.warning("Rejected token with malformed subject")
                else:
                    request.state.user = CurrentUser(
                        id=user_id,
                        email=payload.get("email") or "unknown",
                        role=payload.get("role", ROLE_REQUESTER),
                        employee_number=payload.get("employee_number"),
                        full_name=payload.get("full_name"),
                    )
        return await call_next(request)
