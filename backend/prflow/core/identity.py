"""PRFlow — Caller identity passed explicitly into every service call."""
from uuid import UUID

ROLE_REQUESTER = "requester"
ROLE_APPROVER = "approver"
ROLE_ADMIN = "admin"

APPROVER_ROLES = frozenset({ROLE_APPROVER, ROLE_ADMIN})


class CurrentUser:
    """User identity from the JWT — set on request.state by middleware."""

    def __init__(
        self,
        id: UUID,
        email: str,
        role: str,
        employee_number: str | None = None,
        full_name: str | None = None,
    ):
        self.id = id
        self.email = email
        self.role = role
        self.employee_number = employee_number
        self.full_name = full_name

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def has_role(self, *roles: str) -> bool:
        return self.role in roles

    def __repr__(self) -> str:
        return f"CurrentUser(id={self.id}, role={self.role})"
