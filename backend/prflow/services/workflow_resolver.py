"""PRFlow — Approval chain lookup for a department/location."""
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from prflow.core.exceptions import ConfigurationError
from prflow.models.approval import ApprovalWorkflow
from prflow.models.user import User


@dataclass(frozen=True)
class ApprovalStep:
    level: int
    approver_id: UUID
    approver_employee_number: str | None = None
    approver_name: str | None = None
    approver_email: str | None = None


def approver_at(chain: list[ApprovalStep], level: int) -> ApprovalStep | None:
    return next((step for step in chain if step.level == level), None)


def first_approver(chain: list[ApprovalStep]) -> ApprovalStep | None:
    return approver_at(chain, 1)


def next_approver(chain: list[ApprovalStep], current_level: int) -> ApprovalStep | None:
    """None means the current level is the final one."""
    return approver_at(chain, current_level + 1)


def require_first_approver(chain: list[ApprovalStep], department: str, location: str) -> ApprovalStep:
    step = first_approver(chain)
    if step is None:
        raise ConfigurationError(
            f"No approver configured for department '{department}' at location '{location}'."
        )
    return step


class WorkflowResolver:
    """Read-only view over the approval matrix."""

    @staticmethod
    async def resolve(db: AsyncSession, department: str, location: str) -> list[ApprovalStep]:
        """
        Ordered approval chain for (department, location).
        Levels are distinct but may be sparse; the list may be empty.
        """
        result = await db.execute(
            select(ApprovalWorkflow, User)
            .join(User, User.id == ApprovalWorkflow.approver_id)
            .where(
                ApprovalWorkflow.department == department,
                ApprovalWorkflow.location == location,
                ApprovalWorkflow.is_active.is_(True),
            )
            .order_by(ApprovalWorkflow.approval_level)
        )
        return [
            ApprovalStep(
                level=entry.approval_level,
                approver_id=entry.approver_id,
                approver_employee_number=user.employee_number,
                approver_name=user.full_name,
                approver_email=user.email,
            )
            for entry, user in result.all()
        ]
