"""PRFlow — Seed dev users, masters and an IT/HQ approval chain (run after migrations)."""
import asyncio
import os
import sys

# Add parent to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select  # noqa: E402

from prflow.core.security import get_password_hash  # noqa: E402
from prflow.db.session import async_session_maker  # noqa: E402
from prflow.models import ApprovalWorkflow, Department, InventoryItem, Location, User  # noqa: E402

DEV_PASSWORD = "dev123"

USERS = [
    # employee_number, full_name, email, role
    ("E0001", "Dev Admin", "admin@prflow.local", "admin"),
    ("E0002", "Alice Approver", "alice@prflow.local", "approver"),
    ("E0003", "Bob Approver", "bob@prflow.local", "approver"),
    ("E0004", "Riley Requester", "riley@prflow.local", "requester"),
]


async def seed():
    async with async_session_maker() as session:
        existing = await session.execute(select(User).where(User.employee_number == "E0001"))
        if existing.scalar_one_or_none():
            print("Dev data already exists. Skipping seed.")
            return

        hashed = get_password_hash(DEV_PASSWORD)
        users = {}
        for employee_number, full_name, email, role in USERS:
            user = User(
                employee_number=employee_number,
                full_name=full_name,
                email=email,
                department="IT",
                location="HQ",
                role=role,
                hashed_password=hashed,
            )
            session.add(user)
            users[employee_number] = user
        await session.flush()

        session.add(Department(name="IT", code="IT"))
        session.add(Location(name="HQ"))
        session.add(InventoryItem(name="Laptop", unit_of_measure="each", quantity=2))
        session.add(ApprovalWorkflow(department="IT", location="HQ", approval_level=1, approver_id=users["E0002"].id))
        session.add(ApprovalWorkflow(department="IT", location="HQ", approval_level=2, approver_id=users["E0003"].id))
        await session.commit()
        print(f"Seeded {len(USERS)} users (password: {DEV_PASSWORD}) and the IT/HQ approval chain")


if __name__ == "__main__":
    asyncio.run(seed())
