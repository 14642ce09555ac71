"""Builders shared by the test modules."""
from datetime import date
from decimal import Decimal

from prflow.core.identity import CurrentUser
from prflow.core.security import create_access_token
from prflow.models import User
from prflow.schemas.line_item import LineItemCreate
from prflow.schemas.purchase_request import PurchaseRequestCreate

TEST_PASSWORD = "secret123"


def actor(user: User) -> CurrentUser:
    return CurrentUser(
        id=user.id,
        email=user.email,
        role=user.role,
        employee_number=user.employee_number,
        full_name=user.full_name,
    )


def line_item(**overrides) -> LineItemCreate:
    values = {
        "item_name": "Laptop",
        "required_quantity": 2,
        "unit_of_measure": "each",
        "required_by_date": date(2026, 12, 1),
        "delivery_location": "HQ Floor 3",
        "estimated_cost": Decimal("750.00"),
        "justification": "New hires",
    }
    values.update(overrides)
    return LineItemCreate(**values)


def request_payload(**overrides) -> PurchaseRequestCreate:
    values = {
        "title": "Laptops for new hires",
        "department": "IT",
        "location": "HQ",
        "request_date": date(2026, 10, 19),
        "business_justification": "Team growth",
    }
    values.update(overrides)
    return PurchaseRequestCreate(**values)


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(
        subject=str(user.id),
        extra_claims={
            "email": user.email,
            "role": user.role,
            "employee_number": user.employee_number,
            "full_name": user.full_name,
        },
    )
    return {"Authorization": f"Bearer {token}"}
