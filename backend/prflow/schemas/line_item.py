"""PRFlow — Line item schemas.

This is the only place line-item payloads are parsed. Quantities must arrive
as JSON integers and costs as decimal numbers or decimal strings; anything
else is rejected instead of being coerced.
"""
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

Quantity = Annotated[int, Field(ge=1, strict=True)]
StockLevel = Annotated[int, Field(ge=0, strict=True)]
UnitCost = Annotated[Decimal, Field(ge=Decimal("0.01"), max_digits=14, decimal_places=2)]

_DD_MM_YYYY = re.compile(r"^\d{2}-\d{2}-\d{4}$")


def parse_required_by(value: Any) -> Any:
    """Accept ISO dates as well as the dd-mm-yyyy format the entry form sends."""
    if isinstance(value, str) and _DD_MM_YYYY.match(value):
        try:
            return datetime.strptime(value, "%d-%m-%Y").date()
        except ValueError as exc:
            raise ValueError(f"Invalid date: {value}") from exc
    return value


class LineItemCreate(BaseModel):
    item_name: str = Field(..., min_length=1, max_length=255)
    required_quantity: Quantity
    unit_of_measure: str = Field(..., min_length=1, max_length=50)
    required_by_date: date
    delivery_location: str = Field(..., min_length=1, max_length=255)
    estimated_cost: UnitCost
    justification: str | None = None
    stock_available: StockLevel = 0

    @field_validator("required_by_date", mode="before")
    @classmethod
    def parse_dates(cls, value: Any) -> Any:
        return parse_required_by(value)


class LineItemUpdate(BaseModel):
    item_name: str | None = Field(None, min_length=1, max_length=255)
    required_quantity: Quantity | None = None
    unit_of_measure: str | None = Field(None, min_length=1, max_length=50)
    required_by_date: date | None = None
    delivery_location: str | None = Field(None, min_length=1, max_length=255)
    estimated_cost: UnitCost | None = None
    justification: str | None = None
    stock_available: StockLevel | None = None

    @field_validator("required_by_date", mode="before")
    @classmethod
    def parse_dates(cls, value: Any) -> Any:
        return parse_required_by(value)


class LineItemResponse(BaseModel):
    id: UUID
    purchase_request_id: UUID
    item_name: str
    required_quantity: int
    unit_of_measure: str
    required_by_date: date
    delivery_location: str
    estimated_cost: Decimal
    justification: str | None
    stock_available: int

    class Config:
        from_attributes = True
