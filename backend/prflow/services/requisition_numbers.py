"""PRFlow — Department-scoped requisition numbers, e.g. IT-2026-0007."""
import re
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from prflow.models.master import Department
from prflow.models.purchase_request import RequisitionCounter

_NON_ALNUM = re.compile(r"[^A-Z0-9]")


class RequisitionNumberGenerator:
    """Issues <DEPT>-<YYYY>-<NNNN> numbers from a per-department, per-year counter."""

    CODE_MAX_LENGTH = 6

    @staticmethod
    async def department_code(db: AsyncSession, department: str) -> str:
        """Configured department code, else the department name squeezed to uppercase alphanumerics."""
        result = await db.execute(select(Department.code).where(Department.name == department))
        code = result.scalar_one_or_none()
        source = code or department
        squeezed = _NON_ALNUM.sub("", source.upper())[: RequisitionNumberGenerator.CODE_MAX_LENGTH]
        return squeezed or "GEN"

    @staticmethod
    async def next_number(db: AsyncSession, department: str, on: date | None = None) -> str:
        year = (on or date.today()).year
        code = await RequisitionNumberGenerator.department_code(db, department)

        result = await db.execute(
            select(RequisitionCounter)
            .where(RequisitionCounter.department_code == code, RequisitionCounter.year == year)
            .with_for_update()
        )
        counter = result.scalar_one_or_none()
        if counter is None:
            counter = RequisitionCounter(department_code=code, year=year, last_value=0)
            db.add(counter)
        counter.last_value += 1
        await db.flush()
        return f"{code}-{year}-{counter.last_value:04d}"
