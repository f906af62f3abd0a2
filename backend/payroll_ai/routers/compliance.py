from datetime import date
from fastapi import APIRouter, HTTPException
from typing import List, Optional

from ..schemas.compliance import ComplianceRequirement, UpcomingDeadline
from ..services.compliance import DEFAULT_CATALOG, get_compliance_requirements, get_upcoming_deadlines

router = APIRouter(prefix="/compliance", tags=["Compliance"])


@router.get("/requirements", response_model=List[ComplianceRequirement])
async def requirements(
    state: Optional[str] = None,
    employee_count: Optional[int] = None,
    industry: Optional[str] = None,
):
    """Federal requirements plus state and industry ones, filtered by headcount."""
    return get_compliance_requirements(DEFAULT_CATALOG, state, employee_count, industry)


@router.get("/deadlines", response_model=List[UpcomingDeadline])
async def deadlines(
    state: Optional[str] = None,
    days_ahead: int = 30,
    category: Optional[str] = None,
    industry: Optional[str] = None,
    employee_count: Optional[int] = None,
    as_of: Optional[date] = None,
):
    """
    Deadlines due within `days_ahead` days of `as_of` (default today), soonest first.

    Due dates that fall on a weekend or US federal holiday move to the next business day.
    Event-driven requirements (e.g. "within 30 days of hire") have no calendar date and
    are not listed.
    """
    try:
        return get_upcoming_deadlines(
            DEFAULT_CATALOG,
            as_of or date.today(),
            state=state,
            days_ahead=days_ahead,
            category=category,
            industry=industry,
            employee_count=employee_count,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
