"""Compliance requirement schemas."""

from datetime import date
from enum import Enum
from typing import List, Optional, Tuple
from pydantic import BaseModel, Field


class RequirementScope(str, Enum):
    FEDERAL = "federal"
    STATE = "state"
    INDUSTRY = "industry"


class DeadlineKind(str, Enum):
    FIXED = "fixed"  # One-off date
    ANNUAL = "annual"  # Same month/day every year
    QUARTERLY = "quarterly"  # Day of each listed month
    RELATIVE = "relative"  # N days after a triggering event


class ComplianceStatus(str, Enum):
    COMPLIANT = "compliant"
    NEEDS_ATTENTION = "needs_attention"
    NOT_COMPLIANT = "not_compliant"
    UNKNOWN = "unknown"


class DeadlineRule(BaseModel):
    """When a requirement falls due."""
    kind: DeadlineKind
    month: Optional[int] = None
    day: Optional[int] = None
    months: Tuple[int, ...] = ()
    on: Optional[date] = None
    days_after: Optional[int] = None
    trigger: Optional[str] = None  # e.g. "hire", "incident"

    class Config:
        use_enum_values = True
        frozen = True


class Applicability(BaseModel):
    """Filters deciding whether a requirement applies to a company."""
    min_employees: Optional[int] = None
    state: Optional[str] = None
    industry: Optional[str] = None

    class Config:
        frozen = True


class ComplianceRequirement(BaseModel):
    """A single filing or obligation an employer must meet."""
    id: str
    name: str
    description: str
    scope: RequirementScope
    requirements: Tuple[str, ...] = ()
    citations: Tuple[str, ...] = ()
    applicability: Applicability = Field(default_factory=Applicability)
    deadline: DeadlineRule
    penalty: Optional[str] = None

    class Config:
        use_enum_values = True
        frozen = True


class UpcomingDeadline(BaseModel):
    requirement_id: str
    name: str
    category: str
    deadline_date: date
    days_until_deadline: int


class ComplianceStatusResult(BaseModel):
    requirement_id: str
    status: ComplianceStatus
    next_deadline: Optional[date] = None
    last_filing: Optional[date] = None
    error: Optional[str] = None

    class Config:
        use_enum_values = True

