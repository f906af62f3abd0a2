"""Compliance catalog and deadline arithmetic."""

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

import holidays

from ..schemas.compliance import (
    Applicability,
    ComplianceRequirement,
    ComplianceStatus,
    ComplianceStatusResult,
    DeadlineKind,
    DeadlineRule,
    RequirementScope,
    UpcomingDeadline,
)


@dataclass(frozen=True)
class ComplianceCatalog:
    federal: Tuple[ComplianceRequirement, ...]
    state: Dict[str, Tuple[ComplianceRequirement, ...]]
    industry: Dict[str, Tuple[ComplianceRequirement, ...]]

    def all(self) -> List[ComplianceRequirement]:
        result = list(self.federal)
        for reqs in self.state.values():
            result.extend(reqs)
        for reqs in self.industry.values():
            result.extend(reqs)
        return result

    def find(self, requirement_id: str) -> Optional[ComplianceRequirement]:
        for requirement in self.all():
            if requirement.id == requirement_id:
                return requirement
        return None


_QUARTERLY = DeadlineRule(kind=DeadlineKind.QUARTERLY, months=(1, 4, 7, 10), day=31)

_FEDERAL = (
    ComplianceRequirement(
        id="fed-941",
        name="Form 941 - Employer's Quarterly Federal Tax Return",
        description="Report income tax, Social Security and Medicare withheld from employee paychecks.",
        scope=RequirementScope.FEDERAL,
        requirements=(
            "File Form 941 each quarter",
            "Reconcile deposits against withholding",
        ),
        citations=("https://www.irs.gov/forms-pubs/about-form-941",),
        deadline=_QUARTERLY,
        penalty="Failure-to-file penalty of 5% of unpaid tax per month, up to 25%.",
    ),
    ComplianceRequirement(
        id="fed-940",
        name="Form 940 - Employer's Annual Federal Unemployment (FUTA) Tax Return",
        description="Report annual FUTA tax.",
        scope=RequirementScope.FEDERAL,
        requirements=("File Form 940 annually", "Deposit FUTA tax quarterly when liability exceeds $500"),
        citations=("https://www.irs.gov/forms-pubs/about-form-940",),
        deadline=DeadlineRule(kind=DeadlineKind.ANNUAL, month=1, day=31),
        penalty="Failure-to-file penalty of 5% of unpaid tax per month, up to 25%.",
    ),
    ComplianceRequirement(
        id="fed-w2",
        name="Form W-2 - Wage and Tax Statement",
        description="Furnish W-2s to employees and file Copy A with the SSA.",
        scope=RequirementScope.FEDERAL,
        requirements=("Furnish W-2 to each employee", "File Copy A with the Social Security Administration"),
        citations=("https://www.irs.gov/forms-pubs/about-form-w-2",),
        deadline=DeadlineRule(kind=DeadlineKind.ANNUAL, month=1, day=31),
        penalty="Per-form penalties from $60 to $310 depending on lateness.",
    ),
    ComplianceRequirement(
        id="fed-aca",
        name="ACA Employer Reporting (Forms 1094-C/1095-C)",
        description="Applicable large employers report offers of health coverage.",
        scope=RequirementScope.FEDERAL,
        requirements=("Offer affordable minimum essential coverage", "Furnish Form 1095-C to full-time employees"),
        citations=("https://www.irs.gov/affordable-care-act/employers",),
        applicability=Applicability(min_employees=50),
        deadline=DeadlineRule(kind=DeadlineKind.ANNUAL, month=2, day=28),
        penalty="Employer shared responsibility payments plus per-form reporting penalties.",
    ),
    ComplianceRequirement(
        id="fed-eeo1",
        name="EEO-1 Component 1 Report",
        description="Report workforce demographic data to the EEOC.",
        scope=RequirementScope.FEDERAL,
        requirements=("Collect voluntary self-identification data", "Submit the EEO-1 report"),
        citations=("https://www.eeoc.gov/employers/eeo-1-data-collection",),
        applicability=Applicability(min_employees=50),
        deadline=DeadlineRule(kind=DeadlineKind.ANNUAL, month=3, day=31),
        penalty="The EEOC may seek a court order compelling the filing.",
    ),
)

_STATE = {
    "CA": (
        ComplianceRequirement(
            id="ca-de9",
            name="DE 9 - Quarterly Contribution Return and Report of Wages",
            description="Report California UI, ETT, SDI and PIT withholding.",
            scope=RequirementScope.STATE,
            requirements=("File DE 9 and DE 9C each quarter",),
            citations=("https://edd.ca.gov/en/Payroll_Taxes/Forms_and_Publications",),
            applicability=Applicability(state="CA"),
            deadline=_QUARTERLY,
            penalty="15% of unpaid contributions plus interest.",
        ),
        ComplianceRequirement(
            id="ca-pay-data",
            name="California Pay Data Report",
            description="Employers with 100 or more employees report pay by job category, sex, race and ethnicity.",
            scope=RequirementScope.STATE,
            requirements=("Submit pay data report to the Civil Rights Department",),
            citations=("https://calcivilrights.ca.gov/paydatareporting/",),
            applicability=Applicability(state="CA", min_employees=100),
            deadline=DeadlineRule(kind=DeadlineKind.ANNUAL, month=5, day=10),
            penalty="Civil penalty up to $100 per employee, $200 for repeat failures.",
        ),
    ),
    "NY": (
        ComplianceRequirement(
            id="ny-nys45",
            name="NYS-45 - Quarterly Combined Withholding, Wage Reporting and UI Return",
            description="Report New York withholding, wages and unemployment insurance.",
            scope=RequirementScope.STATE,
            requirements=("File NYS-45 each quarter",),
            citations=("https://www.tax.ny.gov/forms/current-forms/nys/nys45i.htm",),
            applicability=Applicability(state="NY"),
            deadline=_QUARTERLY,
            penalty="Late filing penalties plus interest on unpaid amounts.",
        ),
    ),
    "TX": (
        ComplianceRequirement(
            id="tx-c3",
            name="Form C-3 - Employer's Quarterly Report",
            description="Report wages and pay Texas unemployment tax.",
            scope=RequirementScope.STATE,
            requirements=("File Form C-3 each quarter",),
            citations=("https://www.twc.texas.gov/businesses/unemployment-tax",),
            applicability=Applicability(state="TX"),
            deadline=_QUARTERLY,
            penalty="$15 late report penalty plus interest on late tax.",
        ),
    ),
}

_INDUSTRY = {
    "healthcare": (
        ComplianceRequirement(
            id="hipaa-training",
            name="HIPAA Workforce Training",
            description="Train new workforce members on privacy and security policies.",
            scope=RequirementScope.INDUSTRY,
            requirements=("Train each new hire within a reasonable period", "Document training completion"),
            citations=("https://www.hhs.gov/hipaa/for-professionals/training/index.html",),
            applicability=Applicability(industry="healthcare"),
            deadline=DeadlineRule(kind=DeadlineKind.RELATIVE, trigger="hire"),
            penalty="Civil monetary penalties per violation, tiered by culpability.",
        ),
    ),
    "construction": (
        ComplianceRequirement(
            id="osha-300a",
            name="OSHA Form 300A - Summary of Work-Related Injuries and Illnesses",
            description="Post the annual injury summary at the workplace.",
            scope=RequirementScope.INDUSTRY,
            requirements=("Post Form 300A from February 1 to April 30",),
            citations=("https://www.osha.gov/recordkeeping",),
            applicability=Applicability(industry="construction", min_employees=10),
            deadline=DeadlineRule(kind=DeadlineKind.ANNUAL, month=2, day=1),
            penalty="OSHA citation penalties per violation.",
        ),
    ),
    "financial": (
        ComplianceRequirement(
            id="finra-u4",
            name="FINRA Form U4 Registration",
            description="Register associated persons with FINRA.",
            scope=RequirementScope.INDUSTRY,
            requirements=("File Form U4 for each registered representative",),
            citations=("https://www.finra.org/registration-exams-ce/registration",),
            applicability=Applicability(industry="financial"),
            deadline=DeadlineRule(kind=DeadlineKind.RELATIVE, days_after=30, trigger="hire"),
            penalty="FINRA disciplinary action and fines.",
        ),
    ),
}

DEFAULT_CATALOG = ComplianceCatalog(federal=_FEDERAL, state=_STATE, industry=_INDUSTRY)


def _applies(requirement: ComplianceRequirement, employee_count: Optional[int]) -> bool:
    threshold = requirement.applicability.min_employees
    if threshold is None or employee_count is None:
        return True
    return employee_count >= threshold


def get_compliance_requirements(
    catalog: ComplianceCatalog,
    state: Optional[str] = None,
    employee_count: Optional[int] = None,
    industry: Optional[str] = None,
) -> List[ComplianceRequirement]:
    """Federal requirements plus those for the state and industry, filtered by headcount."""
    candidates = list(catalog.federal)
    if state:
        candidates.extend(catalog.state.get(state.upper(), ()))
    if industry:
        candidates.extend(catalog.industry.get(industry.lower(), ()))
    return [req for req in candidates if _applies(req, employee_count)]


def categorize_requirement(requirement: ComplianceRequirement) -> str:
    """Coarse category used for grouping and filtering deadlines."""
    text = f"{requirement.id} {requirement.name}".lower()
    if any(k in text for k in ("941", "940", "w-2", "w2", "de 9", "de9", "nys-45", "nys45", "c-3", "c3")):
        return "tax"
    if any(k in text for k in ("aca", "hipaa")):
        return "benefits"
    if any(k in text for k in ("eeo", "pay data", "pay-data")):
        return "reporting"
    if "osha" in text:
        return "safety"
    return "general"


def _clamped_date(year: int, month: int, day: int) -> date:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def next_business_day(target_date: date, country_holidays=None) -> date:
    """Roll a due date forward past weekends and US federal holidays."""
    if country_holidays is None:
        country_holidays = holidays.country_holidays("US", years=[target_date.year, target_date.year + 1])

    # Walk forward if weekend or holiday
    while True:
        is_weekend = target_date.weekday() >= 5
        is_holiday = target_date in country_holidays
        if not is_weekend and not is_holiday:
            return target_date
        target_date += timedelta(days=1)


def _due_dates(deadline: DeadlineRule, years: Sequence[int]) -> List[date]:
    """Unadjusted due dates of a recurring deadline in the given years."""
    if deadline.kind == DeadlineKind.ANNUAL:
        return [_clamped_date(year, deadline.month, deadline.day) for year in years]
    if deadline.kind == DeadlineKind.QUARTERLY:
        return [_clamped_date(year, month, deadline.day) for year in years for month in deadline.months]
    # Relative deadlines depend on an event we don't know about
    return []


def calculate_next_deadline(
    requirement: ComplianceRequirement,
    today: date,
    country_holidays=None,
) -> Optional[date]:
    """Next due date on or after ``today``, adjusted to a business day.

    Each date is rolled before it is compared with ``today``, so a Saturday
    due date still counts on the following Monday.
    """
    if country_holidays is None:
        country_holidays = holidays.country_holidays("US", years=[today.year - 1, today.year, today.year + 1, today.year + 2])

    deadline = requirement.deadline
    if deadline.kind == DeadlineKind.FIXED:
        if deadline.on is None:
            return None
        rolled = next_business_day(deadline.on, country_holidays)
        return rolled if rolled >= today else None

    # Last year's dates can roll into this year (Dec 31 on a Saturday)
    years = (today.year - 1, today.year, today.year + 1)
    rolled_dates = [next_business_day(d, country_holidays) for d in _due_dates(deadline, years)]
    upcoming = [d for d in rolled_dates if d >= today]
    return min(upcoming) if upcoming else None


def get_upcoming_deadlines(
    catalog: ComplianceCatalog,
    today: date,
    state: Optional[str] = None,
    days_ahead: int = 30,
    category: Optional[str] = None,
    industry: Optional[str] = None,
    employee_count: Optional[int] = None,
) -> List[UpcomingDeadline]:
    """Deadlines falling within ``days_ahead`` days, soonest first."""
    if days_ahead < 0:
        raise ValueError("days_ahead must be non-negative")

    cutoff = today + timedelta(days=days_ahead)
    country_holidays = holidays.country_holidays("US", years=[today.year - 1, today.year, today.year + 1, today.year + 2])

    upcoming = []
    for requirement in get_compliance_requirements(catalog, state, employee_count, industry):
        req_category = categorize_requirement(requirement)
        if category and req_category != category:
            continue

        deadline_date = calculate_next_deadline(requirement, today, country_holidays)
        if deadline_date is None or deadline_date > cutoff:
            continue

        upcoming.append(UpcomingDeadline(
            requirement_id=requirement.id,
            name=requirement.name,
            category=req_category,
            deadline_date=deadline_date,
            days_until_deadline=(deadline_date - today).days,
        ))

    upcoming.sort(key=lambda d: (d.days_until_deadline, d.requirement_id))
    return upcoming


def _quarter(d: date) -> int:
    return (d.month - 1) // 3


def check_compliance_status(
    requirement: ComplianceRequirement,
    last_filing: Optional[date],
    today: date,
) -> ComplianceStatusResult:
    """Compare the most recent filing against the requirement's cadence."""
    next_deadline = calculate_next_deadline(requirement, today)

    if last_filing is None:
        status = ComplianceStatus.NOT_COMPLIANT
    elif requirement.deadline.kind == DeadlineKind.QUARTERLY:
        same_quarter = last_filing.year == today.year and _quarter(last_filing) == _quarter(today)
        status = ComplianceStatus.COMPLIANT if same_quarter else ComplianceStatus.NEEDS_ATTENTION
    elif requirement.deadline.kind == DeadlineKind.RELATIVE:
        status = ComplianceStatus.COMPLIANT
    else:
        same_year = last_filing.year == today.year
        status = ComplianceStatus.COMPLIANT if same_year else ComplianceStatus.NEEDS_ATTENTION

    return ComplianceStatusResult(
        requirement_id=requirement.id,
        status=status,
        next_deadline=next_deadline,
        last_filing=last_filing,
    )
