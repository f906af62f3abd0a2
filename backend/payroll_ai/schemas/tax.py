"""Tax calculation schemas."""

from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class FilingStatus(str, Enum):
    """Federal filing status."""
    SINGLE = "single"
    MARRIED_FILING_JOINTLY = "married_filing_jointly"
    MARRIED_FILING_SEPARATELY = "married_filing_separately"
    HEAD_OF_HOUSEHOLD = "head_of_household"


class PayFrequency(str, Enum):
    """How often an employee is paid."""
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    SEMIMONTHLY = "semimonthly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUALLY = "annually"


class PayrollTaxRequest(BaseModel):
    """Input for a single-paycheck tax calculation."""
    gross_pay: float = Field(..., ge=0)
    pay_frequency: PayFrequency = PayFrequency.BIWEEKLY
    filing_status: FilingStatus = FilingStatus.SINGLE
    state: str = "CA"
    allowances: int = Field(0, ge=0)
    ytd_earnings: float = Field(0, ge=0)  # Earnings before this paycheck

    class Config:
        use_enum_values = True


class FicaBreakdown(BaseModel):
    """Social Security and Medicare for one paycheck."""
    social_security_tax: float
    medicare_tax: float
    additional_medicare_tax: float = 0  # Already included in medicare_tax


class AnnualProjection(BaseModel):
    """Annualized figures for a paycheck repeated over a full year."""
    gross_income: float
    federal_income_tax: float
    state_income_tax: float
    fica_taxes: float
    net_income: float


class PayrollTaxResult(BaseModel):
    """Per-paycheck tax breakdown."""
    gross_pay: float
    federal_income_tax: float
    state_income_tax: float
    social_security_tax: float
    medicare_tax: float
    total_taxes: float
    net_pay: float
    pay_frequency: str
    filing_status: str
    state: str
    annual_projection: AnnualProjection


class TaxRatesResponse(BaseModel):
    """Published rates for one state plus federal FICA."""
    state: str
    year: int
    has_income_tax: bool
    rates: List[Dict[str, Any]] = Field(default_factory=list)
    flat_rate: Optional[float] = None
    fica_rates: Dict[str, float] = Field(default_factory=dict)
