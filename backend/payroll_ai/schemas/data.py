"""Data analysis schemas."""

from typing import Any, Dict, List, Optional, Tuple
from pydantic import BaseModel, Field


class DataSource(BaseModel):
    """A dataset the data agent can analyse. Sample rows only."""
    id: str
    name: str
    type: str  # "payroll", "expenses", "hr"
    fields: Tuple[str, ...]
    sample_rows: Tuple[Dict[str, Any], ...] = ()
    time_field: Optional[str] = None
    value_field: Optional[str] = None

    class Config:
        frozen = True


class HistoricalPoint(BaseModel):
    period: str
    value: float


class ForecastPoint(BaseModel):
    period: str
    predicted_value: float
    lower_bound: float
    upper_bound: float


class ForecastResult(BaseModel):
    name: str
    forecast: List[ForecastPoint] = Field(default_factory=list)
    confidence_level: float = 0
    trend: str = "stable"  # increasing | decreasing | stable
    assumptions: List[str] = Field(default_factory=list)
    risk_factors: List[str] = Field(default_factory=list)


class VarianceLine(BaseModel):
    actual: float
    budget: float
    variance: float
    percent_variance: float
    is_favorable: bool
    significance: str  # high | medium | low


class VarianceAnalysis(BaseModel):
    variances: Dict[str, VarianceLine] = Field(default_factory=dict)
    total_actual: float = 0
    total_budget: float = 0
    total_variance: float = 0
    total_percent_variance: float = 0
    significant_variances: List[str] = Field(default_factory=list)
