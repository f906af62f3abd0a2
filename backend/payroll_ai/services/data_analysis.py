"""Descriptive statistics, trend forecasting and variance analysis."""

import math
import re
import statistics
from collections import Counter
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..schemas.data import (
    DataSource,
    ForecastPoint,
    ForecastResult,
    HistoricalPoint,
    VarianceAnalysis,
    VarianceLine,
)

MIN_FORECAST_POINTS = 3
Z_95 = 1.96


DEFAULT_DATA_SOURCES: Tuple[DataSource, ...] = (
    DataSource(
        id="payroll_history",
        name="Payroll History",
        type="payroll",
        fields=("period", "gross_payroll", "employer_taxes", "headcount"),
        sample_rows=(
            {"period": "2024-01-01", "gross_payroll": 182000, "employer_taxes": 14100, "headcount": 24},
            {"period": "2024-02-01", "gross_payroll": 184500, "employer_taxes": 14250, "headcount": 24},
            {"period": "2024-03-01", "gross_payroll": 191200, "employer_taxes": 14800, "headcount": 25},
            {"period": "2024-04-01", "gross_payroll": 193800, "employer_taxes": 14950, "headcount": 25},
            {"period": "2024-05-01", "gross_payroll": 199400, "employer_taxes": 15400, "headcount": 26},
            {"period": "2024-06-01", "gross_payroll": 204100, "employer_taxes": 15700, "headcount": 27},
        ),
        time_field="period",
        value_field="gross_payroll",
    ),
    DataSource(
        id="expense_ledger",
        name="Expense Ledger",
        type="expenses",
        fields=("period", "category", "amount", "budget"),
        sample_rows=(
            {"period": "Q1 2024", "category": "travel", "amount": 12400, "budget": 11000},
            {"period": "Q2 2024", "category": "travel", "amount": 9800, "budget": 11000},
            {"period": "Q3 2024", "category": "software", "amount": 7300, "budget": 8000},
            {"period": "Q4 2024", "category": "software", "amount": 8100, "budget": 8000},
        ),
        time_field="period",
        value_field="amount",
    ),
    DataSource(
        id="headcount",
        name="Headcount by Department",
        type="hr",
        fields=("department", "employees", "avg_salary", "remote"),
        sample_rows=(
            {"department": "engineering", "employees": 12, "avg_salary": 142000, "remote": "yes"},
            {"department": "sales", "employees": 7, "avg_salary": 98000, "remote": "no"},
            {"department": "operations", "employees": 5, "avg_salary": 76000, "remote": "no"},
            {"department": "finance", "employees": 3, "avg_salary": 104000, "remote": "yes"},
        ),
    ),
)


def find_data_source(text: str, sources: Sequence[DataSource] = DEFAULT_DATA_SOURCES) -> Optional[DataSource]:
    """Pick the data source a free-text request refers to."""
    lowered = text.lower()
    for source in sources:
        if source.id in lowered or source.name.lower() in lowered:
            return source
    for source in sources:
        if source.type in lowered or source.id.split("_")[0] in lowered:
            return source
    return None


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return not math.isnan(value)
    if isinstance(value, str):
        try:
            float(value)
            return True
        except ValueError:
            return False
    return False


def _percentile(sorted_values: List[float], p: float) -> float:
    index = min(len(sorted_values) - 1, int(math.floor(len(sorted_values) * p)))
    return sorted_values[index]


def _numeric_stats(values: List[float], total: int) -> Dict[str, Any]:
    ordered = sorted(values)
    return {
        "type": "numeric",
        "count": len(values),
        "missing": total - len(values),
        "min": ordered[0],
        "max": ordered[-1],
        "mean": statistics.fmean(values),
        "median": statistics.median(ordered),
        "sum": math.fsum(values),
        "p25": _percentile(ordered, 0.25),
        "p75": _percentile(ordered, 0.75),
    }


def _categorical_stats(values: List[Any], total: int) -> Dict[str, Any]:
    counts = Counter(str(v) for v in values)
    most_common = None
    if counts:
        value, count = counts.most_common(1)[0]
        most_common = {
            "value": value,
            "count": count,
            "percentage": count / len(values) * 100,
        }
    return {
        "type": "categorical",
        "count": len(values),
        "missing": total - len(values),
        "unique_count": len(counts),
        "most_common": most_common,
        "value_counts": dict(counts),
        "is_binary": len(counts) == 2,
    }


def _column_stats(values: List[Any], total: int) -> Dict[str, Any]:
    present = [v for v in values if v is not None and v != ""]
    if present and all(_is_number(v) for v in present):
        return _numeric_stats([float(v) for v in present], total)
    return _categorical_stats(present, total)


def compute_basic_statistics(data: Any) -> Dict[str, Any]:
    """Summarise rows, a list of scalars, or a mapping.

    Returns an empty dict for empty input.
    """
    if not data:
        return {}

    if isinstance(data, Mapping):
        return {
            "type": "key_value_object",
            "key_count": len(data),
            "keys": list(data.keys()),
            "values": _column_stats(list(data.values()), len(data)),
        }

    rows = list(data)
    if all(isinstance(row, Mapping) for row in rows):
        columns: List[str] = []
        for row in rows:
            for key in row.keys():
                if key not in columns:
                    columns.append(key)
        return {
            "type": "table",
            "row_count": len(rows),
            "columns": {col: _column_stats([row.get(col) for row in rows], len(rows)) for col in columns},
        }

    stats = _column_stats(rows, len(rows))
    stats["type"] = f"{stats['type']}_array"
    return stats


_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_QUARTER_RE = re.compile(r"^Q([1-4]) (\d{4})$")


def next_period_label(label: str, index: int) -> str:
    """Label that follows ``label``. ``index`` numbers labels we can't continue."""
    match = _DATE_RE.match(label)
    if match:
        year, month, day = (int(g) for g in match.groups())
        month += 1
        if month > 12:
            month, year = 1, year + 1
        # Clamp day to the shorter month
        for candidate_day in (day, 30, 29, 28):
            try:
                return date(year, month, candidate_day).isoformat()
            except ValueError:
                continue

    match = _QUARTER_RE.match(label)
    if match:
        quarter, year = int(match.group(1)), int(match.group(2))
        quarter += 1
        if quarter > 4:
            quarter, year = 1, year + 1
        return f"Q{quarter} {year}"

    if label.isdigit():
        return str(int(label) + 1)

    return f"Forecast {index}"


def _linear_fit(values: List[float]) -> Tuple[float, float]:
    n = len(values)
    xs = list(range(n))
    x_mean = (n - 1) / 2
    y_mean = statistics.fmean(values)
    denom = sum((x - x_mean) ** 2 for x in xs)
    slope = sum((x - x_mean) * (y - y_mean) for x, y in zip(xs, values)) / denom
    return slope, y_mean - slope * x_mean


def generate_forecast(
    history: Sequence[HistoricalPoint],
    periods: int,
    name: str = "payroll_expenses",
) -> ForecastResult:
    """Project a series forward with a least-squares trend line.

    Raises:
        ValueError: With fewer than three historical points or a non-positive horizon
    """
    if len(history) < MIN_FORECAST_POINTS:
        raise ValueError("Insufficient historical data for forecasting. Need at least 3 data points.")
    if periods < 1:
        raise ValueError("periods must be at least 1")

    values = [p.value for p in history]
    slope, intercept = _linear_fit(values)

    fitted = [intercept + slope * x for x in range(len(values))]
    residuals = [y - f for y, f in zip(values, fitted)]
    resid_std = math.sqrt(sum(r * r for r in residuals) / max(1, len(values) - 2))

    ss_tot = sum((y - statistics.fmean(values)) ** 2 for y in values)
    r_squared = 1.0 if ss_tot == 0 else max(0.0, 1 - sum(r * r for r in residuals) / ss_tot)

    forecast = []
    label = history[-1].period
    for i in range(1, periods + 1):
        label = next_period_label(label, i)
        predicted = intercept + slope * (len(values) - 1 + i)
        margin = Z_95 * resid_std
        forecast.append(ForecastPoint(
            period=label,
            predicted_value=round(predicted, 2),
            lower_bound=round(predicted - margin, 2),
            upper_bound=round(predicted + margin, 2),
        ))

    mean_value = statistics.fmean(values)
    relative_slope = slope / abs(mean_value) if mean_value else slope
    if relative_slope > 0.005:
        trend = "increasing"
    elif relative_slope < -0.005:
        trend = "decreasing"
    else:
        trend = "stable"

    risk_factors = ["Linear trend cannot anticipate seasonality or one-off events"]
    if len(values) < 6:
        risk_factors.append("Short history; bounds are wide relative to the data")

    return ForecastResult(
        name=name,
        forecast=forecast,
        confidence_level=round(r_squared, 3),
        trend=trend,
        assumptions=[
            f"Historical {trend} trend continues at {slope:,.2f} per period",
            "Residual variation stays similar to the historical period",
        ],
        risk_factors=risk_factors,
    )


def _significance(percent: float) -> str:
    if abs(percent) > 10:
        return "high"
    if abs(percent) > 5:
        return "medium"
    return "low"


def _is_revenue(key: str) -> bool:
    lowered = key.lower()
    return "revenue" in lowered or "income" in lowered


def analyze_variance(actual: Mapping[str, float], budget: Mapping[str, float]) -> VarianceAnalysis:
    """Actual vs budget for every key present in both mappings."""
    lines: Dict[str, VarianceLine] = {}
    for key, actual_value in actual.items():
        if key not in budget:
            continue
        budget_value = budget[key]
        variance = actual_value - budget_value
        percent = variance / abs(budget_value) * 100 if budget_value else 0.0
        favorable = variance > 0 if _is_revenue(key) else variance < 0
        lines[key] = VarianceLine(
            actual=actual_value,
            budget=budget_value,
            variance=round(variance, 2),
            percent_variance=round(percent, 2),
            is_favorable=favorable,
            significance=_significance(percent),
        )

    total_actual = math.fsum(line.actual for line in lines.values())
    total_budget = math.fsum(line.budget for line in lines.values())
    total_variance = total_actual - total_budget

    return VarianceAnalysis(
        variances=lines,
        total_actual=round(total_actual, 2),
        total_budget=round(total_budget, 2),
        total_variance=round(total_variance, 2),
        total_percent_variance=round(total_variance / abs(total_budget) * 100, 2) if total_budget else 0.0,
        significant_variances=[
            f"{key}: {line.percent_variance:+.1f}% ({'favorable' if line.is_favorable else 'unfavorable'})"
            for key, line in lines.items()
            if line.significance == "high"
        ],
    )


def history_from_source(source: DataSource) -> List[HistoricalPoint]:
    """Time series for a data source, summed per period in first-seen order."""
    if not source.time_field or not source.value_field:
        return []
    totals: Dict[str, float] = {}
    for row in source.sample_rows:
        period = str(row[source.time_field])
        totals[period] = totals.get(period, 0.0) + float(row[source.value_field])
    return [HistoricalPoint(period=p, value=v) for p, v in totals.items()]
