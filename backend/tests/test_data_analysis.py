"""Statistics, forecasting, variance analysis and the data agent."""

import asyncio

import pytest

from payroll_ai.schemas.agents.intent import Intent
from payroll_ai.schemas.data import HistoricalPoint
from payroll_ai.services.agents.specialists import DataAnalysisAgent
from payroll_ai.services.agents.specialists.data_analysis import budget_by_category, extract_forecast_periods
from payroll_ai.services.data_analysis import (
    DEFAULT_DATA_SOURCES,
    analyze_variance,
    compute_basic_statistics,
    find_data_source,
    generate_forecast,
    history_from_source,
    next_period_label,
)


def _history(values, start_month=1):
    return [HistoricalPoint(period=f"2024-{start_month + i:02d}-01", value=v) for i, v in enumerate(values)]


# =============================================================================
# STATISTICS
# =============================================================================

class TestStatistics:

    def test_empty_input(self):
        assert compute_basic_statistics([]) == {}
        assert compute_basic_statistics({}) == {}

    def test_numeric_array(self):
        stats = compute_basic_statistics([4, 1, 3, 2])
        assert stats["type"] == "numeric_array"
        assert stats["mean"] == pytest.approx(2.5)
        assert stats["median"] == pytest.approx(2.5)
        assert stats["min"] == 1 and stats["max"] == 4
        assert stats["p25"] == 2 and stats["p75"] == 4
        assert stats["sum"] == 10

    def test_table_with_missing_values(self):
        rows = [{"a": 1, "b": "x"}, {"a": 3, "b": "y"}, {"a": None, "b": "x"}]
        stats = compute_basic_statistics(rows)

        assert stats["type"] == "table"
        assert stats["row_count"] == 3
        assert stats["columns"]["a"]["type"] == "numeric"
        assert stats["columns"]["a"]["missing"] == 1
        assert stats["columns"]["a"]["mean"] == pytest.approx(2.0)
        b = stats["columns"]["b"]
        assert b["type"] == "categorical"
        assert b["most_common"]["value"] == "x"
        assert b["most_common"]["percentage"] == pytest.approx(200 / 3)
        assert b["is_binary"] is True

    def test_numeric_strings_count_as_numbers(self):
        assert compute_basic_statistics(["1.5", "2.5"])["type"] == "numeric_array"

    def test_mapping(self):
        stats = compute_basic_statistics({"q1": 10, "q2": 20})
        assert stats["type"] == "key_value_object"
        assert stats["keys"] == ["q1", "q2"]
        assert stats["values"]["mean"] == pytest.approx(15)


# =============================================================================
# FORECAST
# =============================================================================

class TestForecast:

    def test_linear_series(self):
        result = generate_forecast(_history([100, 110, 120, 130]), periods=2, name="payroll")

        assert [p.period for p in result.forecast] == ["2024-05-01", "2024-06-01"]
        assert [p.predicted_value for p in result.forecast] == [pytest.approx(140), pytest.approx(150)]
        assert result.forecast[0].lower_bound == pytest.approx(140)
        assert result.confidence_level == pytest.approx(1.0)
        assert result.trend == "increasing"
        assert any("Short history" in r for r in result.risk_factors)

    def test_flat_series_is_stable(self):
        result = generate_forecast(_history([50, 50, 50]), periods=1)
        assert result.trend == "stable"
        assert result.forecast[0].predicted_value == pytest.approx(50)

    def test_decreasing_series(self):
        assert generate_forecast(_history([300, 250, 200, 150]), periods=1).trend == "decreasing"

    def test_needs_three_points(self):
        with pytest.raises(ValueError):
            generate_forecast(_history([1, 2]), periods=3)

    def test_needs_positive_horizon(self):
        with pytest.raises(ValueError):
            generate_forecast(_history([1, 2, 3]), periods=0)

    @pytest.mark.parametrize("label,expected", [
        ("2024-01-31", "2024-02-29"),
        ("2024-12-01", "2025-01-01"),
        ("Q4 2024", "Q1 2025"),
        ("2023", "2024"),
        ("week A", "Forecast 2"),
    ])
    def test_next_period_label(self, label, expected):
        assert next_period_label(label, 2) == expected


# =============================================================================
# VARIANCE
# =============================================================================

class TestVariance:

    def test_expense_and_revenue_lines(self):
        actual = {"travel": 22200, "software": 15400, "revenue": 85000, "misc": 50}
        budget = {"travel": 22000, "software": 16000, "revenue": 100000}
        result = analyze_variance(actual, budget)

        assert set(result.variances) == {"travel", "software", "revenue"}
        travel = result.variances["travel"]
        assert travel.variance == pytest.approx(200)
        assert travel.is_favorable is False
        assert travel.significance == "low"
        assert result.variances["software"].is_favorable is True
        revenue = result.variances["revenue"]
        assert revenue.percent_variance == pytest.approx(-15.0)
        assert revenue.is_favorable is False
        assert result.significant_variances == ["revenue: -15.0% (unfavorable)"]
        assert result.total_actual == pytest.approx(122600)
        assert result.total_budget == pytest.approx(138000)

    def test_zero_budget(self):
        line = analyze_variance({"new": 100}, {"new": 0}).variances["new"]
        assert line.percent_variance == 0.0
        assert line.significance == "low"


# =============================================================================
# DATA SOURCES AND AGENT
# =============================================================================

class TestDataAgent:

    def test_find_source(self):
        assert find_data_source("Show the expense ledger").id == "expense_ledger"
        assert find_data_source("payroll trends").id == "payroll_history"
        assert find_data_source("weather") is None

    def test_history_from_source(self):
        history = history_from_source(DEFAULT_DATA_SOURCES[0])
        assert len(history) == 6
        assert history[0].value == 182000

    def test_budget_by_category(self):
        actual, budget = budget_by_category(DEFAULT_DATA_SOURCES[1])
        assert actual == {"travel": 22200.0, "software": 15400.0}
        assert budget == {"travel": 22000.0, "software": 16000.0}

    def test_forecast_periods(self):
        assert extract_forecast_periods("forecast the next 6 months") == 6
        assert extract_forecast_periods("forecast payroll") == 3

    def test_forecast_tool(self, mock_store):
        agent = DataAnalysisAgent(store=mock_store)
        query = "Forecast payroll for the next 4 months"
        arguments, result = asyncio.run(agent.execute_tool(Intent.GENERATE_FORECAST, query, query))

        assert arguments == {"source": "payroll_history", "periods": 4}
        assert result.name == "gross_payroll"
        assert len(result.forecast) == 4
        assert result.forecast[0].period == "2024-07-01"
        assert result.trend == "increasing"

    def test_forecast_skips_sources_without_series(self, mock_store):
        agent = DataAnalysisAgent(store=mock_store)
        query = "forecast headcount"
        arguments, _ = asyncio.run(agent.execute_tool(Intent.GENERATE_FORECAST, query, query))
        assert arguments["source"] == "payroll_history"

    def test_variance_tool(self, mock_store):
        agent = DataAnalysisAgent(store=mock_store)
        query = "variance against budget"
        arguments, result = asyncio.run(agent.execute_tool(Intent.ANALYZE_VARIANCE, query, query))
        assert arguments == {"source": "expense_ledger"}
        assert result.total_actual == pytest.approx(37600)

    def test_list_and_statistics_tools(self, mock_store):
        agent = DataAnalysisAgent(store=mock_store)
        _, sources = asyncio.run(agent.execute_tool(Intent.LIST_DATA_SOURCES, "", "list data sources"))
        assert [s["id"] for s in sources] == ["payroll_history", "expense_ledger", "headcount"]

        query = "summarize the headcount data"
        arguments, stats = asyncio.run(agent.execute_tool(Intent.COMPUTE_STATISTICS, query, query))
        assert arguments == {"source": "headcount"}
        assert stats["row_count"] == 4
        assert stats["columns"]["employees"]["sum"] == 27
