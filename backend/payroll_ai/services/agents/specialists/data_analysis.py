"""Data analysis agent: statistics, forecasts and budget variance."""

import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ....schemas.agents.intent import AgentType, Intent
from ....schemas.data import DataSource
from ...data_analysis import (
    DEFAULT_DATA_SOURCES,
    analyze_variance,
    compute_basic_statistics,
    find_data_source,
    generate_forecast,
    history_from_source,
)
from ..base import BaseAgent
from ..intents import DATA_RULES, IntentClassifier
from ..memory import ConversationMemory

logger = logging.getLogger(__name__)

DATA_SYSTEM_PROMPT = """You are a payroll data analyst. You summarise payroll and expense
data, spot trends, forecast costs and compare actuals with budget. Quote the numbers you
rely on, say how reliable a forecast is, and keep recommendations practical for a small business."""

_PERIODS_RE = re.compile(r"\b(?:next|coming)\s+(\d{1,2})\s+(?:months?|quarters?|periods?)\b", re.IGNORECASE)
DEFAULT_FORECAST_PERIODS = 3


def extract_forecast_periods(text: str, default: int = DEFAULT_FORECAST_PERIODS) -> int:
    match = _PERIODS_RE.search(text or "")
    return int(match.group(1)) if match else default


def budget_by_category(source: DataSource) -> Tuple[Dict[str, float], Dict[str, float]]:
    """Actual and budget totals per category from a ledger with a budget column."""
    actual: Dict[str, float] = {}
    budget: Dict[str, float] = {}
    for row in source.sample_rows:
        key = str(row.get("category", "total"))
        actual[key] = actual.get(key, 0.0) + float(row["amount"])
        budget[key] = budget.get(key, 0.0) + float(row["budget"])
    return actual, budget


class DataAnalysisAgent(BaseAgent):
    """Runs descriptive statistics and simple forecasts over the company's data sources."""

    def __init__(self, sources: Sequence[DataSource] = DEFAULT_DATA_SOURCES, **kwargs):
        super().__init__(**kwargs)
        self.sources = tuple(sources)
        self._classifier = IntentClassifier(DATA_RULES)

    @property
    def agent_type(self) -> AgentType:
        return AgentType.DATA

    @property
    def name(self) -> str:
        return "Data Analysis Agent"

    @property
    def description(self) -> str:
        return "Analyzes payroll and expense data, forecasts costs and explains variances"

    @property
    def capabilities(self) -> List[str]:
        return ["descriptive statistics", "trend forecasting", "budget variance analysis"]

    @property
    def system_prompt(self) -> str:
        return DATA_SYSTEM_PROMPT

    @property
    def classifier(self) -> IntentClassifier:
        return self._classifier

    def _source(self, query: str, require=None) -> DataSource:
        """Source named in the query, else the first one that satisfies ``require``."""
        source = find_data_source(query, self.sources)
        if source is not None and (require is None or require(source)):
            return source
        for candidate in self.sources:
            if require is None or require(candidate):
                return candidate
        raise ValueError("No data source available for this analysis")

    async def execute_tool(
        self,
        intent: Intent,
        text: str,
        query: str,
        memory: Optional[ConversationMemory] = None,
    ) -> Tuple[Dict[str, Any], Any]:
        if intent == Intent.LIST_DATA_SOURCES:
            return {}, [
                {"id": s.id, "name": s.name, "type": s.type, "fields": list(s.fields)}
                for s in self.sources
            ]

        if intent == Intent.COMPUTE_STATISTICS:
            source = self._source(query)
            return {"source": source.id}, compute_basic_statistics([dict(r) for r in source.sample_rows])

        if intent == Intent.GENERATE_FORECAST:
            source = self._source(query, require=lambda s: bool(s.time_field and s.value_field))
            periods = extract_forecast_periods(query)
            history = history_from_source(source)
            return (
                {"source": source.id, "periods": periods},
                generate_forecast(history, periods, name=source.value_field),
            )

        if intent == Intent.ANALYZE_VARIANCE:
            source = self._source(query, require=lambda s: "budget" in s.fields)
            actual, budget = budget_by_category(source)
            logger.info(f"[DataAnalysisAgent] Variance over {len(actual)} categories from {source.id}")
            return {"source": source.id}, analyze_variance(actual, budget)

        raise ValueError(f"Data analysis agent has no tool for {intent}")
