"""Specialist agents."""

from typing import List, Optional

from ...storage import PayrollStore
from ..base import AgentConfig, BaseAgent
from .compliance import ComplianceAgent
from .data_analysis import DataAnalysisAgent
from .expense import ExpenseAgent
from .reasoning import ReasoningAgent
from .research import ResearchAgent
from .tax import TaxAgent


def create_default_agents(
    store: Optional[PayrollStore] = None,
    config: Optional[AgentConfig] = None,
) -> List[BaseAgent]:
    """One instance of each specialist, sharing a store and config."""
    return [
        TaxAgent(store=store, config=config),
        ExpenseAgent(store=store, config=config),
        ComplianceAgent(store=store, config=config),
        DataAnalysisAgent(store=store, config=config),
        ResearchAgent(store=store, config=config),
        ReasoningAgent(store=store, config=config),
    ]


__all__ = [
    "ComplianceAgent",
    "DataAnalysisAgent",
    "ExpenseAgent",
    "ReasoningAgent",
    "ResearchAgent",
    "TaxAgent",
    "create_default_agents",
]
