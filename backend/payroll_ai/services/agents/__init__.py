"""Multi-agent payroll assistant.

The LLM writes the prose; Python agents do the arithmetic and lookups.

Main entry points:
    get_orchestrator().process_query(query, agent_type) -> AgentResponse
    get_brain().process_query(query) -> BrainResponse

Architecture:
    AgentOrchestrator (one agent per query)
    AgentBrain (several agents, bounded fan-out, synthesis)
    ├── TaxAgent
    ├── ExpenseAgent
    ├── ComplianceAgent
    ├── DataAnalysisAgent
    ├── ResearchAgent (Perplexity search)
    └── ReasoningAgent (routing advice and synthesis)
"""

from .base import AgentRegistry, BaseAgent, get_registry
from .brain import AgentBrain, get_brain
from .llm import get_rate_limit_status
from .orchestrator import AgentOrchestrator, get_orchestrator

__all__ = [
    "AgentBrain",
    "AgentOrchestrator",
    "AgentRegistry",
    "BaseAgent",
    "get_brain",
    "get_orchestrator",
    "get_rate_limit_status",
    "get_registry",
]
