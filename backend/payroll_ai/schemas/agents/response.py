"""Request and response schemas for the agent endpoints."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from .intent import AgentType


class ToolCall(BaseModel):
    """A tool the agent ran while answering, with its result."""
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    result: Any = None


class Message(BaseModel):
    role: str  # "user" or "assistant"
    content: str
    timestamp: datetime = Field(default_factory=datetime.now)


class ReasoningStep(BaseModel):
    step: int
    description: str
    reasoning: str = ""
    conclusion: str = ""


class AgentResponse(BaseModel):
    """Answer from a single agent (or the orchestrator's fallback)."""
    agent_type: str
    agent_name: Optional[str] = None
    answer: str
    confidence: float = 0.0
    tool_calls: List[ToolCall] = Field(default_factory=list)
    sources: List[str] = Field(default_factory=list)
    conversation_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class AgentContribution(BaseModel):
    """One agent's part of a multi-agent answer."""
    agent_type: str
    agent_name: str
    relevance: float = 0  # 0-10
    success: bool
    answer: str = ""
    confidence: float = 0
    error: Optional[str] = None
    duration_ms: float = 0


class BrainResponse(BaseModel):
    answer: str
    confidence: float
    agents_used: List[str] = Field(default_factory=list)
    active_agents: List[str] = Field(default_factory=list)
    contributions: List[AgentContribution] = Field(default_factory=list)
    reasoning_chain: List[str] = Field(default_factory=list)
    rationale: str = ""
    trace_id: Optional[str] = None
    conversation_id: Optional[str] = None


class AgentQueryRequest(BaseModel):
    query: str
    agent_type: Optional[str] = None
    conversation_id: Optional[str] = None


class BrainQueryRequest(BaseModel):
    query: str
    conversation_id: Optional[str] = None


class ResetRequest(BaseModel):
    agent_type: Optional[AgentType] = None

    class Config:
        use_enum_values = True


class AgentInfo(BaseModel):
    agent_type: str
    name: str
    description: str
    capabilities: List[str] = Field(default_factory=list)


class ScenarioRequest(BaseModel):
    question: str
    scenarios: List[Dict[str, Any]] = Field(..., min_length=1)
