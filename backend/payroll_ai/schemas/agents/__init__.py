"""Agent system schemas."""

from .intent import AgentType, Intent
from .response import (
    AgentContribution,
    AgentInfo,
    AgentQueryRequest,
    AgentResponse,
    BrainQueryRequest,
    BrainResponse,
    Message,
    ReasoningStep,
    ResetRequest,
    ScenarioRequest,
    ToolCall,
)
from .trace import ExecutionTrace, TraceEvent, TraceEventType
