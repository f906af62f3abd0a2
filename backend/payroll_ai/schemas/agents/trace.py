"""Execution trace schemas for debugging and observability."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
import uuid


class TraceEventType(str, Enum):
    """Types of events recorded during execution."""
    QUERY_ROUTED = "query_routed"
    AGENT_STARTED = "agent_started"
    AGENT_COMPLETED = "agent_completed"
    AGENT_FAILED = "agent_failed"
    AGENT_TIMED_OUT = "agent_timed_out"
    LLM_CALL = "llm_call"
    TOOL_CALLED = "tool_called"
    SYNTHESIS = "synthesis"
    FALLBACK_TRIGGERED = "fallback_triggered"


class TraceEvent(BaseModel):
    """A single event in the execution trace."""
    timestamp: datetime = Field(default_factory=datetime.now)
    event_type: TraceEventType
    agent: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    duration_ms: Optional[float] = None

    class Config:
        use_enum_values = True


class ExecutionTrace(BaseModel):
    """Complete trace of a query execution for debugging.

    Captures routing, per-agent timing, tool calls and fallbacks.
    """
    trace_id: str = Field(default_factory=lambda: str(uuid.uuid4())[:12])
    conversation_id: Optional[str] = None
    user_query: str
    events: List[TraceEvent] = Field(default_factory=list)
    total_duration_ms: float = 0
    llm_calls: int = 0
    tool_calls: int = 0
    agents_completed: int = 0
    agents_failed: int = 0
    final_response: Optional[str] = None
    success: bool = False
    started_at: datetime = Field(default_factory=datetime.now)

    def add_event(
        self,
        event_type: TraceEventType,
        agent: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
        duration_ms: Optional[float] = None,
    ) -> None:
        """Add an event to the trace."""
        self.events.append(TraceEvent(
            event_type=event_type,
            agent=agent,
            data=data or {},
            duration_ms=duration_ms,
        ))

        if event_type == TraceEventType.LLM_CALL:
            self.llm_calls += 1
        elif event_type == TraceEventType.TOOL_CALLED:
            self.tool_calls += 1
        elif event_type == TraceEventType.AGENT_COMPLETED:
            self.agents_completed += 1
        elif event_type in (TraceEventType.AGENT_FAILED, TraceEventType.AGENT_TIMED_OUT):
            self.agents_failed += 1

    def finalize(self, response: Optional[str] = None, success: bool = False) -> None:
        """Finalize the trace with final results."""
        self.final_response = response
        self.success = success
        self.total_duration_ms = (datetime.now() - self.started_at).total_seconds() * 1000
