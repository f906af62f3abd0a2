"""Tracing utilities for debugging and observability."""

from typing import Any, Dict, Optional

from ...schemas.agents.trace import ExecutionTrace, TraceEventType


def _preview(text: Optional[str], limit: int = 100) -> Optional[str]:
    if text and len(text) > limit:
        return text[:limit] + "..."
    return text


def trace_llm_call(
    trace: Optional[ExecutionTrace],
    agent_name: str,
    prompt_preview: str,
    response_preview: Optional[str] = None,
    duration_ms: float = 0,
) -> None:
    """Record an LLM call in the trace.

    Args:
        trace: ExecutionTrace to record to (no-op when None)
        agent_name: Name of the agent making the call
        prompt_preview: The prompt, truncated to ~100 chars
        response_preview: The response, truncated to ~100 chars
        duration_ms: Call duration in milliseconds
    """
    if trace is None:
        return
    trace.add_event(
        TraceEventType.LLM_CALL,
        agent=agent_name,
        data={
            "prompt_preview": _preview(prompt_preview),
            "response_preview": _preview(response_preview),
        },
        duration_ms=duration_ms,
    )


def trace_tool_call(
    trace: Optional[ExecutionTrace],
    agent_name: str,
    tool_name: str,
    arguments: Dict[str, Any],
) -> None:
    """Record a tool dispatch in the trace."""
    if trace is None:
        return
    trace.add_event(
        TraceEventType.TOOL_CALLED,
        agent=agent_name,
        data={"tool": tool_name, "arguments": arguments},
    )


def format_trace_summary(trace: ExecutionTrace) -> str:
    """Format a trace into a human-readable summary."""
    lines = [
        f"Trace {trace.trace_id} ({trace.user_query[:50]}...)",
        f"  Duration: {trace.total_duration_ms:.0f}ms",
        f"  LLM calls: {trace.llm_calls}",
        f"  Tool calls: {trace.tool_calls}",
        f"  Agents: {trace.agents_completed} completed, {trace.agents_failed} failed",
        f"  Success: {trace.success}",
    ]
    for event in trace.events:
        if event.event_type in (TraceEventType.AGENT_FAILED, TraceEventType.AGENT_TIMED_OUT, TraceEventType.FALLBACK_TRIGGERED):
            lines.append(f"    - {event.event_type} {event.agent or ''} {event.data}".rstrip())
    return "\n".join(lines)
