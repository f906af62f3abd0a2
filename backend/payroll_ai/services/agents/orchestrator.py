"""Orchestrator for single-agent query routing.

The orchestrator coordinates the flow:
1. Resolve the agent type (explicit, keyword-routed, or proposed by the reasoning agent)
2. Run the specialist
3. Record the exchange for follow-up queries and persist it
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Union

from ...schemas.agents.intent import AgentType
from ...schemas.agents.response import AgentInfo, AgentResponse
from ...schemas.agents.trace import ExecutionTrace, TraceEventType
from ..storage import PayrollStore, get_store
from .base import AgentConfig, AgentRegistry, BaseAgent, get_registry
from .intents import parse_agent_type, route_query
from .memory import ConversationMemory, ConversationRegistry, get_conversation_registry
from .specialists import ReasoningAgent, create_default_agents
from .tracing import format_trace_summary

logger = logging.getLogger(__name__)


class AgentOrchestrator:
    """Routes each query to one specialist agent.

    Flow:
    1. Get/create the conversation for continuity
    2. Resolve the agent type; ``general`` asks the reasoning agent which specialist fits
    3. Run the agent (agents never raise)
    4. Record the exchange and persist it
    """

    def __init__(
        self,
        registry: Optional[AgentRegistry] = None,
        store: Optional[PayrollStore] = None,
        conversations: Optional[ConversationRegistry] = None,
    ):
        self.store = store or get_store()
        self.registry = registry or get_registry()
        self.conversations = conversations or get_conversation_registry()

        if not self.registry.list_agents():
            self._register_agents()

    def _register_agents(self) -> None:
        """Register all specialists. The orchestrator persists conversations itself."""
        for agent in create_default_agents(self.store, AgentConfig(memory_enabled=False)):
            self.registry.register(agent)

    @property
    def reasoning_agent(self) -> Optional[ReasoningAgent]:
        agent = self.registry.get(AgentType.REASONING)
        return agent if isinstance(agent, ReasoningAgent) else None

    async def process_query(
        self,
        query: str,
        agent_type: Union[AgentType, str, None] = None,
        conversation_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> AgentResponse:
        """Process a query with one agent.

        Args:
            query: User's natural language query
            agent_type: Agent to use; None routes by keywords
            conversation_id: Optional conversation id for continuity
            context: Optional context passed through to the agent (e.g. company_id)

        Returns:
            AgentResponse. An unknown agent type yields confidence 0 and metadata.error.
        """
        memory = self.conversations.get_or_create(conversation_id)
        trace = ExecutionTrace(conversation_id=memory.conversation_id, user_query=query)

        if agent_type is None:
            resolved: Optional[AgentType] = route_query(query)
        else:
            resolved = parse_agent_type(agent_type.value if isinstance(agent_type, AgentType) else agent_type)

        response = await self._dispatch(query, agent_type, resolved, context, trace, allow_general=True)

        response.conversation_id = memory.conversation_id
        response.metadata.setdefault("trace_id", trace.trace_id)
        await self._record(memory, query, response)

        trace.finalize(response=response.answer, success="error" not in response.metadata)
        logger.debug(format_trace_summary(trace))
        return response

    async def _dispatch(
        self,
        query: str,
        requested: Union[AgentType, str, None],
        resolved: Optional[AgentType],
        context: Optional[Dict[str, Any]],
        trace: ExecutionTrace,
        allow_general: bool,
    ) -> AgentResponse:
        if resolved == AgentType.GENERAL:
            return await self._handle_general(query, context, trace, allow_general)

        agent = self.registry.get(resolved) if resolved else None
        if agent is None:
            label = requested.value if isinstance(requested, AgentType) else str(requested)
            logger.warning(f"[Orchestrator] Unknown agent type: {label}")
            trace.add_event(TraceEventType.FALLBACK_TRIGGERED, data={"reason": "unknown_agent_type", "agent_type": label})
            return AgentResponse(
                agent_type=label,
                answer=f"I'm not sure how to handle that request. Unknown agent type: {label}",
                confidence=0.0,
                metadata={"error": f"Unknown agent type: {label}"},
            )

        trace.add_event(TraceEventType.QUERY_ROUTED, agent=agent.name, data={"agent_type": agent.agent_type.value})
        return await self._run_agent(agent, query, context, trace)

    async def _handle_general(
        self,
        query: str,
        context: Optional[Dict[str, Any]],
        trace: ExecutionTrace,
        allow_general: bool,
    ) -> AgentResponse:
        """Ask the reasoning agent which specialist fits, then recurse once."""
        reasoning = self.reasoning_agent
        if reasoning is None:
            return await self._dispatch(query, AgentType.GENERAL.value, None, context, trace, allow_general=False)

        if allow_general:
            proposed = await reasoning.propose_relevant_agents(query, trace)
            for candidate in proposed:
                if candidate != AgentType.GENERAL and self.registry.get(candidate) is not None:
                    logger.info(f"[Orchestrator] General query routed to {candidate.value} by reasoning agent")
                    return await self._dispatch(query, candidate, candidate, context, trace, allow_general=False)

        trace.add_event(TraceEventType.QUERY_ROUTED, agent=reasoning.name, data={"agent_type": "general"})
        return await self._run_agent(reasoning, query, context, trace)

    async def _run_agent(
        self,
        agent: BaseAgent,
        query: str,
        context: Optional[Dict[str, Any]],
        trace: ExecutionTrace,
    ) -> AgentResponse:
        trace.add_event(TraceEventType.AGENT_STARTED, agent=agent.name)
        response = await agent.process_query(query, context, trace, conversation_id=trace.conversation_id)
        event = TraceEventType.AGENT_FAILED if "error" in response.metadata else TraceEventType.AGENT_COMPLETED
        trace.add_event(event, agent=agent.name, data={"confidence": response.confidence})
        return response

    async def _record(self, memory: ConversationMemory, query: str, response: AgentResponse) -> None:
        memory.add("user", query)
        memory.add("assistant", response.answer, agent_type=response.agent_type, confidence=response.confidence)
        if "error" not in response.metadata:
            await self.save_conversation(
                memory.conversation_id,
                response.agent_type,
                memory.entries[-2:],
                metadata={"agent_name": response.agent_name},
            )

    async def continue_conversation(
        self,
        conversation_id: str,
        query: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> AgentResponse:
        """Follow-up query; stays with the previous agent unless the query clearly needs another."""
        routed = route_query(query)
        if routed == AgentType.GENERAL:
            memory = self.conversations.get(conversation_id)
            previous = memory.last_value("agent_type") if memory else None
            if previous is None:
                previous = await asyncio.to_thread(self.store.get_conversation_agent_type, conversation_id)
            previous_type = parse_agent_type(previous)
            if previous_type is not None:
                routed = previous_type
        return await self.process_query(query, routed, conversation_id, context)

    async def save_conversation(
        self,
        conversation_id: str,
        agent_type: str,
        messages: List[Dict[str, Any]],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Write the conversation row and its messages to Supabase."""
        saved = await asyncio.to_thread(self.store.save_conversation, conversation_id, agent_type, messages, metadata)
        if not saved and self.store.available:
            logger.warning(f"[Orchestrator] Failed to save conversation {conversation_id}")
        return saved

    def get_available_agents(self) -> List[AgentInfo]:
        return [AgentInfo(**agent.info()) for agent in self.registry.all()]

    def reset_agent(self, agent_type: Union[AgentType, str]) -> bool:
        """Forget every conversation one agent holds. Returns False for an unknown type."""
        resolved = parse_agent_type(agent_type.value if isinstance(agent_type, AgentType) else agent_type)
        agent = self.registry.get(resolved) if resolved else None
        if agent is None:
            return False
        agent.reset()
        return True

    def reset_all_agents(self) -> None:
        for agent in self.registry.all():
            agent.reset()
        self.conversations.clear()


# Global orchestrator instance
_orchestrator: Optional[AgentOrchestrator] = None


def get_orchestrator() -> AgentOrchestrator:
    """Get the global orchestrator instance."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = AgentOrchestrator()
    return _orchestrator
