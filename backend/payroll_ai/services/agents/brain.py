"""Multi-agent brain.

The brain coordinates the flow:
1. Reasoning agent scores each specialist's relevance; the strongest are selected
2. Selected agents answer agent-specific sub-queries concurrently (bounded, with timeouts)
3. Contributions are merged in selection order and synthesised into one answer
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from ...config import settings
from ...schemas.agents.intent import AgentType
from ...schemas.agents.response import AgentContribution, BrainResponse
from ...schemas.agents.trace import ExecutionTrace, TraceEventType
from .base import APOLOGY, AgentRegistry
from .confidence import DEFAULT_POLICY
from .intents import match_agent_types
from .memory import ConversationRegistry
from .orchestrator import get_orchestrator
from .specialists import ReasoningAgent
from .specialists.reasoning import SPECIALIST_DESCRIPTIONS
from .tracing import format_trace_summary

logger = logging.getLogger(__name__)

RELEVANCE_THRESHOLD = 7.0
KEYWORD_RELEVANCE = 7.0  # assigned to agents picked by keyword routing
MAX_AGENTS = 6

_TYPE_ORDER = {agent_type: i for i, agent_type in enumerate(AgentType)}


def build_sub_context(agent_type: AgentType, context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Per-agent context for the brain's sub-queries.

    The focus goes in the context rather than the query text so it cannot
    trigger the agent's tool rules.
    """
    sub_context = dict(context or {})
    focus = SPECIALIST_DESCRIPTIONS.get(agent_type)
    if focus:
        sub_context["focus"] = f"Answer only the parts of the question about {focus}."
    return sub_context


class AgentBrain:
    """Answers a query with several specialists at once.

    Flow:
    1. Analyse: relevance scores (>= 7 selects), else keyword routing, else reasoning alone
    2. Fan out: semaphore-bounded sub-tasks, each under asyncio.wait_for
    3. Merge: contributions in selection order, never completion order
    4. Synthesise: single answer passes through; several go to the reasoning agent

    The brain is shared by concurrent requests: the reasoning chain is local to
    each call and memory is kept per conversation id.
    """

    def __init__(
        self,
        registry: AgentRegistry,
        max_concurrency: Optional[int] = None,
        agent_timeout: Optional[float] = None,
        conversations: Optional[ConversationRegistry] = None,
    ):
        self.registry = registry
        self.max_concurrency = max_concurrency or settings.AGENT_MAX_CONCURRENCY
        self.agent_timeout = agent_timeout or settings.AGENT_TIMEOUT_SECONDS
        self.conversations = conversations or ConversationRegistry()

    @property
    def reasoning_agent(self) -> Optional[ReasoningAgent]:
        agent = self.registry.get(AgentType.REASONING)
        return agent if isinstance(agent, ReasoningAgent) else None

    async def process_query(
        self,
        query: str,
        conversation_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> BrainResponse:
        memory = self.conversations.get_or_create(conversation_id)
        trace = ExecutionTrace(conversation_id=memory.conversation_id, user_query=query)
        chain: List[str] = []
        memory.add("user", query)

        selected, rationale = await self.analyze(query, trace, chain)
        active_agents = [self.registry.get(t).name for t, _ in selected]

        contributions = await self.fan_out(query, selected, context, trace, chain)
        answer, confidence = await self.synthesize(query, contributions, trace, chain)

        used = [c.agent_name for c in contributions if c.success]
        memory.add("assistant", answer, agents=used, confidence=confidence)

        trace.finalize(response=answer, success=bool(used))
        logger.debug(format_trace_summary(trace))

        return BrainResponse(
            answer=answer,
            confidence=confidence,
            agents_used=used,
            active_agents=active_agents,
            contributions=contributions,
            reasoning_chain=chain,
            rationale=rationale,
            trace_id=trace.trace_id,
            conversation_id=memory.conversation_id,
        )

    async def analyze(
        self,
        query: str,
        trace: ExecutionTrace,
        chain: Optional[List[str]] = None,
    ) -> Tuple[List[Tuple[AgentType, float]], str]:
        """Pick agents and their relevance, most relevant first."""
        chain = chain if chain is not None else []
        reasoning = self.reasoning_agent
        scores = await reasoning.score_agent_relevance(query, trace) if reasoning else {}
        if scores:
            chain.append(
                "Relevance scores: " + ", ".join(f"{t.value}={s:g}" for t, s in scores.items())
            )

        ranked = sorted(scores.items(), key=lambda item: (-item[1], _TYPE_ORDER[item[0]]))
        selected = [
            (agent_type, score) for agent_type, score in ranked
            if score >= RELEVANCE_THRESHOLD and self.registry.get(agent_type) is not None
        ][:MAX_AGENTS]
        if selected:
            rationale = f"Selected agents scoring at least {RELEVANCE_THRESHOLD:g}/10 for relevance"
        else:
            selected = [
                (agent_type, KEYWORD_RELEVANCE) for agent_type in match_agent_types(query)
                if self.registry.get(agent_type) is not None
            ][:MAX_AGENTS]
            rationale = "No agent scored high enough; selected by keyword routing"
            if not selected and reasoning is not None:
                selected = [(AgentType.REASONING, KEYWORD_RELEVANCE)]
                rationale = "No specialist matched; the reasoning agent answers alone"

        trace.add_event(
            TraceEventType.QUERY_ROUTED,
            data={"selected": [t.value for t, _ in selected], "rationale": rationale},
        )
        chain.append(f"{rationale}: {', '.join(t.value for t, _ in selected) or 'none'}")
        logger.info(f"[Brain] {rationale}: {[t.value for t, _ in selected]}")
        return selected, rationale

    async def fan_out(
        self,
        query: str,
        selected: List[Tuple[AgentType, float]],
        context: Optional[Dict[str, Any]],
        trace: ExecutionTrace,
        chain: Optional[List[str]] = None,
    ) -> List[AgentContribution]:
        """Run the selected agents concurrently; results come back in selection order."""
        chain = chain if chain is not None else []
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run(agent_type: AgentType, relevance: float) -> AgentContribution:
            agent = self.registry.get(agent_type)
            async with semaphore:
                trace.add_event(TraceEventType.AGENT_STARTED, agent=agent.name)
                start_time = time.time()
                try:
                    response = await asyncio.wait_for(
                        agent.process_query(
                            query,
                            build_sub_context(agent_type, context),
                            trace,
                            conversation_id=trace.conversation_id,
                        ),
                        timeout=self.agent_timeout,
                    )
                except asyncio.TimeoutError:
                    duration_ms = (time.time() - start_time) * 1000
                    logger.warning(f"[Brain] {agent.name} timed out after {self.agent_timeout}s")
                    trace.add_event(TraceEventType.AGENT_TIMED_OUT, agent=agent.name, duration_ms=duration_ms)
                    return AgentContribution(
                        agent_type=agent_type.value,
                        agent_name=agent.name,
                        relevance=relevance,
                        success=False,
                        error=f"Timed out after {self.agent_timeout:g}s",
                        duration_ms=duration_ms,
                    )

            duration_ms = (time.time() - start_time) * 1000
            error = response.metadata.get("error")
            trace.add_event(
                TraceEventType.AGENT_FAILED if error else TraceEventType.AGENT_COMPLETED,
                agent=agent.name,
                duration_ms=duration_ms,
            )
            return AgentContribution(
                agent_type=agent_type.value,
                agent_name=agent.name,
                relevance=relevance,
                success=not error,
                answer=response.answer,
                confidence=min(response.confidence, relevance / 10),
                error=error,
                duration_ms=duration_ms,
            )

        results = await asyncio.gather(
            *(run(agent_type, relevance) for agent_type, relevance in selected),
            return_exceptions=True,
        )

        contributions = []
        for (agent_type, relevance), result in zip(selected, results):
            if isinstance(result, Exception):
                agent_name = self.registry.get(agent_type).name
                logger.error(f"[Brain] {agent_name} raised: {result}")
                trace.add_event(TraceEventType.AGENT_FAILED, agent=agent_name, data={"error": str(result)})
                result = AgentContribution(
                    agent_type=agent_type.value,
                    agent_name=agent_name,
                    relevance=relevance,
                    success=False,
                    error=str(result),
                )
            contributions.append(result)

        succeeded = sum(1 for c in contributions if c.success)
        chain.append(f"{succeeded} of {len(contributions)} agents answered")
        return contributions

    async def synthesize(
        self,
        query: str,
        contributions: List[AgentContribution],
        trace: ExecutionTrace,
        chain: Optional[List[str]] = None,
    ) -> Tuple[str, float]:
        """Final answer and confidence from the merged contributions."""
        chain = chain if chain is not None else []
        successful = [c for c in contributions if c.success]
        if not successful:
            trace.add_event(TraceEventType.FALLBACK_TRIGGERED, data={"reason": "no_successful_agents"})
            return APOLOGY, DEFAULT_POLICY.apology

        if len(successful) == 1:
            chain.append(f"Single answer from {successful[0].agent_name}")
            return successful[0].answer, successful[0].confidence

        confidence = round(sum(c.confidence for c in successful) / len(successful), 3)
        reasoning = self.reasoning_agent
        synthesized = await reasoning.synthesize(query, successful, trace) if reasoning else None
        if synthesized:
            trace.add_event(TraceEventType.SYNTHESIS, agent=reasoning.name, data={"sources": len(successful)})
            chain.append(f"Synthesised {len(successful)} answers")
            return synthesized, confidence

        logger.warning("[Brain] Synthesis failed, concatenating agent answers")
        trace.add_event(TraceEventType.FALLBACK_TRIGGERED, data={"reason": "synthesis_failed"})
        chain.append("Synthesis failed; answers shown per agent")
        combined = "\n\n".join(f"**{c.agent_name} Perspective:**\n{c.answer}" for c in successful)
        return combined, confidence

    def get_memory(self, conversation_id: str) -> List[Dict[str, Any]]:
        memory = self.conversations.get(conversation_id)
        return list(memory.entries) if memory else []

    def reset(self, conversation_id: Optional[str] = None) -> None:
        """Forget one conversation, or all of them when no id is given."""
        if conversation_id:
            self.conversations.discard(conversation_id)
        else:
            self.conversations.clear()


# Global brain instance
_brain: Optional[AgentBrain] = None


def get_brain() -> AgentBrain:
    """Get the global brain, sharing the orchestrator's agents."""
    global _brain
    if _brain is None:
        _brain = AgentBrain(get_orchestrator().registry)
    return _brain
