"""Base agent and registry.

An agent answers a query in one LLM round, runs whatever tools the rule table
picks out of the query and reply, and (when tools ran) asks the model once more
to phrase the final answer around the tool results.

Agents are shared by every request, so per-conversation data lives in a
ConversationMemory handed through each call, never on the agent itself.
"""

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from ...schemas.agents.intent import AgentType, Intent
from ...schemas.agents.response import AgentResponse, ToolCall
from ...schemas.agents.trace import ExecutionTrace, TraceEventType
from ..storage import PayrollStore, get_store
from .confidence import DEFAULT_POLICY, ConfidencePolicy, score_confidence
from .embeddings import EmbeddingClient
from .intents import IntentClassifier
from .llm import call_anthropic_api, is_valid_llm_response
from .memory import ConversationMemory, ConversationRegistry
from .tracing import trace_llm_call, trace_tool_call

logger = logging.getLogger(__name__)

APOLOGY = "I apologize, but I encountered an error while processing your request. Please try again later."


@dataclass(frozen=True)
class AgentConfig:
    model: Optional[str] = None  # None means settings.ANTHROPIC_MODEL
    temperature: float = 0.2
    max_tokens: int = 2000
    memory_enabled: bool = True
    history_limit: int = 6


def is_error_result(result: Any) -> bool:
    return isinstance(result, dict) and bool(result.get("error"))


def _dump(result: Any) -> Any:
    """Pydantic models (or lists of them) to JSON-friendly data."""
    if hasattr(result, "model_dump"):
        return result.model_dump(mode="json")
    if isinstance(result, (list, tuple)):
        return [_dump(r) for r in result]
    return result


class BaseAgent(ABC):
    """Base class for agents with common functionality."""

    def __init__(
        self,
        config: Optional[AgentConfig] = None,
        store: Optional[PayrollStore] = None,
        policy: ConfidencePolicy = DEFAULT_POLICY,
        embedder: Optional[EmbeddingClient] = None,
    ):
        self.config = config or AgentConfig()
        self.store = store or get_store()
        self.policy = policy
        self.embedder = embedder or EmbeddingClient()
        self.conversations = ConversationRegistry()

    @property
    @abstractmethod
    def agent_type(self) -> AgentType:
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        pass

    @property
    @abstractmethod
    def capabilities(self) -> List[str]:
        pass

    @property
    @abstractmethod
    def system_prompt(self) -> str:
        pass

    @property
    @abstractmethod
    def classifier(self) -> IntentClassifier:
        pass

    @abstractmethod
    async def execute_tool(
        self,
        intent: Intent,
        text: str,
        query: str,
        memory: Optional[ConversationMemory] = None,
    ) -> Tuple[Dict[str, Any], Any]:
        """Run one tool.

        Args:
            intent: Which tool to run
            text: Query and first LLM reply joined, for parameter extraction
            query: The user's query alone
            memory: The conversation the query belongs to

        Returns:
            Tuple of (arguments used, result)
        """
        pass

    @property
    def log_tag(self) -> str:
        return f"[{type(self).__name__}]"

    # Prompting

    async def prepare(self, memory: ConversationMemory, context: Optional[Dict[str, Any]] = None) -> None:
        """Load per-conversation data into ``memory.state``. Nothing by default."""

    async def gather_context(self, query: str) -> str:
        """Extra reference material for the prompt. Empty by default."""
        return ""

    async def search_knowledge(self, query: str, category: Optional[str] = None, limit: int = 3) -> List[Dict[str, Any]]:
        """Knowledge-base rows for ``query``, matched by embedding when one is available."""
        embedding = await self.embedder.embed(query)
        return await asyncio.to_thread(
            self.store.search_knowledge, query, category=category, limit=limit, embedding=embedding,
        )

    def build_prompt(self, query: str, context: Optional[Dict[str, Any]] = None, reference: str = "") -> str:
        parts = []
        if reference:
            parts.append(f"Reference information:\n{reference}")
        if context:
            parts.append(f"Context:\n{json.dumps(context, default=str, indent=2)}")
        parts.append(query)
        return "\n\n".join(parts)

    def history_for_llm(self, memory: ConversationMemory) -> List[Dict[str, str]]:
        """Recent turns of this conversation, starting on a user turn."""
        turns = [
            {"role": e["role"], "content": e["content"]}
            for e in memory.entries[-self.config.history_limit:]
        ]
        while turns and turns[0]["role"] != "user":
            turns.pop(0)
        return turns

    async def call_llm(
        self,
        prompt: str,
        system: Optional[str] = None,
        history: Optional[List[Dict[str, str]]] = None,
        trace: Optional[ExecutionTrace] = None,
    ) -> Optional[str]:
        start_time = time.time()
        response = await call_anthropic_api(
            prompt,
            system=self.system_prompt if system is None else system,
            history=history,
            model=self.config.model,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )
        trace_llm_call(trace, self.name, prompt, response, (time.time() - start_time) * 1000)
        return response

    # Tools

    async def parse_and_execute_tool_calls(
        self,
        response: str,
        query: str,
        trace: Optional[ExecutionTrace] = None,
        memory: Optional[ConversationMemory] = None,
    ) -> List[ToolCall]:
        """Run every tool whose rule fires on the query or reply.

        Handler exceptions propagate to the caller.
        """
        intents = self.classifier.classify(response, query)
        if not intents:
            return []

        if memory is None:
            memory = ConversationMemory()
        text = f"{query}\n{response or ''}"
        tool_calls = []
        for intent in intents:
            arguments, result = await self.execute_tool(intent, text, query, memory)
            trace_tool_call(trace, self.name, intent.value, arguments)
            tool_calls.append(ToolCall(name=intent.value, arguments=arguments, result=_dump(result)))
        return tool_calls

    def format_tool_results(self, tool_calls: List[ToolCall]) -> str:
        lines = []
        for call in tool_calls:
            lines.append(f"- {call.name}: {json.dumps(call.result, default=str)}")
        return "\n".join(lines)

    def collect_sources(self, tool_calls: List[ToolCall]) -> List[str]:
        return []

    async def follow_up(
        self,
        query: str,
        first_answer: str,
        tool_calls: List[ToolCall],
        trace: Optional[ExecutionTrace] = None,
    ) -> str:
        """Ask the model to answer again with the tool results in hand."""
        facts = self.format_tool_results(tool_calls)
        prompt = (
            f"Question: {query}\n\n"
            f"Your draft answer:\n{first_answer}\n\n"
            f"Results from the calculation tools:\n{facts}\n\n"
            "Rewrite the answer so every figure matches the tool results. Be concise."
        )
        response = await self.call_llm(prompt, trace=trace)
        if is_valid_llm_response(response):
            return response
        logger.warning(f"{self.log_tag} Follow-up call failed, appending tool results to first answer")
        return f"{first_answer}\n\nCalculated results:\n{facts}"

    # Main entry

    async def process_query(
        self,
        query: str,
        context: Optional[Dict[str, Any]] = None,
        trace: Optional[ExecutionTrace] = None,
        conversation_id: Optional[str] = None,
    ) -> AgentResponse:
        """Answer a query within one conversation.

        Never raises: any failure becomes the apology response.
        """
        logger.info(f"{self.log_tag} Processing query: {query[:80]}")
        memory = self.conversations.get_or_create(conversation_id)
        try:
            await self.prepare(memory, context)
            reference = await self.gather_context(query)
            prompt = self.build_prompt(query, context, reference)
            response = await self.call_llm(prompt, history=self.history_for_llm(memory), trace=trace)

            if not is_valid_llm_response(response):
                logger.warning(f"{self.log_tag} Invalid LLM response: {(response or 'None')[:100]}")
                return self.apology(response or "No response from language model", memory.conversation_id)

            tool_calls = await self.parse_and_execute_tool_calls(response, query, trace, memory)
            answer = response
            if tool_calls:
                answer = await self.follow_up(query, response, tool_calls, trace)

            sources = self.collect_sources(tool_calls)
            tool_results = sum(1 for call in tool_calls if not is_error_result(call.result))
            confidence = score_confidence(answer, sources, tool_results, self.policy)

            self.record_exchange(memory, query, answer)
            await self.persist(memory, query, answer, tool_calls, confidence)

            return AgentResponse(
                agent_type=self.agent_type.value,
                agent_name=self.name,
                answer=answer,
                confidence=confidence,
                tool_calls=tool_calls,
                sources=sources,
                conversation_id=memory.conversation_id,
            )
        except Exception as e:
            logger.exception(f"{self.log_tag} Error processing query: {e}")
            if trace is not None:
                trace.add_event(TraceEventType.FALLBACK_TRIGGERED, agent=self.name, data={"error": str(e)})
            return self.apology(str(e), memory.conversation_id)

    def apology(self, error: Optional[str] = None, conversation_id: Optional[str] = None) -> AgentResponse:
        return AgentResponse(
            agent_type=self.agent_type.value,
            agent_name=self.name,
            answer=APOLOGY,
            confidence=self.policy.apology,
            conversation_id=conversation_id,
            metadata={"error": error} if error else {},
        )

    # Memory

    def record_exchange(self, memory: ConversationMemory, query: str, answer: str) -> None:
        memory.add("user", query)
        memory.add("assistant", answer)

    async def persist(
        self,
        memory: ConversationMemory,
        query: str,
        answer: str,
        tool_calls: List[ToolCall],
        confidence: float,
    ) -> None:
        """Store tool results, and the exchange itself when memory is enabled."""
        if self.config.memory_enabled:
            await asyncio.to_thread(
                self.store.save_conversation,
                memory.conversation_id,
                self.agent_type.value,
                memory.entries[-2:],
                {"agent_name": self.name},
            )
        if tool_calls:
            await asyncio.to_thread(
                self.store.save_analysis_result,
                self.agent_type.value,
                query,
                {"answer": answer, "tool_calls": [c.model_dump() for c in tool_calls]},
                confidence,
                memory.conversation_id,
            )

    def reset(self, conversation_id: Optional[str] = None) -> None:
        """Forget one conversation, or every conversation when no id is given."""
        if conversation_id:
            self.conversations.discard(conversation_id)
        else:
            self.conversations.clear()

    def info(self) -> Dict[str, Any]:
        return {
            "agent_type": self.agent_type.value,
            "name": self.name,
            "description": self.description,
            "capabilities": list(self.capabilities),
        }


class AgentRegistry:
    """Registry mapping agent types to agents."""

    def __init__(self):
        self._agents: Dict[AgentType, BaseAgent] = {}

    def register(self, agent: BaseAgent) -> None:
        self._agents[agent.agent_type] = agent

    def get(self, agent_type: AgentType) -> Optional[BaseAgent]:
        return self._agents.get(agent_type)

    def list_agents(self) -> List[AgentType]:
        return list(self._agents.keys())

    def all(self) -> List[BaseAgent]:
        return list(self._agents.values())


# Global registry instance
_registry = AgentRegistry()


def get_registry() -> AgentRegistry:
    """Get the global agent registry."""
    return _registry
