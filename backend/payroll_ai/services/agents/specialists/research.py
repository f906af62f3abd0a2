"""Research agent: search-grounded answers with citations."""

import logging
from typing import Any, Dict, List, Optional, Tuple

from ....schemas.agents.intent import AgentType, Intent
from ....schemas.agents.response import ToolCall
from ....schemas.research import SearchResult
from ...research import conduct_research, extract_topics, track_updates
from ..base import BaseAgent, is_error_result
from ..intents import RESEARCH_RULES, IntentClassifier
from ..memory import ConversationMemory
from ..search import PerplexityClient, format_with_citations

logger = logging.getLogger(__name__)

RESEARCH_SYSTEM_PROMPT = """You are a research specialist for US payroll, employment tax and
labor regulation. You answer with current, verifiable information, point to the agency or
statute behind each claim, and say clearly when a rule varies by state or is about to change."""

DEFAULT_TOPICS = ["federal payroll tax", "minimum wage", "state unemployment insurance"]


class ResearchAgent(BaseAgent):
    """Answers from hosted search results and the curated knowledge base."""

    def __init__(self, search_client: Optional[PerplexityClient] = None, **kwargs):
        super().__init__(**kwargs)
        self.search_client = search_client or PerplexityClient()
        self._classifier = IntentClassifier(RESEARCH_RULES)

    @property
    def agent_type(self) -> AgentType:
        return AgentType.RESEARCH

    @property
    def name(self) -> str:
        return "Research Agent"

    @property
    def description(self) -> str:
        return "Researches current payroll regulations and tracks regulatory updates"

    @property
    def capabilities(self) -> List[str]:
        return ["regulatory research", "regulatory update tracking", "cited sources"]

    @property
    def system_prompt(self) -> str:
        return RESEARCH_SYSTEM_PROMPT

    @property
    def classifier(self) -> IntentClassifier:
        return self._classifier

    async def gather_context(self, query: str) -> str:
        rows = await self.search_knowledge(query, limit=3)
        return "\n".join(f"{r.get('title', '')}: {str(r.get('content', ''))[:500]}" for r in rows)

    async def execute_tool(
        self,
        intent: Intent,
        text: str,
        query: str,
        memory: Optional[ConversationMemory] = None,
    ) -> Tuple[Dict[str, Any], Any]:
        if intent == Intent.CONDUCT_RESEARCH:
            return {"query": query}, await conduct_research(query, self.search_client)

        if intent == Intent.TRACK_UPDATES:
            topics = extract_topics(query, DEFAULT_TOPICS)
            logger.info(f"[ResearchAgent] Tracking updates for {len(topics)} topics")
            return {"topics": topics}, await track_updates(topics, self.search_client)

        raise ValueError(f"Research agent has no tool for {intent}")

    def collect_sources(self, tool_calls: List[ToolCall]) -> List[str]:
        sources: List[str] = []
        for call in tool_calls:
            if is_error_result(call.result):
                continue
            if call.name == Intent.CONDUCT_RESEARCH.value:
                for source in call.result.get("sources", []):
                    sources.append(source.get("url") or source["title"])
            elif call.name == Intent.TRACK_UPDATES.value:
                for update in call.result:
                    sources.extend(update.get("sources", []))
        # Keep first occurrence order
        return list(dict.fromkeys(sources))

    def format_tool_results(self, tool_calls: List[ToolCall]) -> str:
        blocks = []
        for call in tool_calls:
            if call.name == Intent.CONDUCT_RESEARCH.value:
                result = call.result
                if is_error_result(result):
                    blocks.append(f"Research failed: {result['error']}")
                    continue
                content = result.get("summary", "")
                if result.get("key_points"):
                    content += "\n" + "\n".join(f"- {p}" for p in result["key_points"])
                citations = [s["url"] for s in result.get("sources", []) if s.get("url")]
                blocks.append(format_with_citations(SearchResult(content=content, citations=citations)))
            elif call.name == Intent.TRACK_UPDATES.value:
                for update in call.result:
                    text = update.get("summary") or update.get("error") or "No recent changes found."
                    blocks.append(format_with_citations(SearchResult(
                        content=f"{update['topic']}: {text}",
                        citations=update.get("sources", []),
                    )))
        return "\n\n".join(blocks)
