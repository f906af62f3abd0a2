"""Reasoning agent: step-by-step analysis, routing advice and synthesis."""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ....schemas.agents.intent import AgentType, Intent
from ....schemas.agents.response import AgentContribution, ReasoningStep
from ....schemas.agents.trace import ExecutionTrace
from ...reasoning import parse_calculation, parse_reasoning_steps
from ..base import BaseAgent
from ..intents import REASONING_RULES, IntentClassifier, match_agent_types, parse_agent_type
from ..llm import extract_json, is_valid_llm_response
from ..memory import ConversationMemory

logger = logging.getLogger(__name__)

REASONING_SYSTEM_PROMPT = """You are a careful analyst for payroll, tax and business finance questions.
Break problems into explicit steps. For multi-step problems answer in the form:
STEP 1: <what you are doing>
REASONING: <why>
CONCLUSION: <what follows>
...
FINAL CONCLUSION: <answer>
For calculations answer with RESULT:, STEPS:, FORMULAS: and EXPLANATION: sections."""

SPECIALIST_DESCRIPTIONS = {
    AgentType.TAX: "payroll tax calculations, withholding, tax rates",
    AgentType.EXPENSE: "expense categorization and deductibility",
    AgentType.COMPLIANCE: "filing requirements, deadlines, employment regulations",
    AgentType.DATA: "statistics, forecasts and variance analysis of payroll data",
    AgentType.RESEARCH: "current regulations and recent changes, with citations",
    AgentType.REASONING: "multi-step reasoning, scenario comparison, explanations",
}

MAX_RELEVANCE = 10.0


def _specialist_list() -> str:
    return "\n".join(f"- {t.value}: {d}" for t, d in SPECIALIST_DESCRIPTIONS.items())


class ReasoningAgent(BaseAgent):
    """Structured reasoning; also advises the orchestrator and the brain."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._classifier = IntentClassifier(REASONING_RULES)

    @property
    def agent_type(self) -> AgentType:
        return AgentType.REASONING

    @property
    def name(self) -> str:
        return "Reasoning Agent"

    @property
    def description(self) -> str:
        return "Works through complex questions step by step and compares scenarios"

    @property
    def capabilities(self) -> List[str]:
        return ["step-by-step reasoning", "calculations with explanation", "scenario analysis", "synthesis"]

    @property
    def system_prompt(self) -> str:
        return REASONING_SYSTEM_PROMPT

    @property
    def classifier(self) -> IntentClassifier:
        return self._classifier

    async def execute_tool(
        self,
        intent: Intent,
        text: str,
        query: str,
        memory: Optional[ConversationMemory] = None,
    ) -> Tuple[Dict[str, Any], Any]:
        if intent == Intent.STEP_BY_STEP_REASONING:
            parsed = parse_reasoning_steps(text)
            if memory is not None:
                memory.state.setdefault("reasoning_steps", []).extend(parsed["steps"])
            return {}, {
                "steps": [s.model_dump() for s in parsed["steps"]],
                "final_conclusion": parsed["final_conclusion"],
            }

        if intent == Intent.CALCULATE_WITH_EXPLANATION:
            return {}, parse_calculation(text)

        raise ValueError(f"Reasoning agent has no tool for {intent}")

    async def propose_relevant_agents(self, query: str, trace: Optional[ExecutionTrace] = None) -> List[AgentType]:
        """Specialists the model thinks should answer, else keyword routing."""
        prompt = (
            f"Which specialists should answer this question?\n\nQuestion: {query}\n\n"
            f"Specialists:\n{_specialist_list()}\n\n"
            'Reply with JSON only: {"relevantAgents": ["tax", ...], "rationale": "..."}'
        )
        response = await self.call_llm(prompt, trace=trace)
        data = extract_json(response)

        proposed: List[AgentType] = []
        if isinstance(data, dict):
            for label in data.get("relevantAgents") or []:
                agent_type = parse_agent_type(label)
                if agent_type and agent_type != AgentType.GENERAL and agent_type not in proposed:
                    proposed.append(agent_type)
        if proposed:
            return proposed

        logger.info("[ReasoningAgent] No usable agent proposal from LLM, using keyword routing")
        return match_agent_types(query)

    async def score_agent_relevance(self, query: str, trace: Optional[ExecutionTrace] = None) -> Dict[AgentType, float]:
        """0-10 relevance of each specialist. Empty when the model gives nothing usable."""
        prompt = (
            f"Rate how relevant each specialist is to this question from 0 (irrelevant) to 10 (essential).\n\n"
            f"Question: {query}\n\nSpecialists:\n{_specialist_list()}\n\n"
            'Reply with JSON only: {"scores": {"tax": 0-10, "expense": 0-10, ...}, "rationale": "..."}'
        )
        response = await self.call_llm(prompt, trace=trace)
        data = extract_json(response)
        if not isinstance(data, dict):
            return {}

        raw = data.get("scores", data)
        scores: Dict[AgentType, float] = {}
        if not isinstance(raw, dict):
            return scores
        for label, value in raw.items():
            agent_type = parse_agent_type(label)
            if agent_type is None or agent_type == AgentType.GENERAL:
                continue
            try:
                score = float(value)
            except (TypeError, ValueError):
                continue
            scores[agent_type] = max(0.0, min(MAX_RELEVANCE, score))
        return scores

    async def synthesize(
        self,
        query: str,
        contributions: Sequence[AgentContribution],
        trace: Optional[ExecutionTrace] = None,
    ) -> Optional[str]:
        """One answer combining several specialists' answers; None if the call fails."""
        parts = "\n\n".join(f"### {c.agent_name}\n{c.answer}" for c in contributions if c.success)
        prompt = (
            f"Question: {query}\n\nAnswers from specialists:\n\n{parts}\n\n"
            "Combine these into one clear answer. Resolve contradictions explicitly, "
            "keep every figure that matters, and do not mention the specialists by name."
        )
        response = await self.call_llm(prompt, trace=trace)
        return response if is_valid_llm_response(response) else None

    async def analyze_scenarios(
        self,
        scenarios: Sequence[Dict[str, Any]],
        question: str,
        trace: Optional[ExecutionTrace] = None,
    ) -> Dict[str, Any]:
        """Compare scenarios step by step and recommend one.

        Raises:
            ValueError: With no scenarios to compare
        """
        if not scenarios:
            raise ValueError("At least one scenario is required")

        listing = "\n".join(
            f"Scenario {i}: {json.dumps(s, default=str)}" for i, s in enumerate(scenarios, start=1)
        )
        prompt = f"{question}\n\n{listing}\n\nCompare the scenarios step by step and recommend one."
        response = await self.call_llm(prompt, trace=trace)
        if not is_valid_llm_response(response):
            return {"error": response or "No response from language model", "steps": [], "recommendation": ""}

        parsed = parse_reasoning_steps(response)
        steps: List[ReasoningStep] = parsed["steps"]
        return {
            "analysis": response,
            "steps": [s.model_dump() for s in steps],
            "recommendation": parsed["final_conclusion"],
        }
