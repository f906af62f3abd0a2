"""Rule tables that map free text to agent types and tool intents.

Classification is a pure function of the input text and the rule table.
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Pattern, Tuple

from ...schemas.agents.intent import AgentType, Intent

QUERY = "query"
RESPONSE = "response"
EITHER = "either"


@dataclass(frozen=True)
class IntentRule:
    """Fire ``intent`` when any pattern matches the chosen text."""
    intent: Intent
    patterns: Tuple[Pattern, ...]
    source: str = EITHER  # which text to match: query, response or either


def rule(intent: Intent, *patterns: str, source: str = EITHER) -> IntentRule:
    return IntentRule(
        intent=intent,
        patterns=tuple(re.compile(p, re.IGNORECASE) for p in patterns),
        source=source,
    )


class IntentClassifier:
    """Ordered rule table; returns every intent that fires, first rule first."""

    def __init__(self, rules: Iterable[IntentRule]):
        self.rules: Tuple[IntentRule, ...] = tuple(rules)

    def classify(self, response: str, query: str) -> List[Intent]:
        response = response or ""
        query = query or ""
        intents: List[Intent] = []
        for r in self.rules:
            if r.intent in intents:
                continue
            if r.source == QUERY:
                texts = (query,)
            elif r.source == RESPONSE:
                texts = (response,)
            else:
                texts = (query, response)
            if any(p.search(t) for p in r.patterns for t in texts):
                intents.append(r.intent)
        return intents


TAX_RULES = (
    rule(
        Intent.CALCULATE_PAYROLL_TAXES,
        r"\b(calculate|compute|estimate|how much)\b.*\b(tax|taxes|withholding|withheld|take[- ]home|net pay)\b",
        r"\b(paycheck|take[- ]home|net pay)\b",
        source=QUERY,
    ),
    rule(
        Intent.GET_TAX_RATES,
        r"\b(tax|income tax|fica|state) rates?\b",
        r"\bbrackets?\b",
        source=QUERY,
    ),
)

EXPENSE_RULES = (
    rule(
        Intent.CREATE_EXPENSE_CATEGORY,
        r"\b(create|add|new)\b.*\b(custom )?categor(y|ies)\b\s*(named|called)",
        source=QUERY,
    ),
    rule(
        Intent.CATEGORIZE_EXPENSE,
        r"\bcategori[sz]e\b",
        r"\b(what|which) category\b",
        r"\b(receipt|expense|purchase|bought|paid)\b.*\$\s?\d",
        source=QUERY,
    ),
    rule(
        Intent.GET_EXPENSE_CATEGORIES,
        r"\b(list|show|what are)\b.*\bcategories\b",
        r"\bexpense categories\b",
        source=QUERY,
    ),
)

COMPLIANCE_RULES = (
    rule(
        Intent.GET_COMPLIANCE_REQUIREMENTS,
        r"\bcompliance requirements?\b",
        r"\b(requirements?|obligations?|regulations?)\b",
        r"\bwhat (forms|filings)\b",
    ),
    rule(
        Intent.GET_UPCOMING_DEADLINES,
        r"\bdeadlines?\b",
        r"\b(due|upcoming|when (is|are))\b.*\b(file|filing|form)s?\b",
        source=QUERY,
    ),
    rule(
        Intent.CHECK_COMPLIANCE_STATUS,
        r"\b(am|are) (i|we) (compliant|in compliance|up to date)\b",
        r"\bcompliance status\b",
        source=QUERY,
    ),
)

DATA_RULES = (
    rule(Intent.LIST_DATA_SOURCES, r"\b(list|show|which|what)\b.*\bdata ?sources?\b", source=QUERY),
    rule(Intent.GENERATE_FORECAST, r"\bforecast", r"\bproject(ion|ed)?\b", r"\bpredict", source=QUERY),
    rule(Intent.ANALYZE_VARIANCE, r"\bvariance\b", r"\b(actual|actuals) (vs\.?|versus) budget\b", r"\bover budget\b", source=QUERY),
    rule(Intent.COMPUTE_STATISTICS, r"\bstatistic", r"\b(average|mean|median|summar(y|ize|ise))\b", r"\banaly[sz]e\b", source=QUERY),
)

RESEARCH_RULES = (
    rule(Intent.TRACK_UPDATES, r"\bupdates?\s+(on|about|to|for)\b", r"\bwhat('s| has) changed\b", source=QUERY),
    rule(Intent.CONDUCT_RESEARCH, r"^(?!.*\bupdates?\s+(?:on|about|to|for)\b)", source=QUERY),
)

REASONING_RULES = (
    rule(Intent.STEP_BY_STEP_REASONING, r"(?m)^\s*STEP\s+\d+\s*:", source=RESPONSE),
    rule(Intent.STEP_BY_STEP_REASONING, r"\bstep[- ]by[- ]step\b", r"\b(explain|reason)\b.*\bwhy\b", source=QUERY),
    rule(Intent.CALCULATE_WITH_EXPLANATION, r"(?m)^\s*RESULT\s*:", source=RESPONSE),
)

# Routing: order decides ties
ROUTING_RULES: Tuple[Tuple[AgentType, Pattern], ...] = (
    (AgentType.TAX, re.compile(r"\b(tax|taxes|withholding|fica|medicare|social security|w-2|w-4|1099|paycheck)\b", re.IGNORECASE)),
    (AgentType.EXPENSE, re.compile(r"\b(expense|expenses|receipt|categori[sz]e|deduct\w*|business expense|travel|meals|entertainment)\b", re.IGNORECASE)),
    (AgentType.COMPLIANCE, re.compile(r"\b(compliance|compliant|regulation|regulations|deadline|deadlines|file|filing|form|requirement|requirements|law|legal)\b", re.IGNORECASE)),
    (AgentType.DATA, re.compile(r"\b(analy[sz]e|analysis|forecast|trend|trends|statistics?|variance|data)\b", re.IGNORECASE)),
    (AgentType.RESEARCH, re.compile(r"\b(research|latest|news|updates?|recent|changes?)\b", re.IGNORECASE)),
    (AgentType.REASONING, re.compile(r"\b(why|explain|reason|scenarios?|compare|should i|should we)\b", re.IGNORECASE)),
)


def match_agent_types(text: str) -> List[AgentType]:
    """All agent types whose routing keywords appear, in table order."""
    return [agent_type for agent_type, pattern in ROUTING_RULES if pattern.search(text or "")]


def route_query(text: str) -> AgentType:
    """First matching agent type, or GENERAL."""
    matches = match_agent_types(text)
    return matches[0] if matches else AgentType.GENERAL


def parse_agent_type(value: Optional[str]) -> Optional[AgentType]:
    """Agent type from a loose label like "Tax", "data_analysis" or "tax agent"."""
    if not value:
        return None
    label = str(value).strip().lower().replace("-", "_").replace(" ", "_")
    label = label.removesuffix("_agent")
    aliases = {"data_analysis": "data", "analysis": "data", "taxes": "tax", "expenses": "expense"}
    label = aliases.get(label, label)
    try:
        return AgentType(label)
    except ValueError:
        return None
