"""Heuristic confidence scoring.

These weights are placeholder policy, not a calibrated model. Keep them in one
place so they can be tuned or replaced without touching the agents.
"""

import re
from dataclasses import dataclass
from typing import Sequence, Tuple
from urllib.parse import urlparse

HEDGE_WORDS: Tuple[str, ...] = (
    "may",
    "might",
    "could be",
    "possibly",
    "unclear",
    "ambiguous",
    "additional information needed",
)


@dataclass(frozen=True)
class ConfidencePolicy:
    base: float = 0.7
    per_source: float = 0.05
    max_source_bonus: float = 0.15
    gov_source_bonus: float = 0.1
    per_hedge: float = 0.05
    max_hedge_penalty: float = 0.3
    per_tool_result: float = 0.1
    max_tool_bonus: float = 0.2
    apology: float = 0.1


DEFAULT_POLICY = ConfidencePolicy()


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def count_hedges(text: str, hedges: Sequence[str] = HEDGE_WORDS) -> int:
    lowered = (text or "").lower()
    return sum(len(re.findall(rf"\b{re.escape(h)}\b", lowered)) for h in hedges)


def has_gov_source(sources: Sequence[str]) -> bool:
    for source in sources:
        host = urlparse(source).netloc or source
        if host.lower().rstrip("/").endswith(".gov"):
            return True
    return False


def score_confidence(
    answer: str,
    sources: Sequence[str] = (),
    tool_results: int = 0,
    policy: ConfidencePolicy = DEFAULT_POLICY,
) -> float:
    """Clamp(base + source bonus + .gov bonus + tool bonus - hedge penalty)."""
    score = policy.base
    score += min(policy.max_source_bonus, policy.per_source * len(sources))
    if has_gov_source(sources):
        score += policy.gov_source_bonus
    score += min(policy.max_tool_bonus, policy.per_tool_result * tool_results)
    score -= min(policy.max_hedge_penalty, policy.per_hedge * count_hedges(answer))
    return round(clamp(score), 3)
