"""Research over hosted search plus a small curated knowledge base."""

import asyncio
import logging
import re
from typing import List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from ..schemas.research import ResearchResult, ResearchSource, SearchResult, TopicUpdate

logger = logging.getLogger(__name__)

DEFAULT_MAX_SOURCES = 5
INTERNET_BASE_RELEVANCE = 0.7

# (source, trigger keywords)
KNOWLEDGE_SOURCES: Tuple[Tuple[ResearchSource, Tuple[str, ...]], ...] = (
    (
        ResearchSource(
            title="IRS Payroll Tax Guide 2024",
            url="https://www.irs.gov/publications/p15",
            kind="knowledge_base",
            relevance=0.9,
        ),
        ("tax", "withholding", "fica", "federal", "irs", "941", "w-2", "w-4"),
    ),
    (
        ResearchSource(
            title="State Payroll Tax Rates Database",
            kind="knowledge_base",
            relevance=0.8,
        ),
        ("state", "rate", "unemployment", "sui", "disability"),
    ),
)


def knowledge_sources_for(query: str) -> List[ResearchSource]:
    lowered = query.lower()
    return [source for source, keywords in KNOWLEDGE_SOURCES if any(k in lowered for k in keywords)]


def internet_sources(citations: Sequence[str]) -> List[ResearchSource]:
    """Rank citation URLs by position, with government domains first."""
    sources = []
    for i, url in enumerate(citations):
        host = urlparse(url).netloc or url
        relevance = max(0.1, INTERNET_BASE_RELEVANCE - 0.05 * i)
        if host.endswith(".gov"):
            relevance = min(1.0, relevance + 0.2)
        sources.append(ResearchSource(title=host, url=url, kind="internet", relevance=round(relevance, 3)))
    return sources


_SUMMARY_RE = re.compile(r"SUMMARY:\s*(.*?)(?=\n\s*KEY POINTS:|\Z)", re.IGNORECASE | re.DOTALL)
_KEY_POINTS_RE = re.compile(r"KEY POINTS:\s*(.*?)(?=\n\s*[A-Z][A-Z ]+:|\Z)", re.IGNORECASE | re.DOTALL)
_BULLET_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+(.*\S)\s*$")


def parse_research_answer(text: str) -> Tuple[str, List[str]]:
    """Split an answer into (summary, key points).

    Uses the SUMMARY: and KEY POINTS: sections when present, otherwise the first
    paragraph and any bullet lines.
    """
    text = (text or "").strip()
    if not text:
        return "", []

    summary_match = _SUMMARY_RE.search(text)
    if summary_match:
        summary = summary_match.group(1).strip()
    else:
        summary = text.split("\n\n", 1)[0].strip()

    points_block = text
    points_match = _KEY_POINTS_RE.search(text)
    if points_match:
        points_block = points_match.group(1)

    key_points = []
    for line in points_block.splitlines():
        bullet = _BULLET_RE.match(line)
        if bullet:
            key_points.append(bullet.group(1))

    return summary, key_points


async def conduct_research(
    query: str,
    search_client,
    max_sources: int = DEFAULT_MAX_SOURCES,
    recency: str = "month",
) -> ResearchResult:
    """Search, then merge internet and knowledge-base sources by relevance.

    A failed search with no citations gives a result carrying only ``error``.
    """
    prompt = (
        f"{query}\n\nFormat the answer as:\nSUMMARY: <two or three sentences>\n"
        "KEY POINTS:\n- <point>\n- <point>"
    )
    result: SearchResult = await search_client.search(prompt, recency=recency)
    if result.error:
        logger.warning(f"[Research] Search failed for '{query[:50]}': {result.error}")
        if not result.citations:
            return ResearchResult(query=query, error=result.error)

    summary, key_points = parse_research_answer(result.content)

    sources = internet_sources(result.citations) + knowledge_sources_for(query)
    sources.sort(key=lambda s: s.relevance, reverse=True)

    return ResearchResult(
        query=query,
        summary=summary,
        key_points=key_points,
        sources=sources[:max_sources],
    )


async def track_updates(
    topics: Sequence[str],
    search_client,
    recency: str = "week",
) -> List[TopicUpdate]:
    """One recency-filtered search per topic, run concurrently."""

    async def _one(topic: str) -> TopicUpdate:
        result = await search_client.search(
            f"What changed recently regarding {topic} for US employers?", recency=recency
        )
        summary, _ = parse_research_answer(result.content)
        return TopicUpdate(topic=topic, summary=summary, sources=result.citations, error=result.error)

    return list(await asyncio.gather(*(_one(t) for t in topics)))


def extract_topics(text: str, default: Optional[List[str]] = None) -> List[str]:
    """Topics listed after 'updates on/about', split on commas and 'and'."""
    match = re.search(r"updates?\s+(?:on|about|to|for)\s+(.+?)(?:[?.!]|$)", text, re.IGNORECASE)
    if not match:
        return list(default or [])
    parts = re.split(r",|\band\b", match.group(1))
    return [p.strip() for p in parts if p.strip()]
