"""Perplexity search client used by the research agent."""

import logging
from typing import Optional

import httpx

from ...config import settings
from ...schemas.research import SearchResult

logger = logging.getLogger(__name__)

PERPLEXITY_URL = "https://api.perplexity.ai/chat/completions"

SEARCH_SYSTEM_PROMPT = (
    "You are a research assistant for US payroll, tax and employment compliance. "
    "Answer precisely and cite authoritative sources, preferring government websites."
)


class PerplexityClient:
    """Thin async wrapper over the Perplexity chat-completions endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: float = 30.0,
    ):
        self.api_key = api_key if api_key is not None else settings.PERPLEXITY_API_KEY
        self.model = model or settings.PERPLEXITY_MODEL
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def search(
        self,
        query: str,
        recency: str = "month",
        max_tokens: int = 1024,
        temperature: float = 0.2,
    ) -> SearchResult:
        """Run a search-grounded completion.

        Args:
            query: Question to research
            recency: search_recency_filter value (day, week, month, year)
            max_tokens: Maximum tokens in the answer
            temperature: Sampling temperature

        Returns:
            SearchResult; ``error`` is set and ``content`` empty on failure
        """
        if not self.configured:
            logger.warning("[Search] PERPLEXITY_API_KEY not found in environment")
            return SearchResult(error="Search is not configured")

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SEARCH_SYSTEM_PROMPT},
                {"role": "user", "content": query},
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
            "search_recency_filter": recency,
            "return_citations": True,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(PERPLEXITY_URL, json=payload, headers=headers)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"[Search] HTTP error: {e.response.status_code}")
            return SearchResult(error=f"Search API error: {e.response.status_code}")
        except httpx.HTTPError as e:
            logger.error(f"[Search] Request failed: {e}")
            return SearchResult(error=f"Search request failed: {e}")
        except ValueError as e:
            logger.error(f"[Search] Response was not JSON: {e}")
            return SearchResult(error="Search API returned an unreadable response")

        if not isinstance(data, dict):
            logger.error(f"[Search] Unexpected response body: {type(data).__name__}")
            return SearchResult(error="Search API returned an unreadable response")

        choices = data.get("choices") or []
        content = ""
        if choices:
            content = (choices[0].get("message") or {}).get("content", "") or ""

        return SearchResult(content=content, citations=list(data.get("citations") or []))


def format_with_citations(result: SearchResult) -> str:
    """Answer text followed by a numbered source list."""
    if not result.citations:
        return result.content
    sources = "\n".join(f"[{i}] {url}" for i, url in enumerate(result.citations, start=1))
    return f"{result.content}\n\nSources:\n{sources}"
