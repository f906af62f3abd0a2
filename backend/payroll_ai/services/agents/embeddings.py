"""Query embeddings for knowledge-base similarity search."""

import logging
from typing import List, Optional

import httpx

from ...config import settings

logger = logging.getLogger(__name__)

OPENAI_EMBEDDINGS_URL = "https://api.openai.com/v1/embeddings"


class EmbeddingClient:
    """Async wrapper over the OpenAI embeddings endpoint.

    ``embed`` returns None when no key is set or the call fails, and callers
    fall back to keyword search.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: float = 15.0,
    ):
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.model = model or settings.EMBEDDING_MODEL
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def embed(self, text: str) -> Optional[List[float]]:
        if not self.configured or not text.strip():
            return None

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {"model": self.model, "input": text}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(OPENAI_EMBEDDINGS_URL, json=payload, headers=headers)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(f"[Embeddings] HTTP error: {e.response.status_code}")
            return None
        except httpx.HTTPError as e:
            logger.warning(f"[Embeddings] Request failed: {e}")
            return None
        except ValueError as e:
            logger.warning(f"[Embeddings] Response was not JSON: {e}")
            return None

        try:
            return [float(x) for x in data["data"][0]["embedding"]]
        except (KeyError, IndexError, TypeError, ValueError):
            logger.warning("[Embeddings] Response had no embedding")
            return None
