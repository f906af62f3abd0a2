"""Research and search schemas."""

from typing import List, Optional
from pydantic import BaseModel, Field


class SearchResult(BaseModel):
    """Answer text and citation URLs from the hosted search API."""
    content: str = ""
    citations: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return bool(self.content) and not self.error


class ResearchSource(BaseModel):
    title: str
    url: Optional[str] = None
    kind: str = "internet"  # internet | knowledge_base
    relevance: float = 0.5


class ResearchResult(BaseModel):
    query: str
    summary: str = ""
    key_points: List[str] = Field(default_factory=list)
    sources: List[ResearchSource] = Field(default_factory=list)
    error: Optional[str] = None


class TopicUpdate(BaseModel):
    topic: str
    summary: str = ""
    sources: List[str] = Field(default_factory=list)
    error: Optional[str] = None
