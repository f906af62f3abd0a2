"""Supabase-backed persistence for agents.

Every read falls back to an empty result and every write returns False when
Supabase is unavailable or a query fails; callers then keep using built-in
defaults.
"""

import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..config import settings
from ..supabase_client import get_supabase

logger = logging.getLogger(__name__)


def _timestamp(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value).isoformat()
    return str(value) if value else datetime.now().isoformat()


class PayrollStore:
    """Table access for knowledge, categories, compliance records and conversations."""

    def __init__(self, client_factory: Callable[[], Any] = get_supabase):
        self._client_factory = client_factory

    @property
    def client(self):
        return self._client_factory()

    @property
    def available(self) -> bool:
        return self.client is not None

    def _select(self, description: str, build) -> List[Dict[str, Any]]:
        client = self.client
        if client is None:
            return []
        try:
            response = build(client).execute()
            return list(response.data or [])
        except Exception as e:
            logger.warning(f"[Store] Failed to load {description}: {e}")
            return []

    def _write(self, description: str, build) -> Optional[List[Dict[str, Any]]]:
        client = self.client
        if client is None:
            return None
        try:
            response = build(client).execute()
            return list(response.data or [])
        except Exception as e:
            logger.warning(f"[Store] Failed to write {description}: {e}")
            return None

    # Knowledge base

    def load_tax_rate_rows(self) -> List[Dict[str, Any]]:
        return self._select(
            "tax rates",
            lambda c: c.table("knowledge_base").select("*").eq("category", "tax_rates"),
        )

    def search_knowledge(
        self,
        query: str,
        category: Optional[str] = None,
        limit: int = 5,
        embedding: Optional[List[float]] = None,
    ) -> List[Dict[str, Any]]:
        """Knowledge_base rows relevant to ``query``.

        With an embedding, rows come from the ``match_documents`` similarity
        function. Without one, or when it finds nothing, falls back to a
        keyword lookup on the longest query term.
        """
        if embedding:
            rows = self.match_documents(embedding, category, limit)
            if rows:
                return rows

        terms = sorted((t for t in query.split() if len(t) > 3), key=len, reverse=True)
        if not terms:
            return []
        term = terms[0].strip("?.,!\"'")

        def build(c):
            q = c.table("knowledge_base").select("id,title,content,category").ilike("content", f"%{term}%")
            if category:
                q = q.eq("category", category)
            return q.limit(limit)

        return self._select("knowledge", build)

    def match_documents(
        self,
        embedding: List[float],
        category: Optional[str] = None,
        limit: int = 5,
        threshold: Optional[float] = None,
    ) -> List[Dict[str, Any]]:
        params = {
            "query_embedding": embedding,
            "match_threshold": settings.KNOWLEDGE_MATCH_THRESHOLD if threshold is None else threshold,
            "match_count": limit,
        }

        def build(c):
            q = c.rpc("match_documents", params)
            if category:
                q = q.eq("category", category)
            return q

        return self._select("knowledge matches", build)

    # Companies and compliance

    def get_company(self, company_id: str) -> Optional[Dict[str, Any]]:
        rows = self._select("company", lambda c: c.table("companies").select("*").eq("id", company_id).limit(1))
        return rows[0] if rows else None

    def get_latest_compliance_record(
        self,
        company_id: str,
        requirement_id: str,
    ) -> Tuple[bool, Optional[Dict[str, Any]]]:
        """Most recent filing for a requirement.

        Returns:
            (ok, record). ``ok`` is False when the store could not be queried.
        """
        client = self.client
        if client is None:
            return False, None
        try:
            response = (
                client.table("compliance_records")
                .select("*")
                .eq("company_id", company_id)
                .eq("requirement_id", requirement_id)
                .order("created_at", desc=True)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.warning(f"[Store] Failed to load compliance record {requirement_id}: {e}")
            return False, None
        rows = response.data or []
        return True, (rows[0] if rows else None)

    # Expense categories

    def load_custom_categories(self, company_id: str) -> List[Dict[str, Any]]:
        return self._select(
            "expense categories",
            lambda c: c.table("expense_categories").select("*").eq("company_id", company_id),
        )

    def insert_expense_category(self, company_id: str, row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        rows = self._write(
            "expense category",
            lambda c: c.table("expense_categories").insert({**row, "company_id": company_id}),
        )
        return rows[0] if rows else None

    # Results and conversations

    def save_analysis_result(
        self,
        agent_type: str,
        query: str,
        result: Any,
        confidence: float,
        conversation_id: Optional[str] = None,
    ) -> bool:
        row = {
            "agent_type": agent_type,
            "query": query,
            "result": json.loads(json.dumps(result, default=str)),
            "confidence": confidence,
            "conversation_id": conversation_id,
            "created_at": datetime.now().isoformat(),
        }
        return self._write("analysis result", lambda c: c.table("analysis_results").insert(row)) is not None

    def save_conversation(
        self,
        conversation_id: str,
        agent_type: str,
        messages: List[Dict[str, Any]],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Upsert the conversation row and append its messages."""
        conversation = {
            "id": conversation_id,
            "agent_type": agent_type,
            "metadata": metadata or {},
            "updated_at": datetime.now().isoformat(),
        }
        if self._write("conversation", lambda c: c.table("ai_conversations").upsert(conversation)) is None:
            return False
        if not messages:
            return True

        rows = [
            {
                "conversation_id": conversation_id,
                "role": m["role"],
                "content": m["content"],
                "created_at": _timestamp(m.get("timestamp")),
            }
            for m in messages
        ]
        return self._write("messages", lambda c: c.table("ai_messages").insert(rows)) is not None

    def get_conversation_agent_type(self, conversation_id: str) -> Optional[str]:
        rows = self._select(
            "conversation",
            lambda c: c.table("ai_conversations").select("agent_type").eq("id", conversation_id).limit(1),
        )
        return rows[0].get("agent_type") if rows else None


# Global store instance
_store = PayrollStore()


def get_store() -> PayrollStore:
    """Get the global store."""
    return _store
