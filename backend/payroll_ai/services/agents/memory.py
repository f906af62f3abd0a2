"""Conversation memory for agents and the brain."""

import time
import uuid
from typing import Any, Dict, List, Optional


class ConversationMemory:
    """Bounded list of recent entries (messages or brain exchanges)."""

    MAX_ENTRIES = 10

    def __init__(self, conversation_id: Optional[str] = None):
        self.conversation_id = conversation_id or str(uuid.uuid4())
        self.entries: List[Dict[str, Any]] = []
        # Per-conversation working data (company profile, custom catalog, ...)
        self.state: Dict[str, Any] = {}
        self.last_accessed: float = time.time()

    def add(self, role: str, content: str, **extra: Any) -> None:
        """Add an entry, keeping only the last MAX_ENTRIES.

        Args:
            role: "user", "assistant" or an agent name
            content: Entry text
            **extra: Additional fields stored with the entry (agent_type, confidence, ...)
        """
        self.entries.append({
            "role": role,
            "content": content,
            "timestamp": time.time(),
            **extra,
        })
        # Keep only last 10 entries
        if len(self.entries) > self.MAX_ENTRIES:
            self.entries = self.entries[-self.MAX_ENTRIES:]
        self.last_accessed = time.time()

    def last_value(self, key: str) -> Optional[Any]:
        """Most recent entry value for ``key``, e.g. the last agent_type used."""
        for entry in reversed(self.entries):
            if entry.get(key):
                return entry[key]
        return None

    def clear(self) -> None:
        self.entries = []
        self.state = {}


class ConversationRegistry:
    """Conversation memories keyed by id, with TTL cleanup."""

    TTL_SECONDS = 30 * 60  # 30 minutes
    MAX_CONVERSATIONS = 1000

    def __init__(self):
        self._conversations: Dict[str, ConversationMemory] = {}

    def get_or_create(self, conversation_id: Optional[str] = None) -> ConversationMemory:
        self._maybe_cleanup()

        if conversation_id and conversation_id in self._conversations:
            memory = self._conversations[conversation_id]
            memory.last_accessed = time.time()
            return memory

        memory = ConversationMemory(conversation_id)
        self._conversations[memory.conversation_id] = memory
        return memory

    def get(self, conversation_id: str) -> Optional[ConversationMemory]:
        memory = self._conversations.get(conversation_id)
        if memory:
            memory.last_accessed = time.time()
        return memory

    def discard(self, conversation_id: str) -> None:
        self._conversations.pop(conversation_id, None)

    def clear(self) -> None:
        self._conversations.clear()

    def _maybe_cleanup(self) -> None:
        """Remove expired conversations."""
        now = time.time()
        expired = [
            cid for cid, memory in self._conversations.items()
            if now - memory.last_accessed > self.TTL_SECONDS
        ]
        for cid in expired:
            del self._conversations[cid]

        # If still over limit, remove oldest
        if len(self._conversations) > self.MAX_CONVERSATIONS:
            oldest = sorted(self._conversations.items(), key=lambda x: x[1].last_accessed)
            for cid, _ in oldest[:len(self._conversations) - self.MAX_CONVERSATIONS]:
                del self._conversations[cid]

    def count(self) -> int:
        return len(self._conversations)


# Global registry instance
_conversation_registry = ConversationRegistry()


def get_conversation_registry() -> ConversationRegistry:
    """Get the global conversation registry."""
    return _conversation_registry
