"""Confidence heuristics, conversation memory and trace helpers."""

import time

import pytest

from payroll_ai.schemas.agents.trace import ExecutionTrace, TraceEventType
from payroll_ai.services.agents.confidence import (
    ConfidencePolicy,
    count_hedges,
    has_gov_source,
    score_confidence,
)
from payroll_ai.services.agents.memory import ConversationMemory, ConversationRegistry
from payroll_ai.services.agents.tracing import format_trace_summary, trace_llm_call, trace_tool_call


# =============================================================================
# CONFIDENCE
# =============================================================================

class TestConfidence:

    def test_base_score(self):
        assert score_confidence("Your net pay is $4,182.83.") == pytest.approx(0.7)

    def test_hedges_lower_the_score(self):
        assert score_confidence("It may apply, but it might not.") == pytest.approx(0.6)

    def test_hedge_penalty_is_capped(self):
        answer = " ".join(["This may apply."] * 20)
        assert score_confidence(answer) == pytest.approx(0.4)

    def test_gov_source_and_tool_bonus(self):
        score = score_confidence("Done.", ["https://www.irs.gov/publications/p15t"], tool_results=1)
        assert score == pytest.approx(0.95)

    def test_score_is_clamped(self):
        sources = [f"https://www.irs.gov/{i}" for i in range(5)]
        assert score_confidence("Done.", sources, tool_results=4) == 1.0

    def test_custom_policy(self):
        policy = ConfidencePolicy(base=0.5, per_hedge=0.25)
        assert score_confidence("possibly", policy=policy) == pytest.approx(0.25)

    def test_hedges_match_whole_words(self):
        assert count_hedges("The mayor mightily agreed") == 0
        assert count_hedges("It could be unclear") == 2

    def test_gov_detection(self):
        assert has_gov_source(["https://www.dol.gov/agencies/whd"])
        assert has_gov_source(["irs.gov"])
        assert not has_gov_source(["https://example.com/gov", "Knowledge base: FICA"])


# =============================================================================
# MEMORY
# =============================================================================

class TestConversationMemory:

    def test_bounded_to_last_entries(self):
        memory = ConversationMemory()
        for i in range(15):
            memory.add("user", f"message {i}")
        assert len(memory.entries) == ConversationMemory.MAX_ENTRIES
        assert memory.entries[0]["content"] == "message 5"
        assert memory.entries[-1]["content"] == "message 14"

    def test_last_value(self):
        memory = ConversationMemory("conv-1")
        memory.add("user", "q1")
        memory.add("assistant", "a1", agent_type="tax")
        memory.add("user", "q2")
        assert memory.last_value("agent_type") == "tax"
        assert memory.last_value("confidence") is None

    def test_clear(self):
        memory = ConversationMemory()
        memory.add("user", "q")
        memory.state["company"] = {"id": "co-1"}
        memory.clear()
        assert memory.entries == []
        assert memory.state == {}


class TestConversationRegistry:

    def test_get_or_create_reuses_known_id(self):
        registry = ConversationRegistry()
        first = registry.get_or_create("abc")
        assert registry.get_or_create("abc") is first
        assert registry.get("abc") is first
        assert registry.count() == 1

    def test_discard_one(self):
        registry = ConversationRegistry()
        registry.get_or_create("abc")
        registry.get_or_create("def")
        registry.discard("abc")
        registry.discard("missing")
        assert registry.get("abc") is None
        assert registry.count() == 1

    def test_new_id_when_none_given(self):
        registry = ConversationRegistry()
        memory = registry.get_or_create()
        assert memory.conversation_id
        assert registry.get(memory.conversation_id) is memory

    def test_expired_conversations_removed(self):
        registry = ConversationRegistry()
        stale = registry.get_or_create("stale")
        stale.last_accessed = time.time() - ConversationRegistry.TTL_SECONDS - 1
        registry.get_or_create("fresh")
        assert registry.get("stale") is None
        assert registry.count() == 1

    def test_oldest_evicted_over_limit(self, monkeypatch):
        monkeypatch.setattr(ConversationRegistry, "MAX_CONVERSATIONS", 2)
        registry = ConversationRegistry()
        for i, cid in enumerate(["a", "b", "c"]):
            registry.get_or_create(cid).last_accessed = time.time() - 100 + i
        registry.get_or_create("d")
        assert registry.get("a") is None
        assert registry.get("b") is not None


# =============================================================================
# TRACING
# =============================================================================

class TestTracing:

    def test_helpers_are_noops_without_trace(self):
        trace_llm_call(None, "Tax Agent", "prompt")
        trace_tool_call(None, "Tax Agent", "get_tax_rates", {})

    def test_llm_call_preview_truncated(self):
        trace = ExecutionTrace(user_query="q")
        trace_llm_call(trace, "Tax Agent", "x" * 500, "ok", 12.5)
        event = trace.events[0]
        assert trace.llm_calls == 1
        assert event.data["prompt_preview"] == "x" * 100 + "..."
        assert event.data["response_preview"] == "ok"

    def test_summary_lists_failures(self):
        trace = ExecutionTrace(user_query="How much tax?")
        trace_tool_call(trace, "Tax Agent", "calculate_payroll_taxes", {"gross_pay": 100})
        trace.add_event(TraceEventType.AGENT_TIMED_OUT, agent="Research Agent")
        trace.finalize(response="answer", success=True)

        summary = format_trace_summary(trace)
        assert "Tool calls: 1" in summary
        assert "agent_timed_out Research Agent" in summary
        assert trace.agents_failed == 1
