"""Anthropic client: response checks, JSON extraction, rate limiting, HTTP handling."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from payroll_ai.config import settings
from payroll_ai.services.agents import llm
from payroll_ai.services.agents.llm import (
    call_anthropic_api,
    extract_json,
    get_rate_limit_status,
    is_valid_llm_response,
    reset_rate_limit_state,
)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture(autouse=True)
def clean_rate_limit():
    reset_rate_limit_state()
    yield
    reset_rate_limit_state()


@pytest.fixture
def api_key(monkeypatch):
    monkeypatch.setattr(settings, "ANTHROPIC_API_KEY", "test-key")


def _mock_http(response):
    client = MagicMock()
    client.post = AsyncMock(return_value=response)
    context = MagicMock()
    context.__aenter__.return_value = client
    context.__aexit__.return_value = False
    return context, client


def _ok_response(text):
    response = MagicMock()
    response.raise_for_status = MagicMock()
    response.json.return_value = {"content": [{"type": "text", "text": text}]}
    return response


# =============================================================================
# RESPONSE CHECKS
# =============================================================================

class TestResponseChecks:

    @pytest.mark.parametrize("response", [
        None,
        "",
        "   ",
        "API error: 500 - Internal",
        "Error calling LLM: timeout",
        "Rate limit exceeded: Daily limit reached. Resets at midnight.",
    ])
    def test_unusable_responses(self, response):
        assert not is_valid_llm_response(response)

    def test_usable_response(self):
        assert is_valid_llm_response("Federal withholding is $4,016.")

    def test_extract_plain_json(self):
        assert extract_json('{"scores": {"tax": 9}}') == {"scores": {"tax": 9}}

    def test_extract_fenced_json(self):
        text = '```json\n{"relevantAgents": ["tax"]}\n```'
        assert extract_json(text) == {"relevantAgents": ["tax"]}

    def test_extract_json_from_prose(self):
        text = 'Here are the scores: {"tax": 8, "compliance": 3} as requested.'
        assert extract_json(text) == {"tax": 8, "compliance": 3}

    def test_extract_json_list(self):
        assert extract_json("[1, 2]") == [1, 2]

    def test_unparseable_returns_none(self):
        assert extract_json("no json here") is None
        assert extract_json("{broken: json") is None
        assert extract_json("API error: 529 - Overloaded") is None


# =============================================================================
# RATE LIMITING
# =============================================================================

class TestRateLimit:

    def test_fresh_status(self):
        status = get_rate_limit_status()
        assert status["daily_remaining"] == llm.DAILY_LIMIT
        assert status["minute_remaining"] == llm.PER_MINUTE_LIMIT
        assert "error" not in status

    def test_exhausted_daily_limit(self, monkeypatch):
        monkeypatch.setattr(llm, "DAILY_LIMIT", 0)
        status = get_rate_limit_status()
        assert status["error"] == "Daily limit reached. Resets at midnight."

    def test_call_refused_when_limited(self, api_key, monkeypatch):
        monkeypatch.setattr(llm, "PER_MINUTE_LIMIT", 0)
        with patch("payroll_ai.services.agents.llm.httpx.AsyncClient") as client_cls:
            result = asyncio.run(call_anthropic_api("hello"))
        assert result == "Rate limit exceeded: Rate limit reached. Wait a minute."
        client_cls.assert_not_called()


# =============================================================================
# API CALLS
# =============================================================================

class TestCallAnthropicApi:

    def test_no_api_key_returns_none(self, monkeypatch):
        monkeypatch.setattr(settings, "ANTHROPIC_API_KEY", "")
        assert asyncio.run(call_anthropic_api("hello")) is None

    def test_successful_call(self, api_key):
        context, client = _mock_http(_ok_response("Net pay is $4,182.83."))
        history = [
            {"role": "user", "content": "earlier question"},
            {"role": "assistant", "content": "earlier answer"},
            {"role": "system", "content": "dropped"},
            {"role": "user", "content": ""},
        ]
        with patch("payroll_ai.services.agents.llm.httpx.AsyncClient", return_value=context):
            result = asyncio.run(call_anthropic_api("What is my net pay?", system="be brief", history=history))

        assert result == "Net pay is $4,182.83."
        payload = client.post.call_args.kwargs["json"]
        assert payload["system"] == "be brief"
        assert [m["content"] for m in payload["messages"]] == [
            "earlier question", "earlier answer", "What is my net pay?",
        ]
        assert client.post.call_args.kwargs["headers"]["x-api-key"] == "test-key"
        assert get_rate_limit_status()["daily_remaining"] == llm.DAILY_LIMIT - 1

    def test_system_prompt_omitted_when_empty(self, api_key):
        context, client = _mock_http(_ok_response("ok"))
        with patch("payroll_ai.services.agents.llm.httpx.AsyncClient", return_value=context):
            asyncio.run(call_anthropic_api("hi"))
        assert "system" not in client.post.call_args.kwargs["json"]

    def test_http_error_becomes_error_string(self, api_key):
        request = httpx.Request("POST", llm.ANTHROPIC_URL)
        error_response = httpx.Response(529, json={"error": {"message": "Overloaded"}}, request=request)
        response = MagicMock()
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "overloaded", request=request, response=error_response,
        )
        context, _ = _mock_http(response)
        with patch("payroll_ai.services.agents.llm.httpx.AsyncClient", return_value=context):
            result = asyncio.run(call_anthropic_api("hi"))

        assert result == "API error: 529 - Overloaded"
        assert not is_valid_llm_response(result)
        # Failed calls are not counted
        assert get_rate_limit_status()["daily_remaining"] == llm.DAILY_LIMIT

    def test_transport_error_becomes_error_string(self, api_key):
        client = MagicMock()
        client.post = AsyncMock(side_effect=httpx.ConnectError("connection refused"))
        context = MagicMock()
        context.__aenter__.return_value = client
        context.__aexit__.return_value = False
        with patch("payroll_ai.services.agents.llm.httpx.AsyncClient", return_value=context):
            result = asyncio.run(call_anthropic_api("hi"))
        assert result == "Error calling LLM: connection refused"
