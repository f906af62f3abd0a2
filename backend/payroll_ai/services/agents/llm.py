"""Anthropic LLM client for the agent system."""

import json
import logging
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ...config import settings

logger = logging.getLogger(__name__)

ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"

# Rate limiting state (in-memory - resets on server restart)
_rate_limit_state = {
    "requests_today": 0,
    "last_reset": date.today(),
    "requests_per_minute": [],
}

DAILY_LIMIT = 1500
PER_MINUTE_LIMIT = 50

ERROR_PREFIXES = ("API error:", "Error calling LLM:", "Rate limit exceeded:")


def _check_rate_limit() -> Tuple[bool, Dict[str, Any]]:
    """Check if we're within rate limits. Returns (allowed, status_info)."""
    today = date.today()

    # Reset daily counter if new day
    if _rate_limit_state["last_reset"] != today:
        _rate_limit_state["requests_today"] = 0
        _rate_limit_state["last_reset"] = today

    # Clean up old minute timestamps
    now = datetime.now()
    _rate_limit_state["requests_per_minute"] = [
        ts for ts in _rate_limit_state["requests_per_minute"]
        if (now - ts).total_seconds() < 60
    ]

    daily_remaining = DAILY_LIMIT - _rate_limit_state["requests_today"]
    minute_remaining = PER_MINUTE_LIMIT - len(_rate_limit_state["requests_per_minute"])

    status = {
        "daily_remaining": daily_remaining,
        "minute_remaining": minute_remaining,
        "daily_limit": DAILY_LIMIT,
        "minute_limit": PER_MINUTE_LIMIT,
    }

    if daily_remaining <= 0:
        return False, {**status, "error": "Daily limit reached. Resets at midnight."}
    if minute_remaining <= 0:
        return False, {**status, "error": "Rate limit reached. Wait a minute."}

    return True, status


def _record_llm_request():
    """Record an LLM request for rate limiting."""
    _rate_limit_state["requests_today"] += 1
    _rate_limit_state["requests_per_minute"].append(datetime.now())


def get_rate_limit_status() -> Dict[str, Any]:
    """Get current rate limit status."""
    _, status = _check_rate_limit()
    return status


def reset_rate_limit_state() -> None:
    _rate_limit_state["requests_today"] = 0
    _rate_limit_state["last_reset"] = date.today()
    _rate_limit_state["requests_per_minute"] = []


async def call_anthropic_api(
    prompt: str,
    system: str = "",
    history: Optional[List[Dict[str, str]]] = None,
    model: Optional[str] = None,
    temperature: float = 0.2,
    max_tokens: int = 2000,
    timeout: float = 60.0,
) -> Optional[str]:
    """Call the Anthropic Messages API.

    Args:
        prompt: The user turn to send
        system: Optional system prompt
        history: Earlier turns as {"role", "content"} dicts, oldest first
        model: Model id (defaults to ANTHROPIC_MODEL)
        temperature: Model temperature (0 = deterministic, 1 = creative)
        max_tokens: Maximum tokens in the reply
        timeout: Request timeout in seconds

    Returns:
        Response text, an error string starting with one of ERROR_PREFIXES,
        or None when no API key is configured
    """
    api_key = settings.ANTHROPIC_API_KEY
    if not api_key:
        logger.warning("[LLM] ANTHROPIC_API_KEY not found in environment")
        return None

    allowed, status = _check_rate_limit()
    if not allowed:
        logger.warning(f"[LLM] Rate limit exceeded: {status}")
        return f"Rate limit exceeded: {status.get('error', 'Try again later.')}"

    logger.debug(f"[LLM] Making API call (rate limit status: {status})")

    messages = [
        {"role": m["role"], "content": m["content"]}
        for m in (history or [])
        if m.get("role") in ("user", "assistant") and m.get("content")
    ]
    messages.append({"role": "user", "content": prompt})

    payload: Dict[str, Any] = {
        "model": model or settings.ANTHROPIC_MODEL,
        "max_tokens": max_tokens,
        "temperature": temperature,
        "messages": messages,
    }
    if system:
        payload["system"] = system

    headers = {
        "x-api-key": api_key,
        "anthropic-version": settings.ANTHROPIC_VERSION,
        "content-type": "application/json",
    }

    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(ANTHROPIC_URL, json=payload, headers=headers)
            response.raise_for_status()
            data = response.json()

            _record_llm_request()

            blocks = data.get("content", [])
            text = "".join(b.get("text", "") for b in blocks if b.get("type") == "text")
            return text or None
    except httpx.HTTPStatusError as e:
        # Include response body for debugging
        try:
            error_detail = e.response.json().get("error", {}).get("message", "")
        except ValueError:
            error_detail = e.response.text[:200] if e.response.text else ""
        logger.error(f"[LLM] HTTP error: {e.response.status_code} - {error_detail}")
        return f"API error: {e.response.status_code} - {error_detail}"
    except Exception as e:
        logger.exception(f"[LLM] Exception during API call: {e}")
        return f"Error calling LLM: {str(e)}"


def is_valid_llm_response(response: Optional[str]) -> bool:
    """Check if LLM response is valid and usable."""
    if not response or not response.strip():
        return False
    return not response.startswith(ERROR_PREFIXES)


def extract_json(response: Optional[str]) -> Optional[Any]:
    """Parse JSON out of an LLM reply, tolerating code fences and surrounding prose."""
    if not is_valid_llm_response(response):
        return None

    text = response.strip()
    # Remove markdown code blocks if present
    if text.startswith("```"):
        text = re.sub(r"^```(?:json)?\s*", "", text)
        text = re.sub(r"\s*```$", "", text)

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    match = re.search(r"\{.*\}", text, re.DOTALL)
    if not match:
        return None
    try:
        return json.loads(match.group())
    except json.JSONDecodeError:
        logger.debug(f"[LLM] Could not parse JSON from response: {text[:100]}")
        return None
