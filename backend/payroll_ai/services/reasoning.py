"""Parsers for structured reasoning and calculation answers."""

import re
from typing import Any, Dict, List, Optional, Tuple

from ..schemas.agents.response import ReasoningStep

_STEP_RE = re.compile(
    r"STEP\s+(\d+)\s*:\s*(.*?)(?=\n\s*STEP\s+\d+\s*:|\n\s*FINAL CONCLUSION\s*:|\Z)",
    re.IGNORECASE | re.DOTALL,
)
_FINAL_RE = re.compile(r"FINAL CONCLUSION\s*:\s*(.*)", re.IGNORECASE | re.DOTALL)
_SECTION_NAMES = ("RESULT", "STEPS", "FORMULAS", "EXPLANATION")


def _split_labelled(block: str, label: str) -> Tuple[str, str]:
    """Split ``block`` at ``label:``; returns (before, after)."""
    parts = re.split(rf"\n?\s*{label}\s*:\s*", block, maxsplit=1, flags=re.IGNORECASE)
    if len(parts) == 2:
        return parts[0].strip(), parts[1].strip()
    return block.strip(), ""


def parse_reasoning_steps(text: str) -> Dict[str, Any]:
    """Parse ``STEP n: ... REASONING: ... CONCLUSION: ...`` blocks.

    Returns:
        Dict with ``steps`` (List[ReasoningStep]) and ``final_conclusion``
    """
    text = text or ""
    steps: List[ReasoningStep] = []
    for match in _STEP_RE.finditer(text):
        number = int(match.group(1))
        body = match.group(2)
        description, rest = _split_labelled(body, "REASONING")
        if rest:
            reasoning, conclusion = _split_labelled(rest, "CONCLUSION")
        else:
            description, conclusion = _split_labelled(description, "CONCLUSION")
            reasoning = ""
        steps.append(ReasoningStep(
            step=number,
            description=description,
            reasoning=reasoning,
            conclusion=conclusion,
        ))

    final = _FINAL_RE.search(text)
    final_conclusion = final.group(1).strip() if final else ""
    if not final_conclusion and steps:
        final_conclusion = steps[-1].conclusion

    return {"steps": steps, "final_conclusion": final_conclusion}


def _section(text: str, name: str) -> Optional[str]:
    others = "|".join(n for n in _SECTION_NAMES if n != name)
    match = re.search(
        rf"{name}\s*:\s*(.*?)(?=\n\s*(?:{others})\s*:|\Z)",
        text,
        re.IGNORECASE | re.DOTALL,
    )
    return match.group(1).strip() if match else None


def _lines(block: Optional[str]) -> List[str]:
    if not block:
        return []
    result = []
    for line in block.splitlines():
        cleaned = re.sub(r"^\s*(?:[-*•]|\d+[.)])\s*", "", line).strip()
        if cleaned:
            result.append(cleaned)
    return result


def parse_calculation(text: str) -> Dict[str, Any]:
    """Parse ``RESULT:``, ``STEPS:``, ``FORMULAS:`` and ``EXPLANATION:`` sections.

    ``result_value`` holds the first number in RESULT when there is one.
    """
    text = text or ""
    result = _section(text, "RESULT")
    result_value = None
    if result:
        number = re.search(r"(-)?\$?\s*(\d[\d,]*(?:\.\d+)?)", result)
        if number:
            result_value = float(number.group(2).replace(",", ""))
            if number.group(1):
                result_value = -result_value

    return {
        "result": result or "",
        "result_value": result_value,
        "steps": _lines(_section(text, "STEPS")),
        "formulas": _lines(_section(text, "FORMULAS")),
        "explanation": _section(text, "EXPLANATION") or "",
    }
