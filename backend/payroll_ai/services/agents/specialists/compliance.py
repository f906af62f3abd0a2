"""Compliance agent: requirements, deadlines and filing status."""

import asyncio
import logging
import re
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from ....schemas.agents.intent import AgentType, Intent
from ....schemas.agents.response import ToolCall
from ....schemas.compliance import ComplianceStatus, ComplianceStatusResult
from ...compliance import (
    DEFAULT_CATALOG,
    ComplianceCatalog,
    calculate_next_deadline,
    check_compliance_status,
    get_compliance_requirements,
    get_upcoming_deadlines,
)
from ..base import BaseAgent
from ..extraction import extract_employee_count, extract_industry, extract_state
from ..intents import COMPLIANCE_RULES, IntentClassifier
from ..memory import ConversationMemory

logger = logging.getLogger(__name__)

COMPLIANCE_SYSTEM_PROMPT = """You are a payroll and employment compliance specialist for US employers.
You explain federal, state and industry filing obligations, their deadlines and the
penalties for missing them. Name the form or regulation for every obligation you mention.
Do not give legal advice; recommend confirming with the agency or counsel when a case is unusual."""

_DAYS_AHEAD_RE = re.compile(r"\b(?:next|coming|within)\s+(\d{1,3})\s+days?\b", re.IGNORECASE)
_CATEGORIES = ("tax", "benefits", "reporting", "safety")


def extract_days_ahead(text: str, default: int = 30) -> int:
    match = _DAYS_AHEAD_RE.search(text or "")
    if match:
        return int(match.group(1))
    lowered = (text or "").lower()
    if "next quarter" in lowered or "this quarter" in lowered:
        return 90
    if "this year" in lowered or "next year" in lowered:
        return 365
    return default


def extract_deadline_category(text: str) -> Optional[str]:
    lowered = (text or "").lower()
    for category in _CATEGORIES:
        if re.search(rf"\b{category}\b", lowered):
            return category
    return None


def _filing_date(record: Dict[str, Any]) -> Optional[date]:
    value = record.get("filing_date") or record.get("created_at")
    if not value:
        return None
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()


class ComplianceAgent(BaseAgent):
    """Looks up obligations and deadlines from the compliance catalog."""

    def __init__(
        self,
        catalog: ComplianceCatalog = DEFAULT_CATALOG,
        today: Callable[[], date] = date.today,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.catalog = catalog
        self.today = today
        self._classifier = IntentClassifier(COMPLIANCE_RULES)

    @property
    def agent_type(self) -> AgentType:
        return AgentType.COMPLIANCE

    @property
    def name(self) -> str:
        return "Compliance Agent"

    @property
    def description(self) -> str:
        return "Tracks payroll filing requirements, deadlines and compliance status"

    @property
    def capabilities(self) -> List[str]:
        return ["compliance requirements", "upcoming deadlines", "compliance status"]

    @property
    def system_prompt(self) -> str:
        return COMPLIANCE_SYSTEM_PROMPT

    @property
    def classifier(self) -> IntentClassifier:
        return self._classifier

    async def prepare(self, memory: ConversationMemory, context: Optional[Dict[str, Any]] = None) -> None:
        """Load the company record named in the context into this conversation."""
        company_id = (context or {}).get("company_id")
        company = memory.state.get("company") or {}
        if company_id and company_id != company.get("id"):
            record = await asyncio.to_thread(self.store.get_company, company_id)
            memory.state["company"] = record or {"id": company_id}

    def _profile(self, query: str, company: Dict[str, Any]) -> Dict[str, Any]:
        """State, headcount and industry from the query, else the company record."""
        return {
            "state": extract_state(query, company.get("state")),
            "employee_count": extract_employee_count(query, company.get("employee_count")),
            "industry": extract_industry(query, company.get("industry")),
        }

    async def execute_tool(
        self,
        intent: Intent,
        text: str,
        query: str,
        memory: Optional[ConversationMemory] = None,
    ) -> Tuple[Dict[str, Any], Any]:
        today = self.today()
        company = (memory.state.get("company") if memory is not None else None) or {}

        if intent == Intent.GET_COMPLIANCE_REQUIREMENTS:
            arguments = self._profile(query, company)
            return arguments, get_compliance_requirements(self.catalog, **arguments)

        if intent == Intent.GET_UPCOMING_DEADLINES:
            arguments = {
                **self._profile(query, company),
                "days_ahead": extract_days_ahead(query),
                "category": extract_deadline_category(query),
            }
            return arguments, get_upcoming_deadlines(self.catalog, today, **arguments)

        if intent == Intent.CHECK_COMPLIANCE_STATUS:
            arguments = {**self._profile(query, company), "company_id": company.get("id")}
            if not arguments["company_id"]:
                return arguments, {"error": "A company id is required to check compliance status"}
            return arguments, await self.check_status(arguments, today)

        raise ValueError(f"Compliance agent has no tool for {intent}")

    async def check_status(self, profile: Dict[str, Any], today: date) -> List[ComplianceStatusResult]:
        requirements = get_compliance_requirements(
            self.catalog, profile["state"], profile["employee_count"], profile["industry"]
        )
        results = []
        for requirement in requirements:
            ok, record = await asyncio.to_thread(
                self.store.get_latest_compliance_record, profile["company_id"], requirement.id,
            )
            if not ok:
                logger.warning(f"[ComplianceAgent] No filing record lookup for {requirement.id}; status unknown")
                results.append(ComplianceStatusResult(
                    requirement_id=requirement.id,
                    status=ComplianceStatus.UNKNOWN,
                    next_deadline=calculate_next_deadline(requirement, today),
                    error="Compliance records unavailable",
                ))
                continue
            last_filing = _filing_date(record) if record else None
            results.append(check_compliance_status(requirement, last_filing, today))
        return results

    def format_tool_results(self, tool_calls: List[ToolCall]) -> str:
        lines = []
        for call in tool_calls:
            if call.name == Intent.GET_COMPLIANCE_REQUIREMENTS.value and isinstance(call.result, list):
                lines.append(f"- {call.name}:")
                for req in call.result:
                    lines.append(f"  * {req['name']} ({req['scope']}): {req['description']}")
            else:
                lines.append(f"- {call.name}: {call.result}")
        return "\n".join(lines)

