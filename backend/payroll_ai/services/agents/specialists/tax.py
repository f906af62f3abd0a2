"""Tax agent: payroll withholding and rate lookups."""

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from ....schemas.agents.intent import AgentType, Intent
from ....schemas.agents.response import ToolCall
from ....schemas.tax import PayrollTaxRequest, PayrollTaxResult
from ...tax_calculator import calculate_payroll_taxes, get_tax_rates, summarize_payroll_result
from ...tax_tables import TaxTables, get_tax_tables
from ..base import BaseAgent, is_error_result
from ..extraction import (
    extract_allowances,
    extract_amount,
    extract_filing_status,
    extract_pay_frequency,
    extract_state,
    extract_ytd_earnings,
    is_annual_amount,
)
from ..intents import TAX_RULES, IntentClassifier
from ..memory import ConversationMemory

logger = logging.getLogger(__name__)

IRS_WITHHOLDING_URL = "https://www.irs.gov/publications/p15t"

TAX_SYSTEM_PROMPT = """You are a payroll tax specialist for US small businesses.
You explain federal income tax withholding, FICA (Social Security and Medicare) and
state income tax. When the user asks for a calculation, state the inputs you assumed
(pay amount, pay frequency, filing status, state) and show the figures.
Use current IRS and state rules. If a detail is missing, say which default you used."""


class TaxAgent(BaseAgent):
    """Answers payroll tax questions with the bracket calculator as its tool."""

    def __init__(self, tables: Optional[TaxTables] = None, **kwargs):
        super().__init__(**kwargs)
        self._tables = tables
        self._classifier = IntentClassifier(TAX_RULES)

    @property
    def tables(self) -> TaxTables:
        return self._tables or get_tax_tables()

    @property
    def agent_type(self) -> AgentType:
        return AgentType.TAX

    @property
    def name(self) -> str:
        return "Tax Agent"

    @property
    def description(self) -> str:
        return "Calculates payroll taxes and explains federal, state and FICA rates"

    @property
    def capabilities(self) -> List[str]:
        return ["payroll tax calculation", "tax rate lookup", "withholding guidance"]

    @property
    def system_prompt(self) -> str:
        return TAX_SYSTEM_PROMPT

    @property
    def classifier(self) -> IntentClassifier:
        return self._classifier

    async def gather_context(self, query: str) -> str:
        rows = await self.search_knowledge(query, category="tax_rates", limit=3)
        return "\n".join(f"{r.get('title', '')}: {str(r.get('content', ''))[:500]}" for r in rows)

    async def execute_tool(
        self,
        intent: Intent,
        text: str,
        query: str,
        memory: Optional[ConversationMemory] = None,
    ) -> Tuple[Dict[str, Any], Any]:
        if intent == Intent.CALCULATE_PAYROLL_TAXES:
            amount = extract_amount(query, extract_amount(text))
            pay_frequency = extract_pay_frequency(query)
            arguments = {
                "gross_pay": amount,
                "pay_frequency": pay_frequency,
                "filing_status": extract_filing_status(query),
                "state": extract_state(query, extract_state(text, "CA")),
                "allowances": extract_allowances(query),
                "ytd_earnings": extract_ytd_earnings(query),
            }
            if amount is None:
                logger.info(f"[TaxAgent] No pay amount in query: {query[:50]}")
                return arguments, {"error": "No pay amount found in the request"}
            if is_annual_amount(query):
                # A salary is split across the paychecks in a year
                arguments["annual_income"] = amount
                arguments["gross_pay"] = round(amount / self.tables.periods_per_year(pay_frequency), 2)
            request = PayrollTaxRequest(
                gross_pay=arguments["gross_pay"],
                pay_frequency=arguments["pay_frequency"],
                filing_status=arguments["filing_status"],
                state=arguments["state"],
                allowances=arguments["allowances"],
                ytd_earnings=arguments["ytd_earnings"],
            )
            return arguments, calculate_payroll_taxes(request, self.tables)

        if intent == Intent.GET_TAX_RATES:
            state = extract_state(query, extract_state(text, "CA"))
            return {"state": state}, get_tax_rates(state, self.tables)

        raise ValueError(f"Tax agent has no tool for {intent}")

    def collect_sources(self, tool_calls: List[ToolCall]) -> List[str]:
        if any(c.name == Intent.CALCULATE_PAYROLL_TAXES.value and not is_error_result(c.result) for c in tool_calls):
            return [IRS_WITHHOLDING_URL]
        return []

    def format_tool_results(self, tool_calls: List[ToolCall]) -> str:
        lines = []
        for call in tool_calls:
            result = call.result
            if call.name == Intent.CALCULATE_PAYROLL_TAXES.value and not is_error_result(result):
                result = summarize_payroll_result(PayrollTaxResult.model_validate(result))
            lines.append(f"- {call.name} {json.dumps(call.arguments)}: {json.dumps(result, default=str)}")
        return "\n".join(lines)
