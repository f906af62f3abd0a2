"""Expense agent: categorisation and custom categories."""

import asyncio
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from ....schemas.agents.intent import AgentType, Intent
from ....schemas.expense import ExpenseCategory
from ...expense import (
    DEFAULT_CATALOG,
    ExpenseCatalog,
    categorize_expense,
    create_custom_category,
    get_expense_categories,
)
from ..base import BaseAgent
from ..extraction import extract_amount, extract_date, extract_quoted_name
from ..intents import EXPENSE_RULES, IntentClassifier
from ..memory import ConversationMemory

logger = logging.getLogger(__name__)

EXPENSE_SYSTEM_PROMPT = """You are a business expense specialist for small businesses.
You categorise expenses, explain which ones are tax deductible and what documentation
to keep. Mention the IRS rules that apply (ordinary and necessary expenses, the 50%
meals limit, capitalisation of equipment) when they matter."""

_VENDOR_RE = re.compile(r"\b(?:at|from)\s+([A-Z][\w&'.-]*(?:\s+[A-Z][\w&'.-]*){0,3})")

PAYMENT_METHODS = (
    ("credit_card", ("credit card", "visa", "mastercard", "amex")),
    ("debit_card", ("debit card", "debit")),
    ("cash", ("cash",)),
    ("check", ("check", "cheque")),
    ("bank_transfer", ("bank transfer", "wire", "ach")),
)


def extract_vendor(text: str) -> str:
    match = _VENDOR_RE.search(text or "")
    return match.group(1).strip() if match else ""


def extract_payment_method(text: str) -> str:
    lowered = (text or "").lower()
    for method, keywords in PAYMENT_METHODS:
        if any(re.search(rf"\b{re.escape(k)}\b", lowered) for k in keywords):
            return method
    return "unknown"


def _category_from_row(row: Dict[str, Any]) -> ExpenseCategory:
    return ExpenseCategory(
        id=str(row.get("id")),
        name=str(row.get("name", "")),
        description=str(row.get("description") or ""),
        tax_deductible=bool(row.get("tax_deductible", True)),
        custom=True,
    )


class ExpenseAgent(BaseAgent):
    """Categorises expenses against the rule catalog and manages custom categories."""

    def __init__(self, catalog: ExpenseCatalog = DEFAULT_CATALOG, **kwargs):
        super().__init__(**kwargs)
        self.catalog = catalog
        self._classifier = IntentClassifier(EXPENSE_RULES)

    @property
    def agent_type(self) -> AgentType:
        return AgentType.EXPENSE

    @property
    def name(self) -> str:
        return "Expense Agent"

    @property
    def description(self) -> str:
        return "Categorizes business expenses and explains deductibility"

    @property
    def capabilities(self) -> List[str]:
        return ["expense categorization", "deductibility notes", "custom categories"]

    @property
    def system_prompt(self) -> str:
        return EXPENSE_SYSTEM_PROMPT

    @property
    def classifier(self) -> IntentClassifier:
        return self._classifier

    async def prepare(self, memory: ConversationMemory, context: Optional[Dict[str, Any]] = None) -> None:
        """Load the company's custom categories into this conversation's catalog."""
        company_id = (context or {}).get("company_id")
        if company_id and company_id != memory.state.get("company_id"):
            rows = await asyncio.to_thread(self.store.load_custom_categories, company_id)
            memory.state["company_id"] = company_id
            memory.state["catalog"] = self.catalog.with_custom([_category_from_row(r) for r in rows])
            logger.info(f"[ExpenseAgent] Loaded {len(rows)} custom categories for company {company_id}")

    def _persist_category(self, company_id: Optional[str]):
        def persist(row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
            if not company_id:
                logger.warning("[ExpenseAgent] No company id; custom category not stored")
                return None
            return self.store.insert_expense_category(company_id, row)
        return persist

    async def execute_tool(
        self,
        intent: Intent,
        text: str,
        query: str,
        memory: Optional[ConversationMemory] = None,
    ) -> Tuple[Dict[str, Any], Any]:
        state = memory.state if memory is not None else {}
        catalog = state.get("catalog", self.catalog)

        if intent == Intent.CATEGORIZE_EXPENSE:
            expense_date = extract_date(query)
            arguments = {
                "description": query.strip(),
                "amount": extract_amount(query, 0.0),
                "vendor": extract_vendor(query),
                "date": expense_date.isoformat() if expense_date else None,
                "payment_method": extract_payment_method(query),
            }
            return arguments, categorize_expense(catalog=catalog, **arguments)

        if intent == Intent.GET_EXPENSE_CATEGORIES:
            return {"include_custom": True}, get_expense_categories(catalog)

        if intent == Intent.CREATE_EXPENSE_CATEGORY:
            name = extract_quoted_name(query)
            arguments = {"name": name}
            if not name:
                return arguments, {"error": "No category name found in the request"}
            state["catalog"], result = await asyncio.to_thread(
                create_custom_category, catalog, name, self._persist_category(state.get("company_id")),
            )
            return arguments, result

        raise ValueError(f"Expense agent has no tool for {intent}")
