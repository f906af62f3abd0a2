"""Compliance catalog lookups, deadline arithmetic and the compliance agent."""

import asyncio
from datetime import date

import pytest

from payroll_ai.schemas.agents.intent import Intent
from payroll_ai.schemas.compliance import ComplianceStatus
from payroll_ai.services.agents.memory import ConversationMemory
from payroll_ai.services.agents.specialists import ComplianceAgent
from payroll_ai.services.agents.specialists.compliance import extract_days_ahead, extract_deadline_category
from payroll_ai.services.compliance import (
    DEFAULT_CATALOG,
    calculate_next_deadline,
    categorize_requirement,
    check_compliance_status,
    get_compliance_requirements,
    get_upcoming_deadlines,
    next_business_day,
)


def _ids(items):
    return [getattr(i, "requirement_id", None) or i.id for i in items]


# =============================================================================
# REQUIREMENTS
# =============================================================================

class TestRequirements:

    def test_small_texas_employer(self):
        reqs = get_compliance_requirements(DEFAULT_CATALOG, "tx", 10)
        assert _ids(reqs) == ["fed-941", "fed-940", "fed-w2", "tx-c3"]

    def test_headcount_unknown_includes_everything_federal(self):
        reqs = get_compliance_requirements(DEFAULT_CATALOG)
        assert "fed-aca" in _ids(reqs)
        assert "fed-eeo1" in _ids(reqs)

    def test_large_california_healthcare_employer(self):
        ids = _ids(get_compliance_requirements(DEFAULT_CATALOG, "CA", 150, "healthcare"))
        assert "ca-pay-data" in ids
        assert "hipaa-training" in ids
        assert "fed-aca" in ids

    def test_unknown_state_gets_federal_only(self):
        reqs = get_compliance_requirements(DEFAULT_CATALOG, "ZZ", 5)
        assert all(r.scope == "federal" for r in reqs)

    @pytest.mark.parametrize("requirement_id,category", [
        ("fed-941", "tax"),
        ("fed-aca", "benefits"),
        ("fed-eeo1", "reporting"),
        ("osha-300a", "safety"),
        ("finra-u4", "general"),
    ])
    def test_categories(self, requirement_id, category):
        assert categorize_requirement(DEFAULT_CATALOG.find(requirement_id)) == category


# =============================================================================
# DEADLINES
# =============================================================================

class TestDeadlines:

    def test_weekend_rolls_to_monday(self):
        assert next_business_day(date(2024, 3, 30)) == date(2024, 4, 1)

    def test_holiday_rolls_forward(self):
        assert next_business_day(date(2024, 7, 4)) == date(2024, 7, 5)

    def test_business_day_unchanged(self):
        assert next_business_day(date(2024, 4, 30)) == date(2024, 4, 30)

    def test_quarterly_deadline_clamps_to_month_end(self):
        req = DEFAULT_CATALOG.find("fed-941")
        assert calculate_next_deadline(req, date(2024, 4, 2)) == date(2024, 4, 30)

    def test_annual_deadline_moves_to_next_year(self):
        req = DEFAULT_CATALOG.find("fed-w2")
        assert calculate_next_deadline(req, date(2024, 2, 1)) == date(2025, 1, 31)

    def test_deadline_on_today_counts(self):
        req = DEFAULT_CATALOG.find("fed-aca")
        assert calculate_next_deadline(req, date(2024, 2, 28)) == date(2024, 2, 28)

    def test_weekend_due_date_rolls_past_today(self):
        # Jan 31, 2026 is a Saturday, so W-2s are due Monday Feb 2
        req = DEFAULT_CATALOG.find("fed-w2")
        assert calculate_next_deadline(req, date(2026, 2, 1)) == date(2026, 2, 2)

    def test_quarterly_weekend_due_date_rolls_past_today(self):
        req = DEFAULT_CATALOG.find("fed-941")
        assert calculate_next_deadline(req, date(2026, 2, 1)) == date(2026, 2, 2)
        assert calculate_next_deadline(req, date(2026, 2, 3)) == date(2026, 4, 30)

    def test_rolled_deadline_listed_as_upcoming(self):
        upcoming = get_upcoming_deadlines(DEFAULT_CATALOG, date(2026, 2, 1), state="TX", days_ahead=7)
        by_id = {d.requirement_id: d for d in upcoming}
        assert by_id["fed-941"].deadline_date == date(2026, 2, 2)
        assert by_id["fed-w2"].days_until_deadline == 1

    def test_relative_deadline_has_no_date(self):
        req = DEFAULT_CATALOG.find("hipaa-training")
        assert calculate_next_deadline(req, date(2024, 2, 1)) is None

    def test_upcoming_sorted_and_windowed(self):
        upcoming = get_upcoming_deadlines(DEFAULT_CATALOG, date(2024, 1, 15), state="TX", days_ahead=30)
        assert _ids(upcoming) == ["fed-940", "fed-941", "fed-w2", "tx-c3"]
        assert all(d.days_until_deadline == 16 for d in upcoming)
        assert all(d.deadline_date == date(2024, 1, 31) for d in upcoming)

    def test_category_filter(self):
        upcoming = get_upcoming_deadlines(
            DEFAULT_CATALOG, date(2024, 2, 1), days_ahead=30, category="benefits", employee_count=60,
        )
        assert _ids(upcoming) == ["fed-aca"]

    def test_zero_day_window(self):
        upcoming = get_upcoming_deadlines(DEFAULT_CATALOG, date(2024, 2, 28), days_ahead=0)
        assert _ids(upcoming) == ["fed-aca"]

    def test_negative_window_rejected(self):
        with pytest.raises(ValueError):
            get_upcoming_deadlines(DEFAULT_CATALOG, date(2024, 1, 1), days_ahead=-1)


# =============================================================================
# STATUS
# =============================================================================

class TestStatus:

    def test_quarterly_filed_this_quarter(self):
        req = DEFAULT_CATALOG.find("fed-941")
        result = check_compliance_status(req, date(2024, 4, 10), date(2024, 5, 1))
        assert result.status == ComplianceStatus.COMPLIANT
        assert result.next_deadline == date(2024, 7, 31)

    def test_quarterly_filed_last_quarter(self):
        req = DEFAULT_CATALOG.find("fed-941")
        result = check_compliance_status(req, date(2024, 3, 15), date(2024, 5, 1))
        assert result.status == ComplianceStatus.NEEDS_ATTENTION

    def test_never_filed(self):
        req = DEFAULT_CATALOG.find("fed-w2")
        assert check_compliance_status(req, None, date(2024, 5, 1)).status == ComplianceStatus.NOT_COMPLIANT

    def test_annual_filed_last_year(self):
        req = DEFAULT_CATALOG.find("fed-w2")
        result = check_compliance_status(req, date(2023, 1, 30), date(2024, 5, 1))
        assert result.status == ComplianceStatus.NEEDS_ATTENTION


# =============================================================================
# AGENT
# =============================================================================

class TestComplianceAgent:

    def test_days_ahead_phrases(self):
        assert extract_days_ahead("deadlines in the next 45 days") == 45
        assert extract_days_ahead("anything due this quarter?") == 90
        assert extract_days_ahead("what's due this year") == 365
        assert extract_days_ahead("deadlines?") == 30

    def test_deadline_category(self):
        assert extract_deadline_category("upcoming tax deadlines") == "tax"
        assert extract_deadline_category("upcoming deadlines") is None

    def test_status_requires_company(self, mock_store):
        agent = ComplianceAgent(store=mock_store, today=lambda: date(2024, 5, 1))
        query = "Are we compliant in TX?"
        arguments, result = asyncio.run(agent.execute_tool(Intent.CHECK_COMPLIANCE_STATUS, query, query))
        assert result == {"error": "A company id is required to check compliance status"}
        assert arguments["company_id"] is None

    def test_status_per_requirement(self, mock_store):
        records = {
            "fed-941": (True, None),
            "tx-c3": (False, None),
        }
        mock_store.get_latest_compliance_record.side_effect = (
            lambda company_id, requirement_id: records.get(requirement_id, (True, {"filing_date": "2024-01-20"}))
        )
        agent = ComplianceAgent(store=mock_store, today=lambda: date(2024, 5, 1))
        memory = ConversationMemory()
        memory.state["company"] = {"id": "co-1", "state": "TX", "employee_count": 10}

        query = "Are we compliant?"
        arguments, results = asyncio.run(agent.execute_tool(Intent.CHECK_COMPLIANCE_STATUS, query, query, memory))

        assert arguments["state"] == "TX"
        statuses = {r.requirement_id: r.status for r in results}
        assert statuses == {
            "fed-941": ComplianceStatus.NOT_COMPLIANT,
            "fed-940": ComplianceStatus.COMPLIANT,
            "fed-w2": ComplianceStatus.COMPLIANT,
            "tx-c3": ComplianceStatus.UNKNOWN,
        }
        unknown = next(r for r in results if r.requirement_id == "tx-c3")
        assert unknown.error == "Compliance records unavailable"

    def test_deadlines_tool_uses_injected_today(self, mock_store):
        agent = ComplianceAgent(store=mock_store, today=lambda: date(2024, 1, 15))
        query = "What tax deadlines are coming up in Texas in the next 20 days?"
        arguments, result = asyncio.run(agent.execute_tool(Intent.GET_UPCOMING_DEADLINES, query, query))
        assert arguments["days_ahead"] == 20
        assert arguments["category"] == "tax"
        assert [d.requirement_id for d in result] == ["fed-940", "fed-941", "fed-w2", "tx-c3"]

    def test_company_loaded_from_context(self, mock_store, mock_llm):
        mock_store.get_company.return_value = {"id": "co-1", "state": "NY", "employee_count": 12}
        mock_llm.return_value = "Happy to help."
        agent = ComplianceAgent(store=mock_store, today=lambda: date(2024, 5, 1))

        response = asyncio.run(agent.process_query("hello", {"company_id": "co-1"}))

        mock_store.get_company.assert_called_once_with("co-1")
        assert agent.conversations.get(response.conversation_id).state["company"]["state"] == "NY"
        assert response.answer == "Happy to help."
        assert response.tool_calls == []

    def test_company_stays_with_its_conversation(self, mock_store, mock_llm):
        mock_store.get_company.return_value = {"id": "co-1", "state": "NY", "employee_count": 12}
        mock_store.get_latest_compliance_record.return_value = (True, None)
        mock_llm.return_value = "Let me check."
        agent = ComplianceAgent(store=mock_store, today=lambda: date(2024, 5, 1))

        first = asyncio.run(agent.process_query("Are we compliant?", {"company_id": "co-1"}))
        second = asyncio.run(agent.process_query("Are we compliant?"))

        assert first.tool_calls[0].arguments["company_id"] == "co-1"
        assert second.conversation_id != first.conversation_id
        assert second.tool_calls[0].arguments["company_id"] is None
        assert second.tool_calls[0].result == {"error": "A company id is required to check compliance status"}
        mock_store.get_latest_compliance_record.assert_called()
        assert all(c.args[0] == "co-1" for c in mock_store.get_latest_compliance_record.call_args_list)

    def test_same_conversation_keeps_company(self, mock_store, mock_llm):
        mock_store.get_company.return_value = {"id": "co-1", "state": "NY", "employee_count": 12}
        mock_store.get_latest_compliance_record.return_value = (True, None)
        mock_llm.return_value = "Let me check."
        agent = ComplianceAgent(store=mock_store, today=lambda: date(2024, 5, 1))

        first = asyncio.run(agent.process_query("hello", {"company_id": "co-1"}))
        second = asyncio.run(agent.process_query("Are we compliant?", conversation_id=first.conversation_id))

        assert second.tool_calls[0].arguments["company_id"] == "co-1"
        assert second.tool_calls[0].arguments["state"] == "NY"
        mock_store.get_company.assert_called_once_with("co-1")
