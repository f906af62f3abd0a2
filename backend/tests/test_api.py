"""
HTTP API tests.

Agents run against a mocked store and a patched LLM; no network calls.
"""

import pytest
from fastapi.testclient import TestClient

from payroll_ai.main import app
from payroll_ai.services.agents import get_brain, get_orchestrator
from payroll_ai.services.agents.base import AgentRegistry
from payroll_ai.services.agents.brain import AgentBrain
from payroll_ai.services.agents.llm import reset_rate_limit_state
from payroll_ai.services.agents.memory import ConversationRegistry
from payroll_ai.services.agents.orchestrator import AgentOrchestrator
from payroll_ai.services.storage import get_store
from payroll_ai.services.tax_tables import load_tax_tables

client = TestClient(app)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture(autouse=True)
def default_tables():
    load_tax_tables()


@pytest.fixture
def agents(mock_store):
    """Fresh orchestrator and brain sharing one registry."""
    orchestrator = AgentOrchestrator(registry=AgentRegistry(), store=mock_store, conversations=ConversationRegistry())
    brain = AgentBrain(orchestrator.registry)
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_brain] = lambda: brain
    app.dependency_overrides[get_store] = lambda: mock_store
    yield orchestrator, brain
    app.dependency_overrides.clear()


@pytest.fixture
def store_override(mock_store):
    app.dependency_overrides[get_store] = lambda: mock_store
    yield mock_store
    app.dependency_overrides.clear()


# =============================================================================
# HEALTH
# =============================================================================

class TestHealth:

    def test_root(self):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json() == {"status": "API is running"}

    def test_startup_loads_tables_offline(self):
        # Supabase is unconfigured in tests, so the lifespan falls back to default tables
        with TestClient(app) as started:
            assert started.get("/tax/rates/TX").status_code == 200


# =============================================================================
# TAX
# =============================================================================

class TestTaxEndpoints:

    def test_payroll_calculation(self):
        response = client.post("/tax/payroll", json={
            "gross_pay": 5000,
            "pay_frequency": "monthly",
            "filing_status": "single",
            "state": "TX",
        })
        assert response.status_code == 200
        data = response.json()
        assert data["federal_income_tax"] == pytest.approx(434.67)
        assert data["state_income_tax"] == 0
        assert data["net_pay"] == pytest.approx(4182.83)
        assert data["annual_projection"]["gross_income"] == pytest.approx(60000)

    def test_negative_gross_pay_rejected(self):
        response = client.post("/tax/payroll", json={"gross_pay": -1})
        assert response.status_code == 422

    def test_unknown_frequency_rejected(self):
        response = client.post("/tax/payroll", json={"gross_pay": 100, "pay_frequency": "hourly"})
        assert response.status_code == 422

    def test_rates_for_flat_tax_state(self):
        response = client.get("/tax/rates/il")
        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "IL"
        assert data["has_income_tax"] is True
        assert data["flat_rate"] == pytest.approx(0.0495)
        assert data["fica_rates"]["social_security"] == pytest.approx(0.062)

    def test_rates_for_no_tax_state(self):
        data = client.get("/tax/rates/TX").json()
        assert data["has_income_tax"] is False
        assert data["rates"] == []

    def test_unknown_state(self):
        response = client.get("/tax/rates/ZZ")
        assert response.status_code == 400
        assert "ZZ" in response.json()["detail"]


# =============================================================================
# COMPLIANCE
# =============================================================================

class TestComplianceEndpoints:

    def test_requirements(self):
        response = client.get("/compliance/requirements", params={"state": "TX", "employee_count": 10})
        assert response.status_code == 200
        assert [r["id"] for r in response.json()] == ["fed-941", "fed-940", "fed-w2", "tx-c3"]

    def test_deadlines_as_of(self):
        response = client.get("/compliance/deadlines", params={
            "state": "TX", "days_ahead": 30, "as_of": "2024-01-15",
        })
        assert response.status_code == 200
        data = response.json()
        assert [d["requirement_id"] for d in data] == ["fed-940", "fed-941", "fed-w2", "tx-c3"]
        assert all(d["deadline_date"] == "2024-01-31" for d in data)
        assert all(d["days_until_deadline"] == 16 for d in data)

    def test_negative_window(self):
        response = client.get("/compliance/deadlines", params={"days_ahead": -5})
        assert response.status_code == 400


# =============================================================================
# EXPENSES
# =============================================================================

class TestExpenseEndpoints:

    def test_categorize(self, store_override):
        response = client.post("/expenses/categorize", json={
            "description": "Flight to Chicago for client meeting",
            "amount": 420,
            "vendor": "United",
        })
        assert response.status_code == 200
        data = response.json()
        assert data["suggested_categories"][0]["id"] == "travel"
        assert data["expense_details"]["vendor"] == "United"
        assert "fully deductible" in data["tax_notes"]
        store_override.load_custom_categories.assert_not_called()

    def test_categorize_requires_description(self, store_override):
        response = client.post("/expenses/categorize", json={"description": "   "})
        assert response.status_code == 400

    def test_categories_include_company_custom(self, store_override):
        store_override.load_custom_categories.return_value = [
            {"id": "c1", "name": "Drone Parts", "description": "", "tax_deductible": True},
        ]
        response = client.get("/expenses/categories", params={"company_id": "acme"})
        assert response.status_code == 200
        data = response.json()
        assert data[-1]["name"] == "Drone Parts"
        assert data[-1]["custom"] is True
        store_override.load_custom_categories.assert_called_once_with("acme")

    def test_create_category(self, store_override):
        store_override.insert_expense_category.return_value = {
            "id": "c2", "name": "Drone Parts", "description": "UAV spares", "tax_deductible": True,
        }
        response = client.post("/expenses/categories", json={
            "name": "Drone Parts", "description": "UAV spares", "company_id": "acme",
        })
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["category"]["id"] == "c2"
        company_id, row = store_override.insert_expense_category.call_args.args
        assert company_id == "acme"
        assert row["name"] == "Drone Parts"

    def test_create_duplicate_category(self, store_override):
        response = client.post("/expenses/categories", json={"name": "travel", "company_id": "acme"})
        data = response.json()
        assert data["success"] is False
        assert data["existing_category"]["id"] == "travel"
        store_override.insert_expense_category.assert_not_called()

    def test_create_category_requires_company(self, store_override):
        response = client.post("/expenses/categories", json={"name": "Drone Parts"})
        assert response.status_code == 400


# =============================================================================
# AGENTS
# =============================================================================

class TestAgentEndpoints:

    def test_available(self, agents):
        response = client.get("/agents/available")
        assert response.status_code == 200
        assert [a["agent_type"] for a in response.json()] == [
            "tax", "expense", "compliance", "data", "research", "reasoning",
        ]

    def test_query_explicit_agent(self, agents, mock_llm):
        mock_llm.side_effect = ["Let me calculate.", "Net pay is $4,182.83."]
        response = client.post("/agents/query", json={
            "query": "Calculate taxes on a $5,000 monthly paycheck in TX",
            "agent_type": "tax",
        })
        assert response.status_code == 200
        data = response.json()
        assert data["agent_type"] == "tax"
        assert data["answer"] == "Net pay is $4,182.83."
        assert data["conversation_id"]
        assert data["tool_calls"][0]["result"]["net_pay"] == pytest.approx(4182.83)

    def test_query_unknown_agent(self, agents, mock_llm):
        response = client.post("/agents/query", json={"query": "hi", "agent_type": "astrology"})
        assert response.status_code == 200
        data = response.json()
        assert data["confidence"] == 0.0
        assert data["metadata"]["error"] == "Unknown agent type: astrology"

    def test_follow_up_stays_with_previous_agent(self, agents, mock_llm):
        mock_llm.return_value = "Deadlines are listed below."
        first = client.post("/agents/query", json={"query": "When is the next filing deadline?"}).json()
        assert first["agent_type"] == "compliance"

        mock_llm.return_value = "Yes, that one too."
        follow_up = client.post("/agents/query", json={
            "query": "And what about the one after that?",
            "conversation_id": first["conversation_id"],
        }).json()
        assert follow_up["agent_type"] == "compliance"
        assert follow_up["conversation_id"] == first["conversation_id"]

    def test_brain_reasoning_alone(self, agents, mock_llm):
        mock_llm.return_value = "Hello! How can I help with payroll today?"
        response = client.post("/agents/brain", json={"query": "hello"})
        assert response.status_code == 200
        data = response.json()
        assert data["agents_used"] == ["Reasoning Agent"]
        assert data["answer"] == "Hello! How can I help with payroll today?"
        assert data["contributions"][0]["agent_type"] == "reasoning"
        assert data["trace_id"]
        assert data["active_agents"] == ["Reasoning Agent"]
        assert data["conversation_id"]

    def test_scenarios(self, agents, mock_llm):
        mock_llm.return_value = (
            "STEP 1: Compare costs\nREASONING: Employer taxes differ\nCONCLUSION: W-2 costs more\n"
            "FINAL CONCLUSION: Hire the contractor"
        )
        response = client.post("/agents/scenarios", json={
            "question": "Which costs less?",
            "scenarios": [{"name": "W-2", "salary": 80000}, {"name": "1099", "rate": 45}],
        })
        assert response.status_code == 200
        data = response.json()
        assert data["recommendation"] == "Hire the contractor"
        assert len(data["steps"]) == 1

    def test_scenarios_require_input(self, agents):
        response = client.post("/agents/scenarios", json={"question": "q", "scenarios": []})
        assert response.status_code == 422

    def test_reset_one_agent(self, agents):
        response = client.post("/agents/reset", json={"agent_type": "tax"})
        assert response.status_code == 200
        assert response.json() == {"reset": ["tax"]}

    def test_reset_all(self, agents):
        orchestrator, brain = agents
        memory = brain.conversations.get_or_create("conv-1")
        memory.add("user", "old question")
        response = client.post("/agents/reset", json={})
        assert response.status_code == 200
        reset = response.json()["reset"]
        assert reset[-1] == "brain"
        assert "tax" in reset
        assert brain.get_memory("conv-1") == []

    def test_reset_invalid_type(self, agents):
        response = client.post("/agents/reset", json={"agent_type": "astrology"})
        assert response.status_code == 422

    def test_rate_limit(self):
        reset_rate_limit_state()
        data = client.get("/agents/rate-limit").json()
        assert data["daily_remaining"] == data["daily_limit"]
        assert data["minute_remaining"] == data["minute_limit"]
