"""Shared fixtures. No test talks to Anthropic, Perplexity or Supabase."""

import os

# Set test environment before the package reads it
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["PERPLEXITY_API_KEY"] = ""
os.environ["SUPABASE_URL"] = ""
os.environ["OPENAI_API_KEY"] = ""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from payroll_ai.services.storage import PayrollStore
from payroll_ai.services.tax_tables import default_tax_tables


@pytest.fixture
def tables():
    return default_tax_tables()


@pytest.fixture
def offline_store():
    """Store with no Supabase client: reads are empty, writes fail quietly."""
    return PayrollStore(client_factory=lambda: None)


@pytest.fixture
def mock_store():
    """Store whose methods are MagicMocks, for asserting persistence calls."""
    store = MagicMock(spec=PayrollStore)
    store.available = True
    store.search_knowledge.return_value = []
    store.load_custom_categories.return_value = []
    store.get_company.return_value = None
    store.get_conversation_agent_type.return_value = None
    store.save_conversation.return_value = True
    store.save_analysis_result.return_value = True
    return store


@pytest.fixture
def mock_llm():
    """Replace the Anthropic call used by every agent."""
    with patch("payroll_ai.services.agents.base.call_anthropic_api", new_callable=AsyncMock) as mock:
        yield mock


@pytest.fixture
def mock_search():
    client = MagicMock()
    client.search = AsyncMock()
    return client
