"""Agent and intent enums for the multi-agent system."""

from enum import Enum


class AgentType(str, Enum):
    """Specialist agents a query can be routed to."""
    TAX = "tax"
    EXPENSE = "expense"
    COMPLIANCE = "compliance"
    DATA = "data"
    RESEARCH = "research"
    REASONING = "reasoning"

    # Routing only; never maps to a single agent
    GENERAL = "general"


class Intent(str, Enum):
    """Tools the specialist agents can execute.

    Each intent is owned by exactly one agent type.
    """
    # Tax
    CALCULATE_PAYROLL_TAXES = "calculate_payroll_taxes"
    GET_TAX_RATES = "get_tax_rates"

    # Expense
    CATEGORIZE_EXPENSE = "categorize_expense"
    GET_EXPENSE_CATEGORIES = "get_expense_categories"
    CREATE_EXPENSE_CATEGORY = "create_expense_category"

    # Compliance
    GET_COMPLIANCE_REQUIREMENTS = "get_compliance_requirements"
    CHECK_COMPLIANCE_STATUS = "check_compliance_status"
    GET_UPCOMING_DEADLINES = "get_upcoming_deadlines"

    # Data analysis
    COMPUTE_STATISTICS = "compute_statistics"
    GENERATE_FORECAST = "generate_forecast"
    ANALYZE_VARIANCE = "analyze_variance"
    LIST_DATA_SOURCES = "list_data_sources"

    # Research
    CONDUCT_RESEARCH = "conduct_research"
    TRACK_UPDATES = "track_updates"

    # Reasoning
    STEP_BY_STEP_REASONING = "step_by_step_reasoning"
    CALCULATE_WITH_EXPLANATION = "calculate_with_explanation"
