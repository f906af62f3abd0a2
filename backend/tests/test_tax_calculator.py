"""Bracket arithmetic, FICA caps and table overrides."""

import pytest

from payroll_ai.schemas.tax import PayrollTaxRequest
from payroll_ai.services.tax_calculator import (
    calculate_federal_income_tax,
    calculate_fica_taxes,
    calculate_payroll_taxes,
    calculate_state_income_tax,
    get_tax_rates,
    summarize_payroll_result,
)
from payroll_ai.services.tax_tables import apply_overrides, get_tax_tables, load_tax_tables


# =============================================================================
# FEDERAL INCOME TAX
# =============================================================================

class TestFederalIncomeTax:

    def test_single_50k(self, tables):
        """50,000 less the 14,600 deduction leaves 35,400 taxable: 1,160 + 23,800 x 12%."""
        assert calculate_federal_income_tax(50000, "single", tables) == pytest.approx(4016.0)

    def test_income_below_deduction_is_untaxed(self, tables):
        assert calculate_federal_income_tax(10000, "single", tables) == 0.0

    def test_married_jointly_uses_wider_brackets(self, tables):
        single = calculate_federal_income_tax(120000, "single", tables)
        joint = calculate_federal_income_tax(120000, "married_filing_jointly", tables)
        assert joint < single

    def test_allowances_reduce_taxable_income(self, tables):
        base = calculate_federal_income_tax(80000, "single", tables)
        reduced = calculate_federal_income_tax(80000, "single", tables, allowances=1)
        assert base - reduced == pytest.approx(4300 * 0.22)

    def test_unknown_status_raises(self, tables):
        with pytest.raises(ValueError):
            calculate_federal_income_tax(50000, "widowed", tables)

    @pytest.mark.parametrize("status", ["single", "married_filing_jointly", "married_filing_separately", "head_of_household"])
    def test_monotonic_in_income(self, tables, status):
        previous = 0.0
        for income in range(0, 1_000_001, 2500):
            tax = calculate_federal_income_tax(income, status, tables)
            assert tax >= previous
            previous = tax


# =============================================================================
# STATE INCOME TAX
# =============================================================================

class TestStateIncomeTax:

    def test_no_income_tax_state(self, tables):
        assert calculate_state_income_tax(100000, "TX", tables) == 0.0

    def test_flat_rate_state(self, tables):
        assert calculate_state_income_tax(100000, "IL", tables) == pytest.approx(4950.0)

    def test_unknown_state_is_zero(self, tables):
        assert calculate_state_income_tax(100000, "ZZ", tables) == 0.0

    def test_progressive_state_first_bracket(self, tables):
        assert calculate_state_income_tax(10000, "CA", tables) == pytest.approx(100.0)

    def test_progressive_state_monotonic(self, tables):
        previous = 0.0
        for income in range(0, 2_000_001, 10000):
            tax = calculate_state_income_tax(income, "NY", tables)
            assert tax >= previous
            previous = tax


# =============================================================================
# FICA
# =============================================================================

class TestFica:

    def test_social_security_capped_at_wage_base(self, tables):
        fica = calculate_fica_taxes(2000, 168000, tables)
        assert fica.social_security_tax == pytest.approx(600 * 0.062)

    def test_no_social_security_past_wage_base(self, tables):
        fica = calculate_fica_taxes(5000, 170000, tables)
        assert fica.social_security_tax == 0.0

    def test_medicare_exact_below_threshold(self, tables):
        fica = calculate_fica_taxes(5000, 0, tables)
        assert fica.medicare_tax == 5000 * 0.0145
        assert fica.additional_medicare_tax == 0.0

    def test_medicare_exact_at_threshold(self, tables):
        fica = calculate_fica_taxes(5000, 195000, tables)
        assert fica.medicare_tax == 5000 * 0.0145

    def test_additional_medicare_above_threshold(self, tables):
        fica = calculate_fica_taxes(5000, 199000, tables)
        assert fica.additional_medicare_tax == pytest.approx(4000 * 0.009)
        assert fica.medicare_tax == pytest.approx(5000 * 0.0145 + 36.0)


# =============================================================================
# PAYCHECK
# =============================================================================

class TestPayrollTaxes:

    def test_monthly_paycheck_in_texas(self, tables):
        request = PayrollTaxRequest(gross_pay=5000, pay_frequency="monthly", filing_status="single", state="tx")
        result = calculate_payroll_taxes(request, tables)

        assert result.state == "TX"
        assert result.pay_frequency == "monthly"
        assert result.federal_income_tax == pytest.approx(434.67)
        assert result.state_income_tax == 0.0
        assert result.social_security_tax == pytest.approx(310.0)
        assert result.medicare_tax == pytest.approx(72.5)
        assert result.total_taxes == pytest.approx(817.17)
        assert result.net_pay == pytest.approx(4182.83)
        assert result.annual_projection.gross_income == pytest.approx(60000)
        assert result.annual_projection.federal_income_tax == pytest.approx(5216.0)

    def test_net_plus_taxes_equals_gross(self, tables):
        request = PayrollTaxRequest(gross_pay=3850.25, state="CA")
        result = calculate_payroll_taxes(request, tables)
        assert result.net_pay + result.total_taxes == pytest.approx(result.gross_pay, abs=0.02)

    def test_summary_has_headline_numbers(self, tables):
        result = calculate_payroll_taxes(PayrollTaxRequest(gross_pay=2000), tables)
        summary = summarize_payroll_result(result)
        assert set(summary) == {
            "gross_pay", "federal_income_tax", "state_income_tax",
            "social_security_tax", "medicare_tax", "total_taxes", "net_pay",
        }


# =============================================================================
# TABLES
# =============================================================================

class TestTaxTables:

    def test_rates_for_flat_state(self, tables):
        rates = get_tax_rates("pa", tables)
        assert rates.state == "PA"
        assert rates.flat_rate == pytest.approx(0.0307)
        assert rates.fica_rates["social_security_wage_base"] == 168600

    def test_rates_for_no_tax_state(self, tables):
        rates = get_tax_rates("FL", tables)
        assert rates.has_income_tax is False
        assert rates.rates == []

    def test_overrides_replace_state_and_fica(self, tables):
        rows = [
            {"id": 1, "subcategory": "state", "key": "co", "content": {"has_income_tax": True, "flat_rate": 0.044}},
            {"id": 2, "subcategory": "fica", "content": {"social_security_wage_base": 176100}},
        ]
        updated = apply_overrides(tables, rows)

        assert updated.state_rule("CO").flat_rate == pytest.approx(0.044)
        assert updated.fica.social_security_wage_base == 176100
        assert updated.source == "knowledge_base"
        # Base tables are untouched
        assert tables.state_rule("CO") is None
        assert tables.fica.social_security_wage_base == 168600

    def test_malformed_override_is_skipped(self, tables):
        rows = [{"id": 3, "subcategory": "state", "key": "OR", "content": {"has_income_tax": True}}]
        updated = apply_overrides(tables, rows)
        assert updated.state_rule("OR") is None

    def test_load_sets_process_tables(self):
        loaded = load_tax_tables([])
        assert get_tax_tables() is loaded
        assert loaded.source == "defaults"
