"""Payroll tax arithmetic.

Pure functions over TaxTables. No I/O, no LLM.
"""

from typing import Any, Dict, Optional, Tuple

from ..schemas.tax import (
    AnnualProjection,
    FicaBreakdown,
    PayrollTaxRequest,
    PayrollTaxResult,
    TaxRatesResponse,
)
from .tax_tables import Bracket, TaxTables


def _walk_brackets(amount: float, brackets: Tuple[Bracket, ...]) -> float:
    """Sum marginal tax of ``amount`` across contiguous brackets."""
    tax = 0.0
    for bracket in brackets:
        if amount <= bracket.lower:
            break
        top = amount if bracket.upper is None else min(amount, bracket.upper)
        tax += (top - bracket.lower) * bracket.rate
    return tax


def _status_key(filing_status: Any) -> str:
    return getattr(filing_status, "value", filing_status) or "single"


def calculate_federal_income_tax(
    annual_income: float,
    filing_status: str,
    tables: TaxTables,
    allowances: int = 0,
) -> float:
    """Annual federal income tax after the standard deduction and allowances."""
    status = _status_key(filing_status)
    if status not in tables.federal_brackets:
        raise ValueError(f"Unknown filing status: {status}")

    taxable_income = max(
        0.0,
        annual_income
        - tables.standard_deduction[status]
        - allowances * tables.allowance_value,
    )
    return _walk_brackets(taxable_income, tables.federal_brackets[status])


def calculate_state_income_tax(annual_income: float, state: str, tables: TaxTables) -> float:
    """Annual state income tax on gross income. Unknown states yield 0."""
    rule = tables.state_rule(state)
    if rule is None or not rule.has_income_tax:
        return 0.0
    if rule.flat_rate is not None:
        return max(0.0, annual_income) * rule.flat_rate
    return _walk_brackets(annual_income, rule.brackets)


def calculate_fica_taxes(gross_pay: float, ytd_earnings: float, tables: TaxTables) -> FicaBreakdown:
    """Social Security and Medicare for one paycheck.

    ``ytd_earnings`` are the earnings before this paycheck.
    """
    fica = tables.fica
    total_earnings = ytd_earnings + gross_pay

    ss_taxable = max(0.0, min(gross_pay, fica.social_security_wage_base - ytd_earnings))
    social_security = ss_taxable * fica.social_security_rate

    medicare = gross_pay * fica.medicare_rate
    additional = 0.0
    if total_earnings > fica.additional_medicare_threshold:
        over = total_earnings - max(ytd_earnings, fica.additional_medicare_threshold)
        additional = over * fica.additional_medicare_rate
        medicare += additional

    return FicaBreakdown(
        social_security_tax=social_security,
        medicare_tax=medicare,
        additional_medicare_tax=additional,
    )


def calculate_payroll_taxes(request: PayrollTaxRequest, tables: TaxTables) -> PayrollTaxResult:
    """Full per-paycheck breakdown plus an annual projection."""
    periods = tables.periods_per_year(request.pay_frequency)
    annual_income = request.gross_pay * periods

    federal_annual = calculate_federal_income_tax(
        annual_income, request.filing_status, tables, request.allowances
    )
    state_annual = calculate_state_income_tax(annual_income, request.state, tables)

    federal = federal_annual / periods
    state = state_annual / periods
    fica = calculate_fica_taxes(request.gross_pay, request.ytd_earnings, tables)

    total = federal + state + fica.social_security_tax + fica.medicare_tax
    net = request.gross_pay - total

    # Projection assumes the same paycheck all year, starting from zero YTD
    annual_fica = _annual_fica(request.gross_pay, periods, tables)

    return PayrollTaxResult(
        gross_pay=round(request.gross_pay, 2),
        federal_income_tax=round(federal, 2),
        state_income_tax=round(state, 2),
        social_security_tax=round(fica.social_security_tax, 2),
        medicare_tax=round(fica.medicare_tax, 2),
        total_taxes=round(total, 2),
        net_pay=round(net, 2),
        pay_frequency=_status_key(request.pay_frequency),
        filing_status=_status_key(request.filing_status),
        state=request.state.upper(),
        annual_projection=AnnualProjection(
            gross_income=round(annual_income, 2),
            federal_income_tax=round(federal_annual, 2),
            state_income_tax=round(state_annual, 2),
            fica_taxes=round(annual_fica, 2),
            net_income=round(annual_income - federal_annual - state_annual - annual_fica, 2),
        ),
    )


def _annual_fica(gross_pay: float, periods: int, tables: TaxTables) -> float:
    ytd = 0.0
    total = 0.0
    for _ in range(periods):
        breakdown = calculate_fica_taxes(gross_pay, ytd, tables)
        total += breakdown.social_security_tax + breakdown.medicare_tax
        ytd += gross_pay
    return total


def get_tax_rates(state: str, tables: TaxTables, year: Optional[int] = None) -> TaxRatesResponse:
    """Published rates for a state plus FICA rates."""
    code = (state or "").upper()
    rule = tables.state_rule(code)
    fica = tables.fica

    rates = []
    flat_rate = None
    if rule and rule.has_income_tax:
        if rule.flat_rate is not None:
            flat_rate = rule.flat_rate
            rates = [{"threshold": 0, "rate": rule.flat_rate}]
        else:
            rates = [{"threshold": b.lower, "rate": b.rate} for b in rule.brackets]

    return TaxRatesResponse(
        state=code,
        year=year or tables.year,
        has_income_tax=bool(rule and rule.has_income_tax),
        rates=rates,
        flat_rate=flat_rate,
        fica_rates={
            "social_security": fica.social_security_rate,
            "social_security_wage_base": fica.social_security_wage_base,
            "medicare": fica.medicare_rate,
            "additional_medicare": fica.additional_medicare_rate,
            "additional_medicare_threshold": fica.additional_medicare_threshold,
        },
    )


def summarize_payroll_result(result: PayrollTaxResult) -> Dict[str, Any]:
    """Compact dict of the headline numbers, for prompts and tool results."""
    return {
        "gross_pay": result.gross_pay,
        "federal_income_tax": result.federal_income_tax,
        "state_income_tax": result.state_income_tax,
        "social_security_tax": result.social_security_tax,
        "medicare_tax": result.medicare_tax,
        "total_taxes": result.total_taxes,
        "net_pay": result.net_pay,
    }
