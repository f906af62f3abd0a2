"""Static tax tables.

Tables are immutable and built once. Calculation functions receive them as
arguments, so tests can pass in their own tables without touching the network.
"""

import logging
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Bracket:
    lower: float
    upper: Optional[float]  # None for the open-ended top bracket
    rate: float


@dataclass(frozen=True)
class FicaRates:
    social_security_rate: float = 0.062
    social_security_wage_base: float = 168600
    medicare_rate: float = 0.0145
    additional_medicare_rate: float = 0.009
    additional_medicare_threshold: float = 200000


@dataclass(frozen=True)
class StateTaxRule:
    """Income tax rule for one state.

    A state either has no income tax, a flat rate, or progressive brackets.
    """
    state: str
    has_income_tax: bool
    brackets: Tuple[Bracket, ...] = ()
    flat_rate: Optional[float] = None


@dataclass(frozen=True)
class TaxTables:
    year: int
    federal_brackets: Mapping[str, Tuple[Bracket, ...]]
    standard_deduction: Mapping[str, float]
    fica: FicaRates
    states: Mapping[str, StateTaxRule]
    pay_periods: Mapping[str, int]
    allowance_value: float = 4300
    default_pay_frequency: str = "biweekly"
    source: str = field(default="defaults", compare=False)

    def periods_per_year(self, pay_frequency: Optional[str]) -> int:
        return self.pay_periods.get(pay_frequency or "", self.pay_periods[self.default_pay_frequency])

    def state_rule(self, state: Optional[str]) -> Optional[StateTaxRule]:
        if not state:
            return None
        return self.states.get(state.upper())


def _brackets(boundaries: List[float], rates: List[float]) -> Tuple[Bracket, ...]:
    """Build contiguous brackets from upper boundaries and one more rate than boundaries."""
    result = []
    lower = 0.0
    for upper, rate in zip(boundaries, rates):
        result.append(Bracket(lower=lower, upper=upper, rate=rate))
        lower = upper
    result.append(Bracket(lower=lower, upper=None, rate=rates[-1]))
    return tuple(result)


def _thresholds(points: List[Tuple[float, float]]) -> Tuple[Bracket, ...]:
    """Build contiguous brackets from (threshold, rate) pairs."""
    result = []
    for i, (threshold, rate) in enumerate(points):
        upper = points[i + 1][0] if i + 1 < len(points) else None
        result.append(Bracket(lower=threshold, upper=upper, rate=rate))
    return tuple(result)


_FEDERAL_RATES = [0.10, 0.12, 0.22, 0.24, 0.32, 0.35, 0.37]

_FEDERAL_2024 = {
    "single": _brackets([11600, 47150, 100525, 191950, 243725, 609350], _FEDERAL_RATES),
    "married_filing_jointly": _brackets([23200, 94300, 201050, 383900, 487450, 731200], _FEDERAL_RATES),
    "married_filing_separately": _brackets([11600, 47150, 100525, 191950, 243725, 365600], _FEDERAL_RATES),
    "head_of_household": _brackets([16550, 63100, 100500, 191950, 243700, 609350], _FEDERAL_RATES),
}

_STANDARD_DEDUCTION_2024 = {
    "single": 14600,
    "married_filing_jointly": 29200,
    "married_filing_separately": 14600,
    "head_of_household": 21900,
}

_NO_INCOME_TAX_STATES = ("TX", "FL", "WA", "NV", "SD", "WY", "AK", "TN", "NH")

_STATE_2024 = {
    "CA": StateTaxRule("CA", True, brackets=_thresholds([
        (0, 0.01), (10099, 0.02), (23942, 0.04), (37788, 0.06), (52455, 0.08),
        (66295, 0.093), (338639, 0.103), (406364, 0.113), (677275, 0.123), (1000000, 0.133),
    ])),
    "NY": StateTaxRule("NY", True, brackets=_thresholds([
        (0, 0.04), (8500, 0.045), (11700, 0.0525), (13900, 0.0585), (80650, 0.0625),
        (215400, 0.0685), (1077550, 0.0965), (5000000, 0.103), (25000000, 0.109),
    ])),
    "IL": StateTaxRule("IL", True, flat_rate=0.0495),
    "PA": StateTaxRule("PA", True, flat_rate=0.0307),
    **{code: StateTaxRule(code, False) for code in _NO_INCOME_TAX_STATES},
}

_PAY_PERIODS = {
    "weekly": 52,
    "biweekly": 26,
    "semimonthly": 24,
    "monthly": 12,
    "quarterly": 4,
    "annually": 1,
}


def default_tax_tables() -> TaxTables:
    """2024 tables built into the service."""
    return TaxTables(
        year=2024,
        federal_brackets=MappingProxyType(dict(_FEDERAL_2024)),
        standard_deduction=MappingProxyType(dict(_STANDARD_DEDUCTION_2024)),
        fica=FicaRates(),
        states=MappingProxyType(dict(_STATE_2024)),
        pay_periods=MappingProxyType(dict(_PAY_PERIODS)),
    )


def _parse_state_row(code: str, content: Dict[str, Any]) -> StateTaxRule:
    if not content.get("has_income_tax", True):
        return StateTaxRule(code, False)
    if content.get("flat_rate") is not None:
        return StateTaxRule(code, True, flat_rate=float(content["flat_rate"]))
    points = [(float(r["threshold"]), float(r["rate"])) for r in content.get("rates", [])]
    if not points:
        raise ValueError(f"State {code} row has neither rates nor flat_rate")
    return StateTaxRule(code, True, brackets=_thresholds(sorted(points)))


def apply_overrides(base: TaxTables, rows: List[Dict[str, Any]]) -> TaxTables:
    """Return a copy of ``base`` with state and FICA overrides from knowledge-base rows.

    Each row looks like ``{"subcategory": "state" | "fica", "key": "CA", "content": {...}}``.
    Rows that don't parse are skipped with a warning.
    """
    states = dict(base.states)
    fica = base.fica

    for row in rows:
        content = row.get("content") or {}
        kind = row.get("subcategory")
        try:
            if kind == "state":
                code = str(row.get("key", "")).upper()
                states[code] = _parse_state_row(code, content)
            elif kind == "fica":
                fica = replace(fica, **{k: float(v) for k, v in content.items() if hasattr(fica, k)})
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"[TaxTables] Skipping malformed tax_rates row {row.get('id')}: {e}")

    return replace(
        base,
        states=MappingProxyType(states),
        fica=fica,
        source="knowledge_base" if rows else base.source,
    )


_tables: Optional[TaxTables] = None


def load_tax_tables(rows: Optional[List[Dict[str, Any]]] = None) -> TaxTables:
    """Build the process-wide tables once.

    Args:
        rows: Optional ``knowledge_base`` rows with ``category = 'tax_rates'``

    Returns:
        The loaded TaxTables
    """
    global _tables
    tables = default_tax_tables()
    if rows:
        tables = apply_overrides(tables, rows)
    _tables = tables
    logger.info(f"[TaxTables] Loaded {tables.year} tables from {tables.source}")
    return tables


def get_tax_tables() -> TaxTables:
    """Get the loaded tables, falling back to the defaults if startup never ran."""
    global _tables
    if _tables is None:
        _tables = default_tax_tables()
    return _tables
