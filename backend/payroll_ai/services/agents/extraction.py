"""Regex extraction of loosely typed parameters from free text.

Every extractor returns its ``default`` when nothing matches.
"""

import re
from datetime import date, datetime
from typing import Optional

STATE_NAMES = {
    "alabama": "AL", "alaska": "AK", "arizona": "AZ", "arkansas": "AR", "california": "CA",
    "colorado": "CO", "connecticut": "CT", "delaware": "DE", "florida": "FL", "georgia": "GA",
    "hawaii": "HI", "idaho": "ID", "illinois": "IL", "indiana": "IN", "iowa": "IA",
    "kansas": "KS", "kentucky": "KY", "louisiana": "LA", "maine": "ME", "maryland": "MD",
    "massachusetts": "MA", "michigan": "MI", "minnesota": "MN", "mississippi": "MS", "missouri": "MO",
    "montana": "MT", "nebraska": "NE", "nevada": "NV", "new hampshire": "NH", "new jersey": "NJ",
    "new mexico": "NM", "new york": "NY", "north carolina": "NC", "north dakota": "ND", "ohio": "OH",
    "oklahoma": "OK", "oregon": "OR", "pennsylvania": "PA", "rhode island": "RI", "south carolina": "SC",
    "south dakota": "SD", "tennessee": "TN", "texas": "TX", "utah": "UT", "vermont": "VT",
    "virginia": "VA", "washington": "WA", "west virginia": "WV", "wisconsin": "WI", "wyoming": "WY",
}
STATE_CODES = frozenset(STATE_NAMES.values()) | {"DC"}

# Two-letter codes that are also common English words; only accepted in upper case
_AMBIGUOUS_CODES = {"IN", "OR", "ME", "OK", "HI", "OH", "PA", "MA", "DE", "LA", "AL", "CO", "ID", "MO", "MI", "MS", "MT", "SC", "ND"}

_STATE_NAME_RE = re.compile(
    r"\b(" + "|".join(sorted((re.escape(n) for n in STATE_NAMES), key=len, reverse=True)) + r")\b",
    re.IGNORECASE,
)
_STATE_CODE_RE = re.compile(r"\b([A-Za-z]{2})\b")

_AMOUNT_RE = re.compile(
    r"\$\s?(\d{1,3}(?:,\d{3})+|\d+)(\.\d+)?\s*([kK]\b|[mM]\b)?"
    r"|\b(\d{1,3}(?:,\d{3})+|\d+)(\.\d+)?\s*([kK]\b|[mM]\b|dollars\b|usd\b)",
    re.IGNORECASE,
)
_BARE_AMOUNT_RE = re.compile(r"\b(\d{1,3}(?:,\d{3})+)(\.\d+)?\b")

_MONTHS = (
    "january|february|march|april|may|june|july|august|september|october|november|december"
    "|jan|feb|mar|apr|jun|jul|aug|sep|sept|oct|nov|dec"
)
_ISO_DATE_RE = re.compile(r"\b(\d{4})-(\d{2})-(\d{2})\b")
_US_DATE_RE = re.compile(r"\b(\d{1,2})/(\d{1,2})/(\d{4})\b")
_LONG_DATE_RE = re.compile(rf"\b({_MONTHS})\.?\s+(\d{{1,2}})(?:st|nd|rd|th)?,?\s+(\d{{4}})\b", re.IGNORECASE)

_FILING_STATUS_PATTERNS = (
    ("married_filing_separately", re.compile(r"married[\s_-]+filing[\s_-]+separate(ly)?|\bmfs\b", re.IGNORECASE)),
    ("married_filing_jointly", re.compile(r"married[\s_-]+filing[\s_-]+joint(ly)?|\bmfj\b|\bmarried\b", re.IGNORECASE)),
    ("head_of_household", re.compile(r"head[\s_-]+of[\s_-]+household|\bhoh\b", re.IGNORECASE)),
    ("single", re.compile(r"\bsingle\b", re.IGNORECASE)),
)

_PAY_FREQUENCY_PATTERNS = (
    ("semimonthly", re.compile(r"\bsemi[- ]?monthly\b|\btwice (a|per) month\b", re.IGNORECASE)),
    ("biweekly", re.compile(r"\bbi[- ]?weekly\b|\bevery (two|2) weeks\b", re.IGNORECASE)),
    ("weekly", re.compile(r"\bweekly\b|\bevery week\b|\bper week\b|\ba week\b", re.IGNORECASE)),
    ("monthly", re.compile(r"\bmonthly\b|\bper month\b|\ba month\b", re.IGNORECASE)),
    ("quarterly", re.compile(r"\bquarterly\b", re.IGNORECASE)),
    ("annually", re.compile(r"\bannual(ly)?\b|\byearly\b|\bper year\b|\ba year\b|\bsalary\b", re.IGNORECASE)),
)

# Amount stated as yearly pay, as opposed to one paycheck
_ANNUAL_AMOUNT_RE = re.compile(
    r"\bsalary\b|\bsalaried\b|\bannual (?:salary|income|pay|wages?|compensation)\b"
    r"|\d(?:\.\d+)?\s*[kK]?\s*(?:/\s*(?:yr|year)\b|(?:per|a) (?:year|annum)\b|annually\b|yearly\b)",
    re.IGNORECASE,
)

_EMPLOYEE_RE = re.compile(r"\b(\d{1,3}(?:,\d{3})*|\d+)\s*(?:\+\s*)?(?:full[- ]time\s+)?(employees|staff|workers|people|headcount)\b", re.IGNORECASE)

INDUSTRIES = {
    "healthcare": ("healthcare", "health care", "hospital", "clinic", "medical", "dental"),
    "construction": ("construction", "contractor", "builder", "roofing"),
    "financial": ("financial", "finance", "broker", "brokerage", "bank", "investment"),
    "retail": ("retail", "store", "shop", "ecommerce", "e-commerce"),
    "technology": ("technology", "tech", "software", "saas", "startup"),
    "restaurant": ("restaurant", "cafe", "bar", "food service", "hospitality"),
}

BUSINESS_TYPES = {
    "sole_proprietorship": ("sole proprietor", "sole proprietorship", "freelancer", "self-employed", "self employed"),
    "llc": ("llc", "limited liability"),
    "s_corp": ("s corp", "s-corp", "s corporation"),
    "c_corp": ("c corp", "c-corp", "c corporation", "corporation"),
    "partnership": ("partnership", "partners"),
    "nonprofit": ("nonprofit", "non-profit", "501(c)"),
}

_YTD_RE = re.compile(
    r"(?:ytd|year[- ]to[- ]date|already earned|earned so far)[^$\d]{0,20}\$?\s?(\d{1,3}(?:,\d{3})+|\d+)(\.\d+)?\s*([kK])?"
    r"|\$?\s?(\d{1,3}(?:,\d{3})+|\d+)(\.\d+)?\s*([kK])?\s*(?:ytd|year[- ]to[- ]date|so far this year)",
    re.IGNORECASE,
)


def extract_state(text: str, default: Optional[str] = None) -> Optional[str]:
    """Two-letter state code from a full state name or a code."""
    text = text or ""
    name_match = _STATE_NAME_RE.search(text)
    if name_match:
        return STATE_NAMES[name_match.group(1).lower()]

    for match in _STATE_CODE_RE.finditer(text):
        token = match.group(1)
        upper = token.upper()
        if upper not in STATE_CODES:
            continue
        if upper in _AMBIGUOUS_CODES and token != upper:
            continue
        return upper
    return default


def _to_amount(whole: str, fraction: Optional[str], suffix: Optional[str]) -> float:
    value = float(whole.replace(",", "") + (fraction or ""))
    suffix = (suffix or "").lower()
    if suffix == "k":
        value *= 1_000
    elif suffix == "m":
        value *= 1_000_000
    return value


def extract_amount(text: str, default: Optional[float] = None) -> Optional[float]:
    """First dollar amount: ``$1,234.56``, ``$50k``, ``75,000 dollars``, ``80k``."""
    match = _AMOUNT_RE.search(text or "")
    if not match:
        bare = _BARE_AMOUNT_RE.search(text or "")
        return _to_amount(bare.group(1), bare.group(2), None) if bare else default
    if match.group(1) is not None:
        return _to_amount(match.group(1), match.group(2), match.group(3))
    return _to_amount(match.group(4), match.group(5), match.group(6) if (match.group(6) or "").lower() in ("k", "m") else None)


def extract_date(text: str, default: Optional[date] = None) -> Optional[date]:
    """First date in ISO, US (M/D/YYYY) or ``Month D, YYYY`` form."""
    text = text or ""
    candidates = []

    for match in _ISO_DATE_RE.finditer(text):
        try:
            candidates.append((match.start(), date(int(match.group(1)), int(match.group(2)), int(match.group(3)))))
        except ValueError:
            continue
    for match in _US_DATE_RE.finditer(text):
        try:
            candidates.append((match.start(), date(int(match.group(3)), int(match.group(1)), int(match.group(2)))))
        except ValueError:
            continue
    for match in _LONG_DATE_RE.finditer(text):
        month_token = match.group(1)[:3].lower()
        try:
            month = datetime.strptime(month_token, "%b").month
            candidates.append((match.start(), date(int(match.group(3)), month, int(match.group(2)))))
        except ValueError:
            continue

    if not candidates:
        return default
    return min(candidates, key=lambda c: c[0])[1]


def extract_filing_status(text: str, default: str = "single") -> str:
    for status, pattern in _FILING_STATUS_PATTERNS:
        if pattern.search(text or ""):
            return status
    return default


def extract_pay_frequency(text: str, default: str = "biweekly") -> str:
    for frequency, pattern in _PAY_FREQUENCY_PATTERNS:
        if pattern.search(text or ""):
            return frequency
    return default


def is_annual_amount(text: str) -> bool:
    """True when the pay amount in ``text`` is a yearly figure, e.g. "$75,000 salary"."""
    return bool(_ANNUAL_AMOUNT_RE.search(text or ""))


def extract_employee_count(text: str, default: Optional[int] = None) -> Optional[int]:
    match = _EMPLOYEE_RE.search(text or "")
    if not match:
        return default
    return int(match.group(1).replace(",", ""))


def _keyword_lookup(text: str, table, default: Optional[str]) -> Optional[str]:
    lowered = (text or "").lower()
    for key, keywords in table.items():
        if any(re.search(rf"\b{re.escape(k)}\b", lowered) for k in keywords):
            return key
    return default


def extract_industry(text: str, default: Optional[str] = None) -> Optional[str]:
    return _keyword_lookup(text, INDUSTRIES, default)


def extract_business_type(text: str, default: Optional[str] = None) -> Optional[str]:
    return _keyword_lookup(text, BUSINESS_TYPES, default)


def extract_ytd_earnings(text: str, default: float = 0.0) -> float:
    match = _YTD_RE.search(text or "")
    if not match:
        return default
    if match.group(1) is not None:
        return _to_amount(match.group(1), match.group(2), match.group(3))
    return _to_amount(match.group(4), match.group(5), match.group(6))


def extract_allowances(text: str, default: int = 0) -> int:
    match = re.search(r"\b(\d{1,2})\s+(?:withholding\s+)?allowances?\b", text or "", re.IGNORECASE)
    return int(match.group(1)) if match else default


def extract_quoted_name(text: str) -> Optional[str]:
    """Name given as ``named "X"`` / ``called 'X'`` or plain ``named X``."""
    match = re.search(r"(?:named|called)\s+[\"'“‘]([^\"'”’]+)[\"'”’]", text or "", re.IGNORECASE)
    if match:
        return match.group(1).strip()
    match = re.search(r"(?:named|called)\s+([A-Za-z][\w &-]{1,40}?)(?:[.,?!]|\s+(?:for|with|that|which)\b|$)", text or "", re.IGNORECASE)
    return match.group(1).strip() if match else None
