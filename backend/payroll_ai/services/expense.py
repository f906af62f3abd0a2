"""Expense categories, keyword rules and categorisation."""

from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Tuple

from rapidfuzz import fuzz

from ..schemas.expense import (
    CategorizationResult,
    CategorySuggestion,
    CustomCategoryResult,
    ExpenseCategory,
    ExpenseDetails,
    ExpenseRule,
)

FUZZY_THRESHOLD = 90
FALLBACK_CONFIDENCE = 0.3
CAPITALIZATION_THRESHOLD = 2500


@dataclass(frozen=True)
class ExpenseCatalog:
    categories: Tuple[ExpenseCategory, ...]
    rules: Tuple[ExpenseRule, ...]
    custom: Tuple[ExpenseCategory, ...] = ()

    def all_categories(self) -> List[ExpenseCategory]:
        return list(self.categories) + list(self.custom)

    def get(self, category_id: str) -> Optional[ExpenseCategory]:
        for category in self.all_categories():
            if category.id == category_id:
                return category
        return None

    def with_custom(self, categories: List[ExpenseCategory]) -> "ExpenseCatalog":
        return replace(self, custom=tuple(categories))


_CATEGORIES = (
    ExpenseCategory(id="advertising", name="Advertising & Marketing", description="Expenses related to promoting your business"),
    ExpenseCategory(id="bank_fees", name="Bank Fees & Charges", description="Fees charged by financial institutions"),
    ExpenseCategory(id="office_supplies", name="Office Supplies", description="Items used in daily office operations"),
    ExpenseCategory(id="rent", name="Rent & Lease", description="Payments for business property"),
    ExpenseCategory(id="utilities", name="Utilities", description="Electricity, water, internet, phone services"),
    ExpenseCategory(id="travel", name="Travel", description="Business travel expenses"),
    ExpenseCategory(id="meals", name="Meals & Entertainment", description="Business meals and entertainment (partially deductible)"),
    ExpenseCategory(id="insurance", name="Insurance", description="Business insurance premiums"),
    ExpenseCategory(id="professional_services", name="Professional Services", description="Legal, accounting, consulting fees"),
    ExpenseCategory(id="software", name="Software & Subscriptions", description="Software licenses and subscription services"),
    ExpenseCategory(id="equipment", name="Equipment", description="Business equipment purchases"),
    ExpenseCategory(id="repairs", name="Repairs & Maintenance", description="Costs to maintain business property and equipment"),
    ExpenseCategory(id="vehicle", name="Vehicle Expenses", description="Business vehicle costs including mileage"),
    ExpenseCategory(id="taxes", name="Taxes & Licenses", description="Business taxes, licenses, and permits"),
    ExpenseCategory(id="education", name="Education & Training", description="Professional development and training costs"),
    ExpenseCategory(id="other", name="Other Expenses", description="Miscellaneous business expenses"),
    ExpenseCategory(id="personal", name="Personal (Non-Business)", description="Personal expenses - not business related", tax_deductible=False),
)

_RULES = (
    ExpenseRule(keywords=("facebook ads", "google ads", "advertising", "marketing", "promotion"), category_id="advertising", confidence=0.8),
    ExpenseRule(keywords=("bank fee", "service charge", "transaction fee", "wire transfer"), category_id="bank_fees", confidence=0.9),
    ExpenseRule(keywords=("paper", "ink", "toner", "staples", "office depot", "pen", "notebook"), category_id="office_supplies", confidence=0.8),
    ExpenseRule(keywords=("rent", "lease", "property", "workspace"), category_id="rent", confidence=0.9),
    ExpenseRule(keywords=("electricity", "water", "gas", "internet", "phone", "utility"), category_id="utilities", confidence=0.9),
    ExpenseRule(keywords=("flight", "hotel", "airfare", "lodging", "travel"), category_id="travel", confidence=0.8),
    ExpenseRule(keywords=("restaurant", "meal", "lunch", "dinner", "catering"), category_id="meals", confidence=0.7),
    ExpenseRule(keywords=("insurance", "premium", "coverage", "liability"), category_id="insurance", confidence=0.9),
    ExpenseRule(keywords=("lawyer", "accountant", "attorney", "legal", "consulting"), category_id="professional_services", confidence=0.8),
    ExpenseRule(keywords=("software", "subscription", "saas", "license", "adobe", "microsoft", "app"), category_id="software", confidence=0.8),
    ExpenseRule(keywords=("equipment", "computer", "laptop", "printer", "machinery", "furniture"), category_id="equipment", confidence=0.8),
    ExpenseRule(keywords=("repair", "maintenance", "fix", "service", "cleaning"), category_id="repairs", confidence=0.8),
    ExpenseRule(keywords=("gas", "fuel", "mileage", "car", "vehicle", "auto", "uber", "lyft", "taxi"), category_id="vehicle", confidence=0.8),
    ExpenseRule(keywords=("tax", "license", "permit", "registration", "fee"), category_id="taxes", confidence=0.8),
    ExpenseRule(keywords=("training", "course", "seminar", "conference", "education", "workshop"), category_id="education", confidence=0.8),
    ExpenseRule(keywords=("grocery", "personal", "clothing", "gift"), category_id="personal", confidence=0.7),
)

DEFAULT_CATALOG = ExpenseCatalog(categories=_CATEGORIES, rules=_RULES)


def _keyword_matches(keyword: str, text: str) -> bool:
    keyword = keyword.lower()
    if keyword in text:
        return True
    # Fuzzy match only multi-word keywords ("google ads" vs "google adwords")
    return " " in keyword and fuzz.partial_ratio(keyword, text) >= FUZZY_THRESHOLD


def score_rules(text: str, rules: Tuple[ExpenseRule, ...]) -> List[Tuple[str, float]]:
    """Score every rule against lowercased text, best first. Ties keep rule order."""
    scores: Dict[str, float] = {}
    for rule in rules:
        matched = sum(1 for keyword in rule.keywords if _keyword_matches(keyword, text))
        if matched == 0:
            continue
        score = rule.confidence * (matched / len(rule.keywords))
        # Several rules can point at one category; keep the best
        scores[rule.category_id] = max(score, scores.get(rule.category_id, 0.0))
    return sorted(scores.items(), key=lambda item: item[1], reverse=True)


def get_tax_notes(category: Optional[ExpenseCategory], amount: float) -> str:
    """Deductibility guidance for the top suggested category."""
    if category is None:
        return ""

    if category.id == "meals":
        return "Business meals are generally 50% tax deductible. Keep detailed records of who attended and the business purpose."
    if category.id == "vehicle":
        return "Track business mileage separately from personal use. Consider using standard mileage rate vs. actual expenses."
    if category.id == "travel":
        return "Business travel expenses are fully deductible, but personal elements of trips are not. Maintain documentation of business purpose."
    if category.id == "equipment":
        if amount > CAPITALIZATION_THRESHOLD:
            return "Equipment over $2,500 may need to be capitalized and depreciated rather than expensed immediately. Consult with your accountant."
        return "Small equipment purchases under $2,500 can usually be fully expensed in the current year."
    if category.id == "personal":
        return "This appears to be a personal expense which is not tax deductible for business purposes."

    if category.tax_deductible:
        return "This expense category is generally tax deductible. Keep all receipts and documentation of business purpose."
    return "This expense category may not be tax deductible. Consult with your accountant."


def categorize_expense(
    description: str,
    catalog: ExpenseCatalog,
    amount: float = 0,
    vendor: str = "",
    date: Optional[str] = None,
    payment_method: str = "unknown",
) -> CategorizationResult:
    """Suggest up to three categories for an expense."""
    full_text = f"{description.lower()} {vendor.lower()}".strip()

    suggestions = []
    for category_id, confidence in score_rules(full_text, catalog.rules)[:3]:
        category = catalog.get(category_id)
        if category is None:
            continue
        suggestions.append(CategorySuggestion(
            id=category.id,
            name=category.name,
            description=category.description,
            tax_deductible=category.tax_deductible,
            confidence=round(confidence, 4),
        ))

    if not suggestions:
        other = catalog.get("other")
        if other is not None:
            suggestions.append(CategorySuggestion(
                id=other.id,
                name=other.name,
                description=other.description,
                tax_deductible=other.tax_deductible,
                confidence=FALLBACK_CONFIDENCE,
            ))

    top = catalog.get(suggestions[0].id) if suggestions else None

    return CategorizationResult(
        expense_details=ExpenseDetails(
            description=description,
            amount=amount,
            vendor=vendor,
            date=date,
            payment_method=payment_method,
        ),
        suggested_categories=suggestions,
        tax_notes=get_tax_notes(top, amount),
    )


def get_expense_categories(catalog: ExpenseCatalog, include_custom: bool = True) -> List[ExpenseCategory]:
    if include_custom:
        return catalog.all_categories()
    return list(catalog.categories)


def find_duplicate_category(catalog: ExpenseCatalog, name: str) -> Optional[ExpenseCategory]:
    for category in catalog.all_categories():
        if category.name.lower() == name.strip().lower():
            return category
    return None


def create_custom_category(
    catalog: ExpenseCatalog,
    name: str,
    persist: Callable[[Dict[str, object]], Optional[Dict[str, object]]],
    description: str = "",
    tax_deductible: bool = True,
) -> Tuple[ExpenseCatalog, CustomCategoryResult]:
    """Add a custom category unless one with the same name exists.

    Args:
        catalog: Current catalog
        name: Display name for the new category
        persist: Callback that stores the row and returns it (with an id), or None on failure
        description: Optional description
        tax_deductible: Whether the category is deductible

    Returns:
        Tuple of (catalog to use from now on, result)
    """
    if not name or not name.strip():
        raise ValueError("Category name is required")

    existing = find_duplicate_category(catalog, name)
    if existing is not None:
        return catalog, CustomCategoryResult(
            success=False,
            error="A category with this name already exists",
            existing_category=existing,
        )

    row = persist({
        "name": name.strip(),
        "description": description,
        "tax_deductible": tax_deductible,
    })
    if not row:
        return catalog, CustomCategoryResult(success=False, error="Failed to create custom category")

    category = ExpenseCategory(
        id=str(row.get("id")),
        name=str(row.get("name", name.strip())),
        description=str(row.get("description") or ""),
        tax_deductible=bool(row.get("tax_deductible", tax_deductible)),
        custom=True,
    )
    return catalog.with_custom(list(catalog.custom) + [category]), CustomCategoryResult(success=True, category=category)
