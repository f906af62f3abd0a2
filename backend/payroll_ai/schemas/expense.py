"""Expense categorisation schemas."""

from typing import List, Optional, Tuple
from pydantic import BaseModel, Field


class ExpenseCategory(BaseModel):
    id: str
    name: str
    description: str = ""
    tax_deductible: bool = True
    custom: bool = False

    class Config:
        frozen = True


class ExpenseRule(BaseModel):
    """Keyword rule that suggests a category."""
    keywords: Tuple[str, ...]
    category_id: str
    confidence: float

    class Config:
        frozen = True


class CategorySuggestion(BaseModel):
    id: str
    name: str
    description: str
    tax_deductible: bool
    confidence: float


class ExpenseDetails(BaseModel):
    description: str
    amount: float = 0
    vendor: str = ""
    date: Optional[str] = None
    payment_method: str = "unknown"


class CategorizationResult(BaseModel):
    expense_details: ExpenseDetails
    suggested_categories: List[CategorySuggestion] = Field(default_factory=list)
    tax_notes: str = ""


class CategorizeRequest(BaseModel):
    description: str
    amount: float = 0
    vendor: str = ""
    date: Optional[str] = None


class CustomCategoryRequest(BaseModel):
    name: str
    description: str = ""
    tax_deductible: bool = True
    company_id: Optional[str] = None


class CustomCategoryResult(BaseModel):
    success: bool
    category: Optional[ExpenseCategory] = None
    existing_category: Optional[ExpenseCategory] = None
    error: Optional[str] = None
