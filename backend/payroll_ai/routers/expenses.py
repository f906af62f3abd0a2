import asyncio

from fastapi import APIRouter, Depends, HTTPException
from typing import List, Optional

from ..schemas.expense import (
    CategorizationResult,
    CategorizeRequest,
    CustomCategoryRequest,
    CustomCategoryResult,
    ExpenseCategory,
)
from ..services.expense import (
    DEFAULT_CATALOG,
    ExpenseCatalog,
    categorize_expense,
    create_custom_category,
    get_expense_categories,
)
from ..services.storage import PayrollStore, get_store

router = APIRouter(prefix="/expenses", tags=["Expenses"])


def _catalog(store: PayrollStore, company_id: Optional[str]) -> ExpenseCatalog:
    if not company_id:
        return DEFAULT_CATALOG
    rows = store.load_custom_categories(company_id)
    return DEFAULT_CATALOG.with_custom([
        ExpenseCategory(
            id=str(r.get("id")),
            name=str(r.get("name", "")),
            description=str(r.get("description") or ""),
            tax_deductible=bool(r.get("tax_deductible", True)),
            custom=True,
        )
        for r in rows
    ])


@router.post("/categorize", response_model=CategorizationResult)
async def categorize(
    req: CategorizeRequest,
    company_id: Optional[str] = None,
    store: PayrollStore = Depends(get_store),
):
    """Suggest up to three categories for an expense, with deductibility notes."""
    if not req.description.strip():
        raise HTTPException(status_code=400, detail="Description is required")
    catalog = await asyncio.to_thread(_catalog, store, company_id)
    return categorize_expense(
        req.description,
        catalog,
        amount=req.amount,
        vendor=req.vendor,
        date=req.date,
    )


@router.get("/categories", response_model=List[ExpenseCategory])
async def categories(
    company_id: Optional[str] = None,
    store: PayrollStore = Depends(get_store),
):
    return get_expense_categories(await asyncio.to_thread(_catalog, store, company_id))


@router.post("/categories", response_model=CustomCategoryResult)
async def create_category(
    req: CustomCategoryRequest,
    store: PayrollStore = Depends(get_store),
):
    if not req.company_id:
        raise HTTPException(status_code=400, detail="company_id is required for custom categories")
    try:
        catalog = await asyncio.to_thread(_catalog, store, req.company_id)
        _, result = await asyncio.to_thread(
            create_custom_category,
            catalog,
            req.name,
            lambda row: store.insert_expense_category(req.company_id, row),
            description=req.description,
            tax_deductible=req.tax_deductible,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return result
