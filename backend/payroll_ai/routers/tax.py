from fastapi import APIRouter, HTTPException

from ..schemas.tax import PayrollTaxRequest, PayrollTaxResult, TaxRatesResponse
from ..services.agents.extraction import STATE_CODES
from ..services.tax_calculator import calculate_payroll_taxes, get_tax_rates
from ..services.tax_tables import get_tax_tables

router = APIRouter(prefix="/tax", tags=["Tax"])


@router.post("/payroll", response_model=PayrollTaxResult)
async def calculate_payroll(req: PayrollTaxRequest):
    """
    Withholding for one paycheck: federal income tax, state income tax and FICA.

    Pure bracket arithmetic against the loaded tax tables; no LLM involved.
    `ytd_earnings` (before this paycheck) applies the Social Security wage base
    and the Additional Medicare threshold.
    """
    try:
        return calculate_payroll_taxes(req, get_tax_tables())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/rates/{state}", response_model=TaxRatesResponse)
async def tax_rates(state: str):
    code = state.upper()
    if code not in STATE_CODES:
        raise HTTPException(status_code=400, detail=f"Unknown state code: {state}")
    return get_tax_rates(code, get_tax_tables())
