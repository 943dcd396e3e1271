from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from expenseai.api.auth import get_current_user
from expenseai.api.dependencies import get_storage
from expenseai.models.finance import ExpenseStats, User, validate_iso_date
from expenseai.services.storage import ExpenseStorageInterface

router = APIRouter(prefix="/api/analytics", tags=["Analytics"])


@router.get("/stats", response_model=ExpenseStats)
async def expense_stats(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    current_user: User = Depends(get_current_user),
    storage: ExpenseStorageInterface = Depends(get_storage),
):
    """Totals, category breakdown and daily trend for an inclusive date range."""
    if not start_date or not end_date:
        raise HTTPException(status_code=400, detail="Start date and end date are required")
    try:
        start, end = validate_iso_date(start_date), validate_iso_date(end_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return await storage.get_expense_stats(current_user.id, start, end)
