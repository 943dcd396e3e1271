from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from expenseai.api.auth import get_current_user
from expenseai.api.dependencies import get_storage
from expenseai.models.finance import (
    Budget,
    BudgetCreate,
    BudgetPeriod,
    BudgetStatus,
    BudgetUpdate,
    User,
)
from expenseai.orchestrator import user_today
from expenseai.queries import BudgetTracker
from expenseai.services.storage import ExpenseStorageInterface

router = APIRouter(prefix="/api/budgets", tags=["Budgets"])


@router.get("", response_model=list[Budget])
async def list_budgets(
    current_user: User = Depends(get_current_user),
    storage: ExpenseStorageInterface = Depends(get_storage),
):
    return await storage.get_budgets_by_user(current_user.id)


@router.get("/status", response_model=list[BudgetStatus])
async def budget_status(
    period: Optional[BudgetPeriod] = Query(None, description="Only budgets of this period"),
    on: Optional[date] = Query(None, alias="date", description="Reference day, defaults to today in the profile timezone"),
    current_user: User = Depends(get_current_user),
    storage: ExpenseStorageInterface = Depends(get_storage),
):
    """Progress of every budget active on the reference day."""
    today = on or await user_today(storage, current_user.id)
    return await BudgetTracker(storage).get_budget_statuses(current_user.id, today, period)


@router.post("", response_model=Budget)
async def create_budget(
    data: BudgetCreate,
    current_user: User = Depends(get_current_user),
    storage: ExpenseStorageInterface = Depends(get_storage),
):
    return await storage.create_budget(current_user.id, data)


@router.put("/{budget_id}", response_model=Budget)
async def update_budget(
    budget_id: str,
    data: BudgetUpdate,
    current_user: User = Depends(get_current_user),
    storage: ExpenseStorageInterface = Depends(get_storage),
):
    return await storage.update_budget(current_user.id, budget_id, data)


@router.delete("/{budget_id}")
async def delete_budget(
    budget_id: str,
    current_user: User = Depends(get_current_user),
    storage: ExpenseStorageInterface = Depends(get_storage),
):
    await storage.delete_budget(current_user.id, budget_id)
    return {"success": True}
