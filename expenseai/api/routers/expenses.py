from fastapi import APIRouter, Depends, Query

from expenseai.api.auth import get_current_user
from expenseai.api.dependencies import get_expense_flow, get_storage
from expenseai.models.finance import (
    Expense,
    ExpenseCreate,
    ExpenseUpdate,
    ExpenseWithCategory,
    User,
)
from expenseai.orchestrator import ExpenseFlow
from expenseai.services.storage import ExpenseStorageInterface

router = APIRouter(prefix="/api/expenses", tags=["Expenses"])


@router.get("", response_model=list[ExpenseWithCategory])
async def list_expenses(
    limit: int = Query(50, ge=1, le=5000),
    current_user: User = Depends(get_current_user),
    storage: ExpenseStorageInterface = Depends(get_storage),
):
    """Newest first, with categories resolved."""
    return await storage.get_expenses_by_user(current_user.id, limit=limit)


@router.post("", response_model=Expense)
async def create_expense(
    data: ExpenseCreate,
    current_user: User = Depends(get_current_user),
    flow: ExpenseFlow = Depends(get_expense_flow),
):
    """Create an expense; without a categoryId the AI picks one."""
    return await flow.create_expense(current_user.id, data)


@router.put("/{expense_id}", response_model=Expense)
async def update_expense(
    expense_id: str,
    data: ExpenseUpdate,
    current_user: User = Depends(get_current_user),
    flow: ExpenseFlow = Depends(get_expense_flow),
):
    return await flow.update_expense(current_user.id, expense_id, data)


@router.delete("/{expense_id}")
async def delete_expense(
    expense_id: str,
    current_user: User = Depends(get_current_user),
    flow: ExpenseFlow = Depends(get_expense_flow),
):
    await flow.delete_expense(current_user.id, expense_id)
    return {"success": True}
