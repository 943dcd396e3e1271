from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from expenseai.api.auth import get_current_user
from expenseai.api.dependencies import get_budget_flow, get_expense_flow
from expenseai.models.finance import BudgetRecommendation, User
from expenseai.orchestrator import BudgetFlow, CategorizationResult, ExpenseFlow

router = APIRouter(prefix="/api/ai", tags=["AI"])


class CategorizeRequest(BaseModel):
    description: str = Field(..., min_length=1)
    amount: float = Field(default=0.0, ge=0, allow_inf_nan=False)


@router.post("/categorize", response_model=CategorizationResult)
async def categorize(
    data: CategorizeRequest,
    _: User = Depends(get_current_user),
    flow: ExpenseFlow = Depends(get_expense_flow),
):
    return await flow.categorize(data.description, data.amount)


@router.get("/budget-recommendations", response_model=list[BudgetRecommendation])
async def budget_recommendations(
    current_user: User = Depends(get_current_user),
    flow: BudgetFlow = Depends(get_budget_flow),
):
    return await flow.recommendations(current_user.id)
