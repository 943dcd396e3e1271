from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_validator, model_validator

from expenseai.api.auth import get_current_user
from expenseai.api.dependencies import get_insight_flow, get_storage
from expenseai.models.finance import Insight, User, validate_iso_date
from expenseai.orchestrator import InsightFlow
from expenseai.services.storage import ExpenseStorageInterface

router = APIRouter(prefix="/api/insights", tags=["Insights"])


class CustomRangeRequest(BaseModel):
    start: str
    end: str

    @field_validator('start', 'end', mode='before')
    @classmethod
    def parse_date(cls, v):
        return validate_iso_date(v)

    @model_validator(mode='after')
    def check_order(self):
        if self.end < self.start:
            raise ValueError("end must not be before start")
        return self


@router.get("", response_model=list[Insight])
async def list_insights(
    current_user: User = Depends(get_current_user),
    storage: ExpenseStorageInterface = Depends(get_storage),
):
    return await storage.get_insights_by_user(current_user.id)


@router.post("/generate", response_model=list[Insight])
async def generate_insights(
    current_user: User = Depends(get_current_user),
    flow: InsightFlow = Depends(get_insight_flow),
):
    """Replace the user's insights with three fresh ones."""
    return await flow.generate(current_user.id)


@router.post("/custom", response_model=list[Insight])
async def generate_custom_insights(
    data: CustomRangeRequest,
    current_user: User = Depends(get_current_user),
    flow: InsightFlow = Depends(get_insight_flow),
):
    """Three insights for an inclusive date range; existing insights are kept."""
    return await flow.generate_for_range(current_user.id, data.start, data.end)


@router.put("/{insight_id}/read")
async def mark_read(
    insight_id: str,
    current_user: User = Depends(get_current_user),
    storage: ExpenseStorageInterface = Depends(get_storage),
):
    await storage.mark_insight_as_read(current_user.id, insight_id)
    return {"success": True}
