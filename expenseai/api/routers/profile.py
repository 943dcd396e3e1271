from fastapi import APIRouter, Depends

from expenseai.api.auth import get_current_user
from expenseai.api.dependencies import get_storage
from expenseai.models.finance import User, UserProfile, UserProfileUpdate
from expenseai.services.storage import ExpenseStorageInterface

router = APIRouter(prefix="/api/user/profile", tags=["Profile"])


@router.get("", response_model=UserProfile)
async def get_profile(
    current_user: User = Depends(get_current_user),
    storage: ExpenseStorageInterface = Depends(get_storage),
):
    """The stored profile, or the defaults when none was saved yet."""
    profile = await storage.get_user_profile(current_user.id)
    return profile or UserProfile.defaults_for(current_user.id)


@router.put("", response_model=UserProfile)
async def update_profile(
    data: UserProfileUpdate,
    current_user: User = Depends(get_current_user),
    storage: ExpenseStorageInterface = Depends(get_storage),
):
    return await storage.update_user_profile(current_user.id, data)
