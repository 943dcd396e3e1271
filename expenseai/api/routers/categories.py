from fastapi import APIRouter, Depends

from expenseai.api.auth import get_current_user
from expenseai.api.dependencies import get_storage
from expenseai.models.finance import Category, CategoryCreate, CategoryUpdate, User
from expenseai.services.storage import ExpenseStorageInterface

router = APIRouter(prefix="/api/categories", tags=["Categories"])


@router.get("", response_model=list[Category])
async def list_categories(
    _: User = Depends(get_current_user),
    storage: ExpenseStorageInterface = Depends(get_storage),
):
    """Categories are shared by every user."""
    return await storage.get_categories()


@router.post("", response_model=Category)
async def create_category(
    data: CategoryCreate,
    _: User = Depends(get_current_user),
    storage: ExpenseStorageInterface = Depends(get_storage),
):
    return await storage.create_category(data)


@router.patch("/{category_id}", response_model=Category)
async def update_category(
    category_id: str,
    data: CategoryUpdate,
    _: User = Depends(get_current_user),
    storage: ExpenseStorageInterface = Depends(get_storage),
):
    return await storage.update_category(category_id, data)


@router.delete("/{category_id}")
async def delete_category(
    category_id: str,
    _: User = Depends(get_current_user),
    storage: ExpenseStorageInterface = Depends(get_storage),
):
    await storage.delete_category(category_id)
    return {"success": True}
