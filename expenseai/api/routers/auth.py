from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from expenseai.api.auth import (
    CurrentSession,
    create_access_token,
    get_current_session,
    get_current_user,
    hash_password,
    verify_password,
)
from expenseai.api.dependencies import get_app_settings, get_storage
from expenseai.config import Settings
from expenseai.logger import get_logger
from expenseai.models.finance import User, UserCreate, UserUpdate
from expenseai.services.storage import DuplicateError, ExpenseStorageInterface

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["Auth"])


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    token: str
    user: User


async def _issue_token(user: User, storage: ExpenseStorageInterface, settings: Settings) -> TokenResponse:
    session_id = await storage.session_store.create(user.id)
    return TokenResponse(
        token=create_access_token(user.id, session_id, settings.auth),
        user=user,
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    data: UserCreate,
    storage: ExpenseStorageInterface = Depends(get_storage),
    settings: Settings = Depends(get_app_settings),
):
    """Create an account and log it in."""
    payload = data.model_copy(update={"password": hash_password(data.password)})
    try:
        user = await storage.create_user(payload)
    except DuplicateError:
        raise HTTPException(status_code=400, detail="Username already exists")
    logger.info("user_registered", user_id=user.id)
    return await _issue_token(user, storage, settings)


@router.post("/login", response_model=TokenResponse)
async def login(
    data: LoginRequest,
    storage: ExpenseStorageInterface = Depends(get_storage),
    settings: Settings = Depends(get_app_settings),
):
    user = await storage.get_user_by_username(data.username)
    if user is None or not verify_password(data.password, user.password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid username or password")
    logger.info("user_logged_in", user_id=user.id)
    return await _issue_token(user, storage, settings)


@router.post("/logout")
async def logout(
    session: CurrentSession = Depends(get_current_session),
    storage: ExpenseStorageInterface = Depends(get_storage),
):
    await storage.session_store.destroy(session.session_id)
    return {"success": True}


@router.get("/user", response_model=User)
async def get_user(current_user: User = Depends(get_current_user)):
    return current_user


@router.patch("/user", response_model=User)
async def update_user(
    data: UserUpdate,
    current_user: User = Depends(get_current_user),
    storage: ExpenseStorageInterface = Depends(get_storage),
):
    return await storage.update_user(current_user.id, data)
