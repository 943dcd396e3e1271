"""
Authentication helpers.

Passwords are bcrypt hashes. A login opens a session in the active storage
backend and returns a JWT carrying the user id ("sub") and the session id
("sid"). A token is only honoured while its session exists, so logging out
(or a backend swap) invalidates it.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from expenseai.api.dependencies import get_app_settings, get_storage
from expenseai.config import AuthSettings, Settings
from expenseai.models.finance import User
from expenseai.services.storage import ExpenseStorageInterface


http_bearer = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode(), hashed.encode())
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def create_access_token(user_id: str, session_id: str, settings: AuthSettings) -> str:
    expire = datetime.now(timezone.utc) + timedelta(days=settings.token_expire_days)
    return jwt.encode(
        {"sub": user_id, "sid": session_id, "exp": expire},
        settings.secret_key,
        algorithm=settings.algorithm,
    )


def decode_access_token(token: str, settings: AuthSettings) -> tuple[str, str]:
    """
    Returns:
        (user_id, session_id)

    Raises:
        JWTError: If the token is invalid, expired or incomplete
    """
    payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    user_id, session_id = payload.get("sub"), payload.get("sid")
    if not user_id or not session_id:
        raise JWTError("Token is missing its subject or session")
    return user_id, session_id


async def resolve_token(
    token: Optional[str],
    storage: ExpenseStorageInterface,
    settings: AuthSettings,
) -> Optional[tuple[User, str]]:
    """Map a token to (user, session_id), or None when it does not authenticate."""
    if not token:
        return None
    try:
        user_id, session_id = decode_access_token(token, settings)
    except JWTError:
        return None
    if await storage.session_store.get(session_id) != user_id:
        return None
    user = await storage.get_user(user_id)
    if user is None:
        return None
    return user, session_id


@dataclass
class CurrentSession:
    user: User
    session_id: str


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    storage: ExpenseStorageInterface = Depends(get_storage),
    settings: Settings = Depends(get_app_settings),
) -> CurrentSession:
    if credentials is None:
        raise _unauthorized("Unauthorized")
    resolved = await resolve_token(credentials.credentials, storage, settings.auth)
    if resolved is None:
        raise _unauthorized("Invalid or expired token")
    user, session_id = resolved
    return CurrentSession(user=user, session_id=session_id)


async def get_current_user(
    session: CurrentSession = Depends(get_current_session),
) -> User:
    return session.user
