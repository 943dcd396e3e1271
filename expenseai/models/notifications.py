"""
Real-time Notification Models

Frames pushed over the WebSocket channel. Every frame is
{"type": ..., "data": ..., "timestamp": <epoch milliseconds>}.
"""

import time
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class NotificationType(str, Enum):
    CONNECTION = "connection"
    EXPENSE_UPDATE = "expense_update"
    INSIGHTS_UPDATE = "insights_update"
    ANALYTICS_UPDATE = "analytics_update"
    PING = "ping"
    PONG = "pong"


class ExpenseAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


def epoch_millis() -> int:
    return int(time.time() * 1000)


class NotificationMessage(BaseModel):
    """A single WebSocket frame."""

    type: NotificationType
    data: Optional[dict[str, Any]] = None
    timestamp: int = Field(default_factory=epoch_millis)

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True)


class ClientMessage(BaseModel):
    """A frame sent by the browser. Only "ping" is acted upon."""

    type: str
    data: Optional[Any] = None
