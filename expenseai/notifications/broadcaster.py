"""
Real-time Notification Broadcaster

Pushes JSON frames to browsers connected on /ws:

    {"type": "expense_update", "data": {...}, "timestamp": 1710489600000}

Sends are fire-and-forget: a frame that cannot be delivered is dropped and
the connection is forgotten. Nothing is queued or retried.

A connection opened with a valid token is bound to that user. Notifications
about a user's data go only to that user's connections; broadcast() without
a user reaches every connection.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional
from uuid import uuid4

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ValidationError

from expenseai.logger import get_logger
from expenseai.models.notifications import (
    ClientMessage,
    ExpenseAction,
    NotificationMessage,
    NotificationType,
)


logger = get_logger(__name__)

WELCOME_TEXT = "Connected to ExpenseAI real-time updates"


def to_jsonable(value: Any) -> Any:
    """Models become camelCase dicts; lists are converted element-wise."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


@dataclass(eq=False)
class ClientConnection:
    websocket: WebSocket
    user_id: Optional[str] = None
    id: str = field(default_factory=lambda: uuid4().hex)


class NotificationBroadcaster:
    """Registry of open WebSocket connections."""

    def __init__(self):
        self._connections: set[ClientConnection] = set()

    @property
    def connected_count(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket, user_id: Optional[str] = None) -> ClientConnection:
        """Accept the handshake, register the connection and greet it."""
        await websocket.accept()
        connection = ClientConnection(websocket=websocket, user_id=user_id)
        self._connections.add(connection)
        logger.info(
            "websocket_connected",
            connection_id=connection.id,
            authenticated=user_id is not None,
            connected=self.connected_count,
        )
        await self._send(connection, NotificationMessage(
            type=NotificationType.CONNECTION,
            data={"message": WELCOME_TEXT},
        ))
        return connection

    def disconnect(self, connection: ClientConnection) -> None:
        if connection in self._connections:
            self._connections.discard(connection)
            logger.info(
                "websocket_disconnected",
                connection_id=connection.id,
                connected=self.connected_count,
            )

    async def listen(self, connection: ClientConnection) -> None:
        """
        Handle client frames until the socket closes.

        Only {"type": "ping"} gets an answer (a pong). Anything unparseable
        is logged and ignored.
        """
        try:
            while True:
                text = await connection.websocket.receive_text()
                try:
                    message = ClientMessage.model_validate_json(text)
                except ValidationError as e:
                    logger.warning(
                        "websocket_bad_frame",
                        connection_id=connection.id,
                        error=str(e.errors()[:1]),
                    )
                    continue
                logger.debug("websocket_frame_received", connection_id=connection.id, type=message.type)
                if message.type == NotificationType.PING.value:
                    await self._send(connection, NotificationMessage(type=NotificationType.PONG))
        except WebSocketDisconnect:
            pass
        finally:
            self.disconnect(connection)

    async def _send(self, connection: ClientConnection, message: NotificationMessage) -> bool:
        try:
            await connection.websocket.send_text(message.to_json())
        except Exception as e:
            logger.debug("websocket_send_failed", connection_id=connection.id, error=str(e))
            self.disconnect(connection)
            return False
        return True

    def _targets(self, user_id: Optional[str]) -> Iterable[ClientConnection]:
        connections = list(self._connections)
        if user_id is None:
            return connections
        return [c for c in connections if c.user_id == user_id]

    async def broadcast(self, message: NotificationMessage, user_id: Optional[str] = None) -> int:
        """
        Send a frame to every connection, or only to one user's.

        Returns:
            Number of connections the frame was delivered to
        """
        delivered = 0
        for connection in self._targets(user_id):
            if await self._send(connection, message):
                delivered += 1
        return delivered

    async def notify_expense_update(
        self,
        expense: Any,
        action: ExpenseAction,
        user_id: Optional[str] = None,
    ) -> int:
        return await self.broadcast(NotificationMessage(
            type=NotificationType.EXPENSE_UPDATE,
            data={"expense": to_jsonable(expense), "action": ExpenseAction(action).value},
        ), user_id=user_id)

    async def notify_insights_update(self, insights: list, user_id: Optional[str] = None) -> int:
        return await self.broadcast(NotificationMessage(
            type=NotificationType.INSIGHTS_UPDATE,
            data={"insights": to_jsonable(insights)},
        ), user_id=user_id)

    async def notify_analytics_update(self, analytics: Any, user_id: Optional[str] = None) -> int:
        return await self.broadcast(NotificationMessage(
            type=NotificationType.ANALYTICS_UPDATE,
            data={"analytics": to_jsonable(analytics)},
        ), user_id=user_id)
