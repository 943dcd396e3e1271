from typing import Optional

from fastapi import APIRouter, Query, WebSocket

from expenseai.api.auth import resolve_token
from expenseai.orchestrator import AppComponents

router = APIRouter(tags=["Realtime"])


@router.websocket("/ws")
async def realtime_updates(websocket: WebSocket, token: Optional[str] = Query(None)):
    """
    Real-time channel. Pass ?token=<jwt> to receive updates about your own
    data; without a valid token only global broadcasts are delivered.
    """
    components: AppComponents = websocket.app.state.components
    resolved = await resolve_token(token, components.manager.current(), components.settings.auth)
    user_id = resolved[0].id if resolved else None

    connection = await components.broadcaster.connect(websocket, user_id=user_id)
    await components.broadcaster.listen(connection)
