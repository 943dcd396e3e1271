from fastapi import APIRouter, Depends

from expenseai.api.dependencies import get_components
from expenseai.orchestrator import AppComponents

router = APIRouter(prefix="/api", tags=["Health"])


@router.get("/health")
async def health(components: AppComponents = Depends(get_components)):
    return {
        "status": "ok",
        "storage": components.manager.backend_name,
        "websocketClients": components.broadcaster.connected_count,
    }
