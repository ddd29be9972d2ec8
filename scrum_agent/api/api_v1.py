from fastapi import APIRouter
from scrum_agent.api.endpoints import (
    context_router,
    decisions_router,
    health_router,
    runs_router,
)

router = APIRouter()

router.include_router(health_router, prefix="/health", tags=["health"])
router.include_router(runs_router, prefix="/runs", tags=["runs"])
router.include_router(decisions_router, prefix="/decisions", tags=["decisions"])
router.include_router(context_router, prefix="/context", tags=["context"])
