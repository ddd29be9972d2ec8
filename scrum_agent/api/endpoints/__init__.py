from .context import router as context_router
from .decisions import router as decisions_router
from .health import router as health_router
from .runs import router as runs_router

__all__ = ["context_router", "decisions_router", "health_router", "runs_router"]
