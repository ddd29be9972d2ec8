from fastapi import APIRouter

from scrum_agent.core.config import settings
from scrum_agent.schemas.api import DecisionDetectRequest
from scrum_agent.services.scoring.decision_heuristic import (
    DecisionPolicy,
    DetectionResult,
    detect_decision,
)

router = APIRouter()


@router.post("/detect", response_model=DetectionResult)
def detect(request: DecisionDetectRequest):
    """
    Score a chat message and tell whether it records a team decision.
    """
    return detect_decision(
        request.text,
        reactions=request.reactions,
        thread_user_count=request.thread_user_count,
        policy=DecisionPolicy.from_settings(settings),
    )
