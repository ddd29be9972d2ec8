from fastapi import APIRouter, HTTPException

from scrum_agent.core.exceptions import ExternalCallFault
from scrum_agent.dependencies.orchestrator import OrchestratorDep
from scrum_agent.schemas.api import ContextIngested, ContextIngestRequest

router = APIRouter()


@router.post("", response_model=ContextIngested, status_code=201)
async def ingest_context(request: ContextIngestRequest, orchestrator: OrchestratorDep):
    """
    Embed and store a context chunk for later retrieval.

    Re-sending the same content is a no-op that returns the same hash.
    """
    retriever = orchestrator.ctx.retriever
    if retriever is None:
        raise HTTPException(status_code=503, detail="Retrieval is not configured")

    try:
        digest = await retriever.ingest_and_embed(
            request.content,
            source_type=request.source_type,
            source_id=request.source_id,
            metadata=request.metadata,
            event_time=request.event_time,
            weight_confidence=request.weight_confidence,
        )
    except ExternalCallFault as e:
        raise HTTPException(status_code=502, detail=str(e)) from e

    return ContextIngested(content_hash=digest, stored=digest is not None)
