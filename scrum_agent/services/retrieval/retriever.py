"""
Context Retriever.

Ranks stored context chunks against a query by cosine similarity, weighted
by recency and by the confidence of the chunk's source, and ingests new
chunks idempotently by content hash.
"""

import hashlib
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from scrum_agent.core.logging import get_logger
from scrum_agent.services.llm.invoker import LLMService
from scrum_agent.services.retrieval.store import ContentStore, StoredChunk
from scrum_agent.services.scoring.similarity import (
    DEFAULT_DECAY_LAMBDA,
    DEFAULT_SOURCE_CONFIDENCE,
    combined_score,
)

logger = get_logger(__name__)


class SearchResult(BaseModel):
    id: str
    content: str
    similarity: float
    source_type: str
    source_id: str
    metadata: Optional[Dict[str, Any]] = None


def content_hash(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class ContextRetriever:
    def __init__(
        self,
        llm: LLMService,
        store: ContentStore,
        decay_lambda: float = DEFAULT_DECAY_LAMBDA,
        default_confidence: float = DEFAULT_SOURCE_CONFIDENCE,
    ):
        self.llm = llm
        self.store = store
        self.decay_lambda = decay_lambda
        self.default_confidence = default_confidence

    async def search(
        self,
        query: str,
        limit: int = 5,
        min_similarity: float = 0.7,
        now: Optional[datetime] = None,
    ) -> List[SearchResult]:
        """
        Return up to ``limit`` chunks scoring at least ``min_similarity``,
        best first.

        Chunks without an embedding are never scored. A chunk whose
        embedding has a different dimension from the query is skipped.
        """
        query_embedding = await self.llm.embed(query)
        chunks = await self.store.query_by_non_null_embedding()
        now = now or datetime.now(timezone.utc)

        results: List[SearchResult] = []
        for chunk in chunks:
            if chunk.embedding is None:
                continue
            confidence = (
                chunk.weight_confidence
                if chunk.weight_confidence is not None
                else self.default_confidence
            )
            try:
                score = combined_score(
                    query_embedding,
                    chunk.embedding,
                    chunk.event_time,
                    source_confidence=confidence,
                    now=now,
                    decay_lambda=self.decay_lambda,
                )
            except ValueError as e:
                logger.warning("Skipping chunk %s: %s", chunk.id, e)
                continue

            if score < min_similarity:
                continue
            results.append(
                SearchResult(
                    id=chunk.id,
                    content=chunk.content,
                    similarity=score,
                    source_type=chunk.source_type,
                    source_id=chunk.source_id,
                    metadata=chunk.metadata,
                )
            )

        results.sort(key=lambda r: r.similarity, reverse=True)
        logger.info(
            "Context search scored %d chunks, %d above %.2f",
            len(chunks),
            len(results),
            min_similarity,
        )
        return results[:limit]

    async def ingest_and_embed(
        self,
        content: str,
        source_type: str,
        source_id: str,
        metadata: Optional[Dict[str, Any]] = None,
        event_time: Optional[datetime] = None,
        weight_confidence: Optional[float] = None,
    ) -> Optional[str]:
        """
        Embed and store ``content``.

        Returns the content hash of the stored (or already present) chunk, or
        None when the content is blank and nothing was done.
        """
        if not content or not content.strip():
            return None

        digest = content_hash(content)
        if await self.store.find_by_content_hash(digest) is not None:
            logger.debug("Chunk %s already ingested, skipping", digest[:12])
            return digest

        embedding = await self.llm.embed(content)
        await self.store.insert_chunk(
            StoredChunk(
                source_type=source_type,
                source_id=source_id,
                content=content,
                content_hash=digest,
                embedding=embedding,
                event_time=event_time or datetime.now(timezone.utc),
                weight_confidence=weight_confidence,
                metadata=metadata,
            )
        )
        logger.info("Ingested %s chunk from %s", source_type, source_id)
        return digest
