"""Content stores holding embedded context chunks."""

import asyncio
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from pydantic import BaseModel, Field
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from scrum_agent.db.models.context_chunk import ContextChunk
from scrum_agent.services.scoring.similarity import DEFAULT_SOURCE_CONFIDENCE


class StoredChunk(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    source_type: str
    source_id: str
    content: str
    content_hash: str
    embedding: Optional[List[float]] = None
    event_time: Optional[datetime] = None
    weight_confidence: Optional[float] = None
    metadata: Optional[Dict[str, Any]] = None


class ContentStore(Protocol):
    async def insert_chunk(self, chunk: StoredChunk) -> None: ...

    async def find_by_content_hash(self, content_hash: str) -> Optional[StoredChunk]: ...

    async def query_by_non_null_embedding(self) -> List[StoredChunk]: ...


class InMemoryContentStore:
    def __init__(self, chunks: Optional[List[StoredChunk]] = None):
        self._chunks: Dict[str, StoredChunk] = {}
        self._lock = asyncio.Lock()
        for chunk in chunks or []:
            self._chunks[chunk.content_hash] = chunk

    async def insert_chunk(self, chunk: StoredChunk) -> None:
        async with self._lock:
            self._chunks.setdefault(chunk.content_hash, chunk)

    async def find_by_content_hash(self, content_hash: str) -> Optional[StoredChunk]:
        return self._chunks.get(content_hash)

    async def query_by_non_null_embedding(self) -> List[StoredChunk]:
        return [c for c in self._chunks.values() if c.embedding is not None]

    def __len__(self) -> int:
        return len(self._chunks)


class SqlContentStore:
    """ContentStore backed by the context_chunk table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def insert_chunk(self, chunk: StoredChunk) -> None:
        # ON CONFLICT DO NOTHING keeps concurrent ingestion of the same text idempotent
        stmt = (
            insert(ContextChunk)
            .values(
                id=uuid.UUID(chunk.id),
                source_type=chunk.source_type,
                source_id=chunk.source_id,
                content=chunk.content,
                content_hash=chunk.content_hash,
                embedding=chunk.embedding,
                event_time=chunk.event_time,
                weight_confidence=(
                    chunk.weight_confidence
                    if chunk.weight_confidence is not None
                    else DEFAULT_SOURCE_CONFIDENCE
                ),
                chunk_metadata=chunk.metadata,
            )
            .on_conflict_do_nothing(index_elements=[ContextChunk.content_hash])
        )
        async with self.session_factory() as session:
            await session.execute(stmt)
            await session.commit()

    async def find_by_content_hash(self, content_hash: str) -> Optional[StoredChunk]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ContextChunk).where(ContextChunk.content_hash == content_hash).limit(1)
            )
            row = result.scalar_one_or_none()
        return self._to_chunk(row) if row else None

    async def query_by_non_null_embedding(self) -> List[StoredChunk]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ContextChunk).where(ContextChunk.embedding.is_not(None))
            )
            rows = result.scalars().all()
        return [self._to_chunk(row) for row in rows]

    @staticmethod
    def _to_chunk(row: ContextChunk) -> StoredChunk:
        return StoredChunk(
            id=str(row.id),
            source_type=row.source_type,
            source_id=row.source_id,
            content=row.content,
            content_hash=row.content_hash,
            embedding=row.embedding,
            event_time=row.event_time,
            weight_confidence=row.weight_confidence,
            metadata=row.chunk_metadata,
        )
