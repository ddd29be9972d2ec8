"""
Context chunk model.

Stored unit of prior team text with its embedding, used for retrieval grounding.
Key: content_hash (unique) so re-ingesting identical content is a no-op.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import Column, DateTime, Float
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel


class ContextChunkBase(SQLModel):
    """Shared fields for ContextChunk."""

    source_type: str = Field(
        index=True,
        description="SLACK_MESSAGE | MEETING_MINUTES | JIRA_ISSUE | MANUAL_DOC",
    )
    source_id: str = Field(description="Identifier of the source record.")
    content: str = Field(description="Redacted chunk text.")
    content_hash: str = Field(
        unique=True, index=True, description="sha256 of content, for dedup."
    )
    weight_confidence: float = Field(
        default=0.6,
        sa_column=Column(Float, nullable=False, default=0.6),
        description="Source-confidence weight applied at ranking time.",
    )


class ContextChunk(ContextChunkBase, table=True):
    """Context chunk table."""

    __tablename__ = "context_chunk"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
        nullable=False,
    )
    embedding: Optional[List[float]] = Field(
        default=None, sa_column=Column(JSONB, nullable=True)
    )
    chunk_metadata: Optional[Dict[str, Any]] = Field(
        default=None, sa_column=Column("metadata", JSONB, nullable=True)
    )
    event_time: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True, index=True)
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
