"""
Token usage log model.

Append-only: one row per model call. Daily spend is a SUM over rows, so
concurrent writers never race on a shared counter.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel


class TokenUsageLog(SQLModel, table=True):
    """Token usage log table."""

    __tablename__ = "token_usage_log"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        nullable=False,
    )
    run_id: Optional[str] = Field(default=None, index=True)
    model: str = Field(description="Model name used for pricing.")
    prompt_tokens: int = Field(default=0)
    completion_tokens: int = Field(default=0)
    total_tokens: int = Field(default=0)
    estimated_cost_usd: float = Field(default=0.0)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
