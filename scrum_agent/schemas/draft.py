"""
Canonical ticket draft DTOs.

CanonicalDraft is the shape a draft must satisfy before it is committed to
the tracker. Only ``summary`` is required; everything else falls back to
tracker defaults.
"""

from datetime import date
from typing import Any, Dict, List, Literal, Optional

from pydantic import ValidationError, field_validator
from sqlmodel import Field, SQLModel

from scrum_agent.core.exceptions import ValidationFault


class CanonicalDraft(SQLModel):
    """Normalized ticket payload accepted by the tracker."""

    project_key: Optional[str] = None
    issue_type: Optional[str] = None
    summary: str = Field(min_length=1, max_length=255)
    description_md: Optional[str] = None
    acceptance_criteria: List[str] = Field(default_factory=list)
    priority: Optional[Literal["P0", "P1", "P2", "P3"]] = None
    labels: List[str] = Field(default_factory=list)
    components: List[str] = Field(default_factory=list)
    due_date: Optional[str] = Field(default=None, description="YYYY-MM-DD")
    links: List[str] = Field(default_factory=list)
    source_citations: List[str] = Field(default_factory=list)

    @field_validator("summary")
    @classmethod
    def summary_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("summary must not be blank")
        return v.strip()

    @field_validator("due_date")
    @classmethod
    def due_date_is_iso(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        try:
            date.fromisoformat(v)
        except ValueError:
            raise ValueError("due_date must be YYYY-MM-DD") from None
        if len(v) != 10:
            raise ValueError("due_date must be YYYY-MM-DD")
        return v


class CommitResult(SQLModel):
    """Outcome of the commit step: an issue key and URL, or an error."""

    issue_key: Optional[str] = None
    url: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.issue_key is not None and self.error is None


def validate_draft(payload: Dict[str, Any]) -> CanonicalDraft:
    """
    Parse a state draft into a CanonicalDraft.

    Raises:
        ValidationFault: With every offending field listed as ``field: message``.
    """
    try:
        return CanonicalDraft.model_validate(payload)
    except ValidationError as e:
        detail = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ValidationFault(detail) from e
