"""
Schema and DTO package.
"""

from scrum_agent.schemas.draft import CanonicalDraft, CommitResult, validate_draft

__all__ = [
    "CanonicalDraft",
    "CommitResult",
    "validate_draft",
]
