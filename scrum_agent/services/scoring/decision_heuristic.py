"""
Keyword / reaction / thread-agreement scoring for chat messages.

A message scores +keyword_score per distinct decision keyword, +reaction_score
per matching reaction and +thread_agreement_score when two or more people took
part in the thread. The total is clamped to [0, 1].
"""

import re
from typing import List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

DEFAULT_DECISION_KEYWORDS: Tuple[str, ...] = (
    "확정",
    "결정",
    "진행",
    "이대로",
    "배포",
    "decided",
    "agreed",
    "consensus",
    "approved",
    "chosen",
)

DEFAULT_DECISION_REACTIONS: Tuple[str, ...] = ("white_check_mark", "heavy_check_mark")

TITLE_MAX_CHARS = 100
_SENTENCE_END = re.compile(r"[.!?。]\s")


class DecisionPolicy(BaseModel):
    """Scoring weights and vocabulary; defaults follow the team's trigger policy."""

    keywords: Tuple[str, ...] = DEFAULT_DECISION_KEYWORDS
    reactions: Tuple[str, ...] = DEFAULT_DECISION_REACTIONS
    keyword_score: float = 0.4
    reaction_score: float = 0.5
    thread_agreement_score: float = 0.3
    confidence_threshold: float = 0.85

    @classmethod
    def from_settings(cls, s) -> "DecisionPolicy":
        return cls(
            keyword_score=s.DECISION_KEYWORD_SCORE,
            reaction_score=s.DECISION_REACTION_SCORE,
            thread_agreement_score=s.DECISION_THREAD_AGREEMENT_SCORE,
            confidence_threshold=s.DECISION_CONFIDENCE_THRESHOLD,
        )


class DetectionResult(BaseModel):
    is_decision: bool = False
    confidence: float = 0.0
    signals: List[str] = Field(default_factory=list)
    extracted_title: str = ""


def extract_title(text: str) -> str:
    """First sentence if it ends before TITLE_MAX_CHARS, else a truncated prefix."""
    if not text:
        return ""

    trimmed = text.strip()
    match = _SENTENCE_END.search(trimmed)
    if match and match.start() < TITLE_MAX_CHARS:
        return trimmed[: match.start() + 1]

    if len(trimmed) <= TITLE_MAX_CHARS:
        return trimmed

    return trimmed[:TITLE_MAX_CHARS] + "…"


def detect_decision(
    text: str,
    reactions: Optional[Sequence[str]] = None,
    thread_user_count: Optional[int] = None,
    policy: Optional[DecisionPolicy] = None,
) -> DetectionResult:
    """Score a message and decide whether it records a team decision."""
    if not text or not text.strip():
        return DetectionResult()

    policy = policy or DecisionPolicy()
    signals: List[str] = []
    confidence = 0.0

    lower_text = text.lower()
    for keyword in dict.fromkeys(policy.keywords):
        if keyword.lower() in lower_text:
            signals.append(f"decision_keyword:{keyword}")
            confidence += policy.keyword_score

    for reaction in reactions or ():
        if reaction in policy.reactions:
            signals.append(f"reaction:{reaction}")
            confidence += policy.reaction_score

    if thread_user_count is not None and thread_user_count >= 2:
        signals.append(f"thread_agreement:{thread_user_count}_users")
        confidence += policy.thread_agreement_score

    confidence = min(max(confidence, 0.0), 1.0)

    return DetectionResult(
        is_decision=confidence >= policy.confidence_threshold,
        confidence=confidence,
        signals=signals,
        extracted_title=extract_title(text),
    )
