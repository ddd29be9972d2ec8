"""Shared utilities for workflow nodes."""

import json
from typing import Any, Iterable

from pydantic import BaseModel

from scrum_agent.services.workflow.state import WorkflowState


def dump(value: Any) -> str:
    """Compact JSON rendering of models, lists of models and plain values."""
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    elif isinstance(value, (list, tuple)):
        value = [
            v.model_dump(mode="json") if isinstance(v, BaseModel) else v for v in value
        ]
    return json.dumps(value, ensure_ascii=False, default=str)


def format_context(state: WorkflowState, with_similarity: bool = False) -> Iterable[str]:
    for item in state.retrieved_context:
        if with_similarity:
            yield f"[source:{item.source_id}, similarity:{item.similarity:.2f}] {item.content}"
        else:
            yield f"[source:{item.source_id}] {item.content}"


def build_review_context(state: WorkflowState) -> str:
    """User input handed to each specialist reviewer."""
    parts = [
        f"Actions: {dump(state.actions)}",
        f"Classification: {dump(state.classification)}",
        f"Original: {state.input.text}",
    ]
    if state.retrieved_context:
        parts.append("Retrieved Context:\n" + "\n".join(format_context(state)))
    return "\n".join(parts)
