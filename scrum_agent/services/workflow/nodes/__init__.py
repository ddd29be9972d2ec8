"""
Nodes package for the decision-to-ticket workflow.
"""

from scrum_agent.services.workflow.nodes.intake import (
    classify,
    extract,
    retrieve_context,
)
from scrum_agent.services.workflow.nodes.gate import context_gate
from scrum_agent.services.workflow.nodes.reviews import (
    biz_review,
    qa_review,
    design_review,
)
from scrum_agent.services.workflow.nodes.synthesis import (
    conflict_detect,
    synthesize,
    generate_draft,
)
from scrum_agent.services.workflow.nodes.approval import approval, commit_to_jira

__all__ = [
    "classify",
    "extract",
    "retrieve_context",
    "context_gate",
    "biz_review",
    "qa_review",
    "design_review",
    "conflict_detect",
    "synthesize",
    "generate_draft",
    "approval",
    "commit_to_jira",
]
