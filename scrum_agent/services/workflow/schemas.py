"""
Structured output contracts for the workflow's model calls, plus the
records those outputs are folded into on the graph state.
"""

from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict
from pydantic import Field as PydanticField
from sqlmodel import Field, SQLModel


class InputKind(str, Enum):
    CHAT = "chat"
    MANUAL = "manual"
    MEETING = "meeting"


class SourceRef(SQLModel):
    type: str
    url: str = ""
    id: str


class WorkflowInput(BaseModel):
    """Triggering payload; never modified once a run starts."""

    model_config = ConfigDict(frozen=True)

    kind: InputKind = InputKind.CHAT
    text: str
    channel_ref: Optional[str] = None
    source_refs: List[SourceRef] = PydanticField(default_factory=list)


# -----------------------------------------------------------------------------
# Intake
# -----------------------------------------------------------------------------
class Classification(SQLModel):
    intent: Literal["decision", "action_item", "discussion", "question"]
    confidence: float = Field(ge=0, le=1)
    evidence: List[str] = Field(
        default_factory=list,
        description="Verbatim phrases from the message that support the intent.",
    )


class Action(SQLModel):
    type: Literal["task", "bug", "followup"]
    description: str
    assignee: Optional[str] = None
    citation: str = ""


class Decision(SQLModel):
    description: str
    made_by: Optional[str] = None
    citation: str = ""


class Extraction(SQLModel):
    actions: List[Action] = Field(default_factory=list)
    decisions: List[Decision] = Field(default_factory=list)


class ContextItem(SQLModel):
    content: str
    similarity: float
    source_id: str


# -----------------------------------------------------------------------------
# Reviews
# -----------------------------------------------------------------------------
class Verdict(SQLModel):
    recommendation: str
    confidence: float = Field(ge=0, le=1)


class BizVerdict(Verdict):
    recommendation: Literal["APPROVE", "REVISE", "REJECT"]


class QaVerdict(Verdict):
    recommendation: Literal["APPROVE", "REVISE", "BLOCK"]


class DesignVerdict(Verdict):
    recommendation: Literal["APPROVE", "REVISE"]


class BizRisk(SQLModel):
    type: str
    description: str
    severity: Literal["P0", "P1", "P2"]
    mitigation: str


class BizReview(SQLModel):
    decision: BizVerdict
    value_hypothesis: str
    risks: List[BizRisk] = Field(default_factory=list)
    opportunity_cost: str = ""
    missing_info: List[str] = Field(default_factory=list)
    citations: List[SourceRef] = Field(default_factory=list)


class P0TestCase(SQLModel):
    title: str
    steps: List[str] = Field(default_factory=list)
    expected: List[str] = Field(default_factory=list)
    notes: str = ""


class StateModelRisk(SQLModel):
    scenario: str
    failure_mode: str
    detection: str
    mitigation: str


class NonFunctional(SQLModel):
    timeouts: str = ""
    retries: str = ""
    idempotency: str = ""
    observability: str = ""


class QaReview(SQLModel):
    decision: QaVerdict
    p0_test_cases: List[P0TestCase] = Field(default_factory=list)
    state_model_risks: List[StateModelRisk] = Field(default_factory=list)
    regression_surface: List[str] = Field(default_factory=list)
    non_functional: NonFunctional = Field(default_factory=NonFunctional)
    missing_info: List[str] = Field(default_factory=list)
    citations: List[SourceRef] = Field(default_factory=list)


class A11yIssue(SQLModel):
    issue: str
    severity: Literal["critical", "serious", "moderate", "minor"]
    fix: str


class ComponentMapping(SQLModel):
    suggested_component: str
    reason: str


class DesignReview(SQLModel):
    decision: DesignVerdict
    ui_constraints: List[str] = Field(default_factory=list)
    a11y: List[A11yIssue] = Field(default_factory=list)
    components_mapping: List[ComponentMapping] = Field(default_factory=list)
    missing_info: List[str] = Field(default_factory=list)
    citations: List[SourceRef] = Field(default_factory=list)


# -----------------------------------------------------------------------------
# Synthesis and drafting
# -----------------------------------------------------------------------------
class Conflict(SQLModel):
    between: str
    topic: str
    resolution_proposal: str


class GeneratedDraft(SQLModel):
    """Full ticket draft as produced by a model; every field present."""

    project_key: str
    issue_type: str
    summary: str
    description_md: str
    priority: str
    labels: List[str] = Field(default_factory=list)
    components: List[str] = Field(default_factory=list)
    acceptance_criteria: List[str] = Field(default_factory=list)
    source_citations: List[str] = Field(default_factory=list)


class RolloutPlan(SQLModel):
    phases: List[str] = Field(default_factory=list)
    flags: List[str] = Field(default_factory=list)
    monitoring: str = ""


class Traceability(SQLModel):
    source_refs: List[str] = Field(default_factory=list)
    assumptions: List[str] = Field(default_factory=list)


class SynthesisOutput(SQLModel):
    summary_one_line: str = Field(max_length=255)
    conflicts: List[Conflict] = Field(default_factory=list)
    canonical_draft: GeneratedDraft
    rollout_plan: RolloutPlan = Field(default_factory=RolloutPlan)
    acceptance_criteria: List[str] = Field(default_factory=list)
    traceability: Traceability = Field(default_factory=Traceability)
    citations: List[SourceRef] = Field(default_factory=list)


class OpenQuestion(SQLModel):
    question: str
    raised_by: Optional[str] = None


class EnrichedDraft(SQLModel):
    overview_summary: str
    open_questions: List[OpenQuestion] = Field(default_factory=list)


# -----------------------------------------------------------------------------
# Approval and control
# -----------------------------------------------------------------------------
class ApprovalRecord(SQLModel):
    status: Literal["approved", "rejected"]
    id: Optional[str] = None


class Control(SQLModel):
    """Step accounting for a run.

    Node updates carry ``iteration`` as a delta; the state reducer adds it.
    """

    iteration: int = 0
    max_iteration: Optional[int] = None
    abort_reason: Optional[str] = None
