"""Tests for the deterministic review conflict rules."""

from scrum_agent.services.workflow.nodes.synthesis import detect_conflicts
from scrum_agent.services.workflow.state import Reviews
from tests.fakes import biz_review, design_review, qa_review


def test_no_reviews_no_conflicts():
    assert detect_conflicts(Reviews()) == []


def test_biz_reject_with_clean_qa():
    conflicts = detect_conflicts(
        Reviews(biz=biz_review("REJECT"), qa=qa_review(with_risks=False))
    )
    assert len(conflicts) == 1
    assert conflicts[0].between == "biz,qa"
    assert conflicts[0].resolution_proposal == "Defer to business rationale"


def test_biz_reject_with_qa_risks_is_consistent():
    assert detect_conflicts(Reviews(biz=biz_review("REJECT"), qa=qa_review())) == []


def test_biz_approve_with_many_design_constraints():
    conflicts = detect_conflicts(
        Reviews(biz=biz_review("APPROVE"), design=design_review(constraints=4))
    )
    assert [c.between for c in conflicts] == ["biz,design"]


def test_three_design_constraints_is_not_a_conflict():
    reviews = Reviews(biz=biz_review("APPROVE"), design=design_review(constraints=3))
    assert detect_conflicts(reviews) == []


def test_missing_qa_never_triggers_rule():
    assert detect_conflicts(Reviews(biz=biz_review("REJECT"))) == []


def test_missing_biz_never_triggers_rule():
    reviews = Reviews(qa=qa_review(with_risks=False), design=design_review(constraints=9))
    assert detect_conflicts(reviews) == []
