"""Tests for the chat decision heuristic."""

import pytest

from scrum_agent.services.scoring.decision_heuristic import (
    DecisionPolicy,
    detect_decision,
    extract_title,
)


class TestDetectDecision:
    def test_single_keyword_is_below_threshold(self):
        result = detect_decision("We decided to use Postgres.")
        assert result.confidence == pytest.approx(0.4)
        assert result.is_decision is False
        assert result.signals == ["decision_keyword:decided"]

    def test_keyword_reaction_and_thread(self):
        result = detect_decision(
            "We decided to use Postgres.",
            reactions=["white_check_mark"],
            thread_user_count=3,
        )
        assert result.confidence == pytest.approx(1.0)
        assert result.is_decision is True
        assert "reaction:white_check_mark" in result.signals
        assert "thread_agreement:3_users" in result.signals

    def test_two_keywords_plus_reaction_is_clamped(self):
        result = detect_decision(
            "Agreed and approved, ship it.", reactions=["heavy_check_mark"]
        )
        assert result.confidence == 1.0
        assert result.is_decision is True

    def test_korean_keywords(self):
        result = detect_decision("이대로 확정합니다", reactions=["white_check_mark"])
        assert result.is_decision is True
        assert "decision_keyword:확정" in result.signals
        assert "decision_keyword:이대로" in result.signals

    def test_unknown_reaction_ignored(self):
        result = detect_decision("Looks good", reactions=["tada"])
        assert result.confidence == 0.0
        assert result.signals == []

    def test_single_user_thread_is_not_agreement(self):
        result = detect_decision("Just me here", thread_user_count=1)
        assert result.confidence == 0.0

    def test_empty_text(self):
        result = detect_decision("   ", reactions=["white_check_mark"])
        assert result.is_decision is False
        assert result.confidence == 0.0
        assert result.extracted_title == ""

    def test_empty_string(self):
        result = detect_decision("")
        assert result.confidence == 0.0
        assert result.is_decision is False
        assert result.extracted_title == ""

    def test_two_keywords_stay_below_threshold(self):
        result = detect_decision("We decided and agreed")
        assert result.confidence == pytest.approx(0.8)
        assert result.is_decision is False

    def test_korean_keyword_with_reaction(self):
        result = detect_decision("확정", ["white_check_mark"])
        assert result.confidence == pytest.approx(0.9)
        assert result.is_decision is True

    def test_keyword_matching_is_case_insensitive(self):
        result = detect_decision("DECIDED: move to weekly releases")
        assert result.signals == ["decision_keyword:decided"]

    def test_custom_policy_threshold(self):
        policy = DecisionPolicy(confidence_threshold=0.4)
        assert detect_decision("We decided.", policy=policy).is_decision is True


KEYWORD_TEXTS = [
    "Sounds fine",
    "We decided",
    "We decided and agreed",
    "We decided and agreed by consensus",
]
REACTION_SETS = [[], ["white_check_mark"], ["white_check_mark", "heavy_check_mark"]]
THREAD_SIZES = [None, 1, 2, 5]


def score(k: int, r: int, t: int) -> float:
    return detect_decision(KEYWORD_TEXTS[k], REACTION_SETS[r], THREAD_SIZES[t]).confidence


@pytest.mark.parametrize("k", range(len(KEYWORD_TEXTS)))
@pytest.mark.parametrize("r", range(len(REACTION_SETS)))
@pytest.mark.parametrize("t", range(len(THREAD_SIZES)))
def test_confidence_is_monotonic_and_clamped(k, r, t):
    confidence = score(k, r, t)

    assert 0.0 <= confidence <= 1.0
    if k + 1 < len(KEYWORD_TEXTS):
        assert score(k + 1, r, t) >= confidence
    if r + 1 < len(REACTION_SETS):
        assert score(k, r + 1, t) >= confidence
    if t + 1 < len(THREAD_SIZES):
        assert score(k, r, t + 1) >= confidence


class TestExtractTitle:
    def test_first_sentence(self):
        assert extract_title("Ship on Friday. Then retro.") == "Ship on Friday."

    def test_short_text_without_terminator(self):
        assert extract_title("  Ship on Friday  ") == "Ship on Friday"

    def test_long_text_is_truncated(self):
        text = "a" * 150
        title = extract_title(text)
        assert title == "a" * 100 + "…"

    def test_late_sentence_end_is_ignored(self):
        text = "b" * 120 + ". rest"
        assert extract_title(text) == "b" * 100 + "…"

    def test_empty(self):
        assert extract_title("") == ""
