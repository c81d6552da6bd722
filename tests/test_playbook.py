"""Unit tests for the playbook suggestion engine."""

from __future__ import annotations

import pytest

from app.engine.playbook import (
    FRAMEWORKS,
    MAX_SUGGESTIONS,
    OBJECTION_RESPONSES,
    PlaybookEngine,
    calculate_playbook_effectiveness,
)
from app.models.patterns import DetectedPattern, PatternType
from app.models.playbook import FrameworkName, SuggestionType, SuggestionUsage

OPENING_LINE = (
    "Hi there, thanks for making time today. Could you tell me about your "
    "team's current workflow for client reporting?"
)


@pytest.fixture
def engine() -> PlaybookEngine:
    return PlaybookEngine()


@pytest.fixture
def pain_pattern() -> DetectedPattern:
    return DetectedPattern(
        type=PatternType.PAIN_POINT,
        confidence=0.95,
        description='operational pain: "struggling"',
        keywords=["struggling", "struggling"],
        context="operational",
    )


class TestGenerateSuggestions:
    def test_context_only_match(self, engine: PlaybookEngine) -> None:
        suggestions = engine.generate_suggestions([], "discovery_surface", [OPENING_LINE])

        assert len(suggestions) == 6
        assert {s.framework for s in suggestions} == {FrameworkName.SPIN}
        assert {s.stage for s in suggestions} == {"situation"}

        questions = [s for s in suggestions if s.type == SuggestionType.QUESTION]
        responses = [s for s in suggestions if s.type == SuggestionType.RESPONSE]
        assert len(questions) == 4
        assert all(s.confidence == pytest.approx(0.7) for s in questions)
        assert all(s.confidence == pytest.approx(0.63) for s in responses)
        assert questions[0].id.startswith("spin-situation_questions-q-0-")
        assert questions[0].reasoning == (
            "Based on conversation context matching Situation Questions triggers"
        )
        assert responses[0].reasoning == questions[0].reasoning

    def test_single_trigger_is_at_cutoff(self, engine: PlaybookEngine) -> None:
        # "time" gives the up-front contract exactly 0.3, which is excluded
        suggestions = engine.generate_suggestions([], "discovery_surface", [OPENING_LINE])
        assert not [s for s in suggestions if s.id.startswith("sandler-upfront_contract")]

    def test_pattern_triggered(self, engine: PlaybookEngine, pain_pattern: DetectedPattern) -> None:
        suggestions = engine.generate_suggestions(
            [pain_pattern], "discovery_deep", ["We are struggling"]
        )

        assert len(suggestions) == MAX_SUGGESTIONS
        assert [s.type for s in suggestions] == [SuggestionType.QUESTION] * 5 + [SuggestionType.RESPONSE]
        assert all(s.framework == FrameworkName.SANDLER for s in suggestions)
        assert suggestions[0].confidence == pytest.approx(0.785)
        assert suggestions[-1].confidence == pytest.approx(0.7065)
        assert suggestions[0].reasoning == "Based on detected pain_point patterns"
        assert suggestions[0].context == "Systematic approach to uncovering pain"

    def test_sorted_and_capped(self, engine: PlaybookEngine, pain_pattern: DetectedPattern) -> None:
        context = [OPENING_LINE, "We are struggling with the budget decision and its impact"]
        suggestions = engine.generate_suggestions([pain_pattern], "qualification", context)

        assert len(suggestions) <= MAX_SUGGESTIONS
        confidences = [s.confidence for s in suggestions]
        assert confidences == sorted(confidences, reverse=True)
        assert all(0.0 <= c <= 1.0 for c in confidences)

    def test_nothing_relevant(self, engine: PlaybookEngine) -> None:
        assert engine.generate_suggestions([], "discovery_surface", []) == []

    def test_responses_cite_triggering_patterns(
        self, engine: PlaybookEngine, pain_pattern: DetectedPattern
    ) -> None:
        suggestions = engine.generate_suggestions(
            [pain_pattern], "discovery_deep", ["We are struggling"]
        )
        response = next(s for s in suggestions if s.type == SuggestionType.RESPONSE)
        assert response.reasoning == "Based on detected pain_point patterns"

    def test_ids_are_unique_per_call(
        self, engine: PlaybookEngine, pain_pattern: DetectedPattern
    ) -> None:
        first = engine.generate_suggestions([pain_pattern], "discovery_deep", ["We are struggling"])
        second = engine.generate_suggestions([pain_pattern], "discovery_deep", ["We are struggling"])

        first_ids = {s.id for s in first}
        assert len(first_ids) == len(first)
        assert not first_ids & {s.id for s in second}
        assert [s.content for s in first] == [s.content for s in second]

    def test_custom_framework_table(self) -> None:
        engine = PlaybookEngine({"spin": FRAMEWORKS["spin"]})
        assert [f.id for f in engine.all_frameworks()] == ["spin"]


class TestObjectionResponse:
    def test_known_context(self, engine: PlaybookEngine) -> None:
        objection = DetectedPattern(
            type=PatternType.OBJECTION,
            confidence=0.95,
            description='budget objection: "too expensive"',
            keywords=["too expensive", "too expensive"],
            context="budget",
        )
        responses = engine.generate_objection_response(objection)

        for index, response in enumerate(responses):
            assert response.id.startswith(f"objection-budget-{index}-")
        assert [r.content for r in responses] == list(OBJECTION_RESPONSES["budget"])
        assert all(r.type == SuggestionType.OBJECTION_HANDLER for r in responses)
        assert all(r.framework == FrameworkName.SANDLER for r in responses)
        assert all(r.confidence == pytest.approx(0.8) for r in responses)
        assert responses[0].stage == "objection_handling"
        assert responses[0].reasoning == 'Response to budget objection: "too expensive"'

    def test_unknown_context_uses_trust_set(self, engine: PlaybookEngine) -> None:
        objection = DetectedPattern(
            type=PatternType.OBJECTION, confidence=0.7, description="odd", context="legal"
        )
        responses = engine.generate_objection_response(objection)

        assert [r.content for r in responses] == list(OBJECTION_RESPONSES["trust"])
        assert responses[0].id.startswith("objection-legal-0-")

    def test_missing_context_is_general(self, engine: PlaybookEngine) -> None:
        objection = DetectedPattern(type=PatternType.OBJECTION, confidence=0.7, description="odd")
        responses = engine.generate_objection_response(objection)

        assert responses[0].id.startswith("objection-general-0-")
        assert responses[0].context == "Handling general objection"

    def test_ids_are_unique_per_call(self, engine: PlaybookEngine) -> None:
        objection = DetectedPattern(
            type=PatternType.OBJECTION, confidence=0.7, description="odd", context="timing"
        )
        first = [r.id for r in engine.generate_objection_response(objection)]
        second = [r.id for r in engine.generate_objection_response(objection)]

        assert len(set(first)) == 3
        assert not set(first) & set(second)


class TestFrameworkLookup:
    def test_four_frameworks(self, engine: PlaybookEngine) -> None:
        assert [f.name for f in engine.all_frameworks()] == [
            FrameworkName.SANDLER,
            FrameworkName.SPIN,
            FrameworkName.MEDDIC,
            FrameworkName.CHALLENGER,
        ]

    def test_by_id(self, engine: PlaybookEngine) -> None:
        spin = engine.get_framework("spin")
        assert spin is not None and spin.title == "SPIN Selling"
        assert engine.get_framework("bant") is None

    @pytest.mark.parametrize("name", ["SPIN", "SPIN Selling"])
    def test_by_name_or_title(self, engine: PlaybookEngine, name: str) -> None:
        framework = engine.get_framework_by_name(name)
        assert framework is not None and framework.id == "spin"

    def test_by_unknown_name(self, engine: PlaybookEngine) -> None:
        assert engine.get_framework_by_name("BANT") is None


class TestEffectiveness:
    def test_weighted_by_outcome(self, engine: PlaybookEngine) -> None:
        suggestions = engine.generate_suggestions([], "discovery_surface", [OPENING_LINE])
        questions = [s for s in suggestions if s.type == SuggestionType.QUESTION]
        responses = [s for s in suggestions if s.type == SuggestionType.RESPONSE]
        usage = [
            SuggestionUsage(suggestion_id=questions[0].id, outcome="positive"),
            SuggestionUsage(suggestion_id=questions[1].id, outcome="negative"),
            SuggestionUsage(suggestion_id=responses[0].id, outcome="neutral"),
            # later reports for the same suggestion are ignored
            SuggestionUsage(suggestion_id=questions[0].id, outcome="negative"),
        ]

        assert calculate_playbook_effectiveness(suggestions, usage) == {
            "SPIN": pytest.approx(0.6)
        }

    def test_repeated_suggestion_counts_per_call(self, engine: PlaybookEngine) -> None:
        first = engine.generate_suggestions([], "discovery_surface", [OPENING_LINE])
        second = engine.generate_suggestions([], "discovery_surface", [OPENING_LINE])
        usage = [
            SuggestionUsage(suggestion_id=first[0].id, outcome="positive"),
            SuggestionUsage(suggestion_id=second[0].id, outcome="positive"),
        ]

        assert calculate_playbook_effectiveness([*first, *second], usage) == {"SPIN": 2.0}

    def test_no_usage(self, engine: PlaybookEngine) -> None:
        suggestions = engine.generate_suggestions([], "discovery_surface", [OPENING_LINE])
        assert calculate_playbook_effectiveness(suggestions, []) == {}
