"""Tests for the lexical pattern library and its matching primitive."""

from __future__ import annotations

from app.engine.lexicon import (
    OBJECTION_PATTERNS,
    RULES,
    category_label,
    iter_rules,
    match_terms,
)
from app.models.patterns import PatternType


class TestRuleTable:
    def test_every_subtype_has_three_patterns(self) -> None:
        subtypes = {(r.category, r.subtype) for r in RULES}
        for category, subtype in subtypes:
            count = sum(1 for r in RULES if r.category == category and r.subtype == subtype)
            assert count == 3, (category, subtype)

    def test_category_sizes(self) -> None:
        assert len(list(iter_rules(PatternType.OBJECTION))) == 15
        assert len(list(iter_rules(PatternType.BUYING_SIGNAL))) == 12
        assert len(list(iter_rules(PatternType.PAIN_POINT))) == 12
        assert len(list(iter_rules())) == len(RULES) == 39

    def test_iteration_keeps_declaration_order(self) -> None:
        first = next(iter_rules())
        assert first.category == PatternType.OBJECTION
        assert first.subtype == "budget"

    def test_unknown_category_has_no_rules(self) -> None:
        assert list(iter_rules(PatternType.COMPETITOR)) == []


class TestMatchTerms:
    def test_returns_whole_match_and_group(self) -> None:
        pattern = OBJECTION_PATTERNS["budget"][0]
        assert match_terms(pattern, "This is too expensive") == ["too expensive", "too expensive"]

    def test_case_insensitive(self) -> None:
        pattern = OBJECTION_PATTERNS["budget"][0]
        assert match_terms(pattern, "What about BUDGET") == ["BUDGET", "BUDGET"]

    def test_word_boundaries(self) -> None:
        pattern = OBJECTION_PATTERNS["budget"][2]
        # "roi" must not match inside another word
        assert match_terms(pattern, "the heroine arrived") == []

    def test_no_match_is_empty(self) -> None:
        pattern = OBJECTION_PATTERNS["timing"][0]
        assert match_terms(pattern, "sounds great") == []


class TestCategoryLabel:
    def test_known_labels(self) -> None:
        assert category_label(PatternType.OBJECTION) == "objection"
        assert category_label(PatternType.BUYING_SIGNAL) == "signal"
        assert category_label(PatternType.PAIN_POINT) == "pain"

    def test_unknown_falls_back_to_generic(self) -> None:
        assert category_label(PatternType.QUESTION) == "pattern"
