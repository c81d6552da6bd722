"""
Rule-based conversation pattern detector.

Scans an utterance against the lexical pattern library and a few
contextual heuristics, producing confidence-scored ``DetectedPattern``
objects.

Design:
- Every (category, subtype, pattern) rule is tested against the raw text;
  a match becomes one pattern whose confidence depends on text length,
  match terms, speaker role, and strong indicator words.
- Contextual patterns (prospect questions, emotional words, comparison
  language) are added after the table scan.
- Results are deduplicated by (type, context, first keyword), first wins,
  then stably sorted by descending confidence.
- Trend analysis works over a ``PatternHistory`` owned by one conversation.
"""

import logging
from collections import Counter
from collections.abc import Iterable, Sequence

from app.engine.lexicon import (
    COMPARISON_PHRASES,
    EMOTIONAL_WORDS,
    NEGATIVE_EMOTIONS,
    STRONG_INDICATORS,
    category_label,
    iter_rules,
    match_terms,
)
from app.models.conversation import Message
from app.models.patterns import (
    ConfidenceDistribution,
    ConversationPatternStats,
    DetectedPattern,
    PatternAnalysis,
    PatternInsights,
    PatternSummary,
    PatternTimelineEntry,
    PatternTrends,
    PatternType,
    Speaker,
)

logger = logging.getLogger(__name__)

BASE_CONFIDENCE = 0.6
MAX_CONFIDENCE = 0.95
HIGH_CONFIDENCE = 0.8
MEDIUM_CONFIDENCE = 0.6

# Categories where a prospect speaking is strong evidence
_PROSPECT_WEIGHTED = frozenset({PatternType.OBJECTION, PatternType.PAIN_POINT})

# Trend windows: last N messages vs. the N before them
TREND_WINDOW = 5
MIN_TREND_HISTORY = 3


# ── Detector ───────────────────────────────────────────────────────────

class PatternEngine:
    """
    Stateless pattern detector over the static lexical library.

    A single instance can be shared by every conversation.
    """

    def detect_patterns(self, text: str, speaker: Speaker) -> list[DetectedPattern]:
        """
        Detect patterns in one utterance.

        Args:
            text: Raw utterance text.
            speaker: Role of the speaker, which weights objection and
                pain point confidence.

        Returns:
            Deduplicated patterns sorted by non-increasing confidence.
        """
        if not text:
            return []

        detected: list[DetectedPattern] = []

        for rule in iter_rules():
            terms = match_terms(rule.pattern, text)
            if not terms:
                continue
            detected.append(
                DetectedPattern(
                    type=rule.category,
                    confidence=self._score(terms, text, speaker, rule.category),
                    description=f'{rule.subtype} {category_label(rule.category)}: "{terms[0]}"',
                    keywords=terms,
                    context=rule.subtype,
                )
            )

        detected.extend(self._contextual_patterns(text, speaker))

        # sorted() is stable with reverse=True, so ties keep insertion order
        return sorted(
            self._deduplicate(detected),
            key=lambda p: p.confidence,
            reverse=True,
        )

    # ── Scoring ────────────────────────────────────────────────────────

    @staticmethod
    def _score(
        terms: Sequence[str],
        text: str,
        speaker: Speaker,
        category: PatternType,
    ) -> float:
        confidence = BASE_CONFIDENCE

        if len(text) > 100:
            confidence += 0.1
        if len(text) > 200:
            confidence += 0.1

        if len(terms) > 1:
            confidence += 0.1

        if speaker == Speaker.PROSPECT and category in _PROSPECT_WEIGHTED:
            confidence += 0.2

        text_lower = text.lower()
        if any(word in text_lower for word in STRONG_INDICATORS):
            confidence += 0.15

        return round(min(confidence, MAX_CONFIDENCE), 4)

    @staticmethod
    def _contextual_patterns(text: str, speaker: Speaker) -> list[DetectedPattern]:
        text_lower = text.lower()
        patterns: list[DetectedPattern] = []

        if "?" in text and speaker == Speaker.PROSPECT:
            patterns.append(
                DetectedPattern(
                    type=PatternType.BUYING_SIGNAL,
                    confidence=0.7,
                    description="Prospect asking questions (engagement)",
                    context="engagement",
                )
            )

        for emotion in EMOTIONAL_WORDS:
            if emotion in text_lower:
                patterns.append(
                    DetectedPattern(
                        type=(
                            PatternType.PAIN_POINT
                            if emotion in NEGATIVE_EMOTIONS
                            else PatternType.BUYING_SIGNAL
                        ),
                        confidence=0.6,
                        description=f"Emotional indicator: {emotion}",
                        context="emotional",
                    )
                )

        if any(phrase in text_lower for phrase in COMPARISON_PHRASES):
            patterns.append(
                DetectedPattern(
                    type=PatternType.BUYING_SIGNAL,
                    confidence=0.8,
                    description="Comparison language (evaluation stage)",
                    context="comparison",
                )
            )

        return patterns

    @staticmethod
    def _deduplicate(patterns: Iterable[DetectedPattern]) -> list[DetectedPattern]:
        seen: set[tuple[str, str | None, str | None]] = set()
        unique: list[DetectedPattern] = []
        for pattern in patterns:
            first_keyword = pattern.keywords[0] if pattern.keywords else None
            key = (pattern.type.value, pattern.context, first_keyword)
            if key in seen:
                continue
            seen.add(key)
            unique.append(pattern)
        return unique


# ── Per-conversation history ───────────────────────────────────────────

class PatternHistory:
    """
    Append-only record of detected patterns for one conversation.

    Keyed by message id. Create one per conversation and never share it;
    trend analysis reads from it.
    """

    def __init__(self, engine: "PatternEngine | None" = None) -> None:
        self._engine = engine or pattern_engine
        self._by_message: dict[str, list[DetectedPattern]] = {}

    def __len__(self) -> int:
        return len(self._by_message)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._by_message

    def record(self, message_id: str, patterns: Sequence[DetectedPattern]) -> None:
        """Store the patterns for a message. Existing entries are kept."""
        self._by_message.setdefault(message_id, list(patterns))

    def patterns_for(self, message: Message) -> list[DetectedPattern]:
        """Recorded patterns for a message, else the ones attached to it."""
        return self._by_message.get(message.id, message.detected_patterns)

    def analyze_message(
        self,
        message: Message,
        history: Sequence[Message] = (),
        patterns: Sequence[DetectedPattern] | None = None,
    ) -> PatternAnalysis:
        """
        Detect and record patterns for ``message`` and compute trends.

        Args:
            message: The message being analyzed.
            history: Ordered conversation messages for trend analysis.
            patterns: Already-detected patterns for the message; detection
                runs when omitted.
        """
        if patterns is None:
            patterns = self._engine.detect_patterns(message.content, message.speaker)
        patterns = list(patterns)
        self.record(message.id, patterns)

        return PatternAnalysis(
            patterns=patterns,
            summary=summarize_patterns(patterns),
            trends=self.analyze_trends(history),
        )

    def analyze_trends(self, history: Sequence[Message]) -> PatternTrends:
        """Compare pattern counts in the most recent window with the one before."""
        if len(history) < MIN_TREND_HISTORY:
            return PatternTrends()

        recent = self._counts(history[-TREND_WINDOW:])
        older = self._counts(history[-2 * TREND_WINDOW:-TREND_WINDOW])

        increasing: list[str] = []
        decreasing: list[str] = []
        for key, recent_count in recent.items():
            older_count = older.get(key, 0)
            if recent_count > older_count:
                increasing.append(key)
            elif recent_count < older_count:
                decreasing.append(key)

        return PatternTrends(increasing=increasing, decreasing=decreasing)

    def _counts(self, messages: Iterable[Message]) -> Counter[str]:
        counts: Counter[str] = Counter()
        for message in messages:
            for pattern in self.patterns_for(message):
                counts[f"{pattern.type.value}-{pattern.context}"] += 1
        return counts


# ── Utilities ──────────────────────────────────────────────────────────

def summarize_patterns(patterns: Sequence[DetectedPattern]) -> PatternSummary:
    """Count the three primary categories and average the confidence."""
    counts = Counter(p.type for p in patterns)
    average = sum(p.confidence for p in patterns) / len(patterns) if patterns else 0.0
    return PatternSummary(
        total_patterns=len(patterns),
        objections=counts[PatternType.OBJECTION],
        buying_signals=counts[PatternType.BUYING_SIGNAL],
        pain_points=counts[PatternType.PAIN_POINT],
        confidence=average,
    )


def patterns_by_type(
    patterns: Iterable[DetectedPattern], pattern_type: PatternType
) -> list[DetectedPattern]:
    return [p for p in patterns if p.type == pattern_type]


def high_confidence_patterns(
    patterns: Iterable[DetectedPattern], threshold: float = HIGH_CONFIDENCE
) -> list[DetectedPattern]:
    return [p for p in patterns if p.confidence >= threshold]


def group_patterns_by_context(
    patterns: Iterable[DetectedPattern],
) -> dict[str, list[DetectedPattern]]:
    """Group patterns by subtype; patterns without one land in ``general``."""
    grouped: dict[str, list[DetectedPattern]] = {}
    for pattern in patterns:
        grouped.setdefault(pattern.context or "general", []).append(pattern)
    return grouped


def summarize_conversation_patterns(messages: Sequence[Message]) -> ConversationPatternStats:
    """Conversation-wide pattern totals, confidence bands, and timeline."""
    by_type: Counter[str] = Counter()
    distribution = ConfidenceDistribution()
    timeline: list[PatternTimelineEntry] = []

    for message in messages:
        if not message.detected_patterns:
            continue
        for pattern in message.detected_patterns:
            by_type[pattern.type.value] += 1
            if pattern.confidence >= HIGH_CONFIDENCE:
                distribution.high += 1
            elif pattern.confidence >= MEDIUM_CONFIDENCE:
                distribution.medium += 1
            else:
                distribution.low += 1
        timeline.append(
            PatternTimelineEntry(
                timestamp=message.timestamp,
                message_id=message.id,
                patterns=message.detected_patterns,
            )
        )

    return ConversationPatternStats(
        total_patterns=sum(by_type.values()),
        patterns_by_type=dict(by_type),
        confidence_distribution=distribution,
        timeline=timeline,
    )


_INSIGHT_RECOMMENDATIONS: dict[str, list[str]] = {
    PatternType.OBJECTION.value: [
        "Address objections with empathy and evidence",
        "Ask clarifying questions to understand concerns",
        "Provide social proof and testimonials",
    ],
    PatternType.BUYING_SIGNAL.value: [
        "Capitalize on interest with next steps",
        "Provide detailed information and demos",
        "Move toward closing the conversation",
    ],
    PatternType.PAIN_POINT.value: [
        "Dig deeper into pain points with follow-up questions",
        "Quantify the impact of current challenges",
        "Position your solution as the remedy",
    ],
}

_DEFAULT_INSIGHT_RECOMMENDATIONS = [
    "Continue discovery to uncover more insights",
    "Ask open-ended questions to encourage dialogue",
]


def pattern_insights(patterns: Sequence[DetectedPattern]) -> PatternInsights:
    """Find the dominant pattern type and map it to coaching recommendations."""
    if not patterns:
        return PatternInsights(
            dominant_pattern="none",
            average_confidence=0.0,
            recommendations=["Continue the conversation to gather more insights"],
        )

    counts = Counter(p.type.value for p in patterns)
    # most_common keeps first-seen order among equal counts
    dominant = counts.most_common(1)[0][0]
    average = sum(p.confidence for p in patterns) / len(patterns)

    return PatternInsights(
        dominant_pattern=dominant,
        average_confidence=average,
        recommendations=list(
            _INSIGHT_RECOMMENDATIONS.get(dominant, _DEFAULT_INSIGHT_RECOMMENDATIONS)
        ),
    )


# ── Module-level singleton ────────────────────────────────────────────
# Stateless, so sharing it across conversations is safe.
pattern_engine = PatternEngine()
