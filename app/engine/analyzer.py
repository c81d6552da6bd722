"""
Conversation-level analysis.

Rolls a conversation's messages up into one report: sentiment,
engagement, stage progression, pattern summary, recommendations, and a
health score with the factors that moved it.
"""

import logging
from collections import Counter
from collections.abc import Sequence

from app.engine.stages import StageId, infer_stage
from app.models.conversation import (
    AIAnalysis,
    ConversationAnalysisReport,
    ConversationHealth,
    ConversationMetrics,
    ConversationPatternSummary,
    HealthFactor,
    Message,
    Recommendations,
    Sentiment,
    StageProgression,
)
from app.models.patterns import PatternType, Speaker

logger = logging.getLogger(__name__)

POSITIVE_RATIO_THRESHOLD = 0.6
NEGATIVE_RATIO_THRESHOLD = 0.4
BASE_HEALTH_SCORE = 0.5

# ── Message-level word lists ───────────────────────────────────────────

POSITIVE_WORDS = ("good", "great", "excellent", "perfect", "love", "like", "interested", "helpful")
NEGATIVE_WORDS = ("bad", "terrible", "hate", "dislike", "problem", "issue", "concerned", "worried")
URGENCY_WORDS = ("urgent", "asap", "immediately", "rush", "deadline")
BUYING_WORDS = ("buy", "purchase", "invest", "budget", "price", "cost", "when", "timeline")

# Canned actions keyed by dominant pattern type
_DOMINANT_ACTIONS: dict[str, tuple[list[str], list[str], list[str]]] = {
    PatternType.OBJECTION.value: (
        [
            "Address the primary objection with empathy",
            "Ask clarifying questions to understand the concern",
        ],
        ["Prepare objection handling materials"],
        ["Multiple unaddressed objections may stall the deal"],
    ),
    PatternType.PAIN_POINT.value: (
        [
            "Dig deeper into the pain with follow-up questions",
            "Quantify the impact of the pain",
        ],
        ["Position your solution as the remedy"],
        [],
    ),
    PatternType.BUYING_SIGNAL.value: (
        [
            "Capitalize on interest with next steps",
            "Provide detailed information or demo",
        ],
        ["Move toward closing the conversation"],
        [],
    ),
}
_DEFAULT_ACTIONS: tuple[list[str], list[str], list[str]] = (
    ["Continue discovery with open-ended questions"],
    ["Build rapport and trust"],
    [],
)


def generate_ai_analysis(content: str, speaker: Speaker) -> AIAnalysis:
    """Word-list sentiment, engagement, urgency, and buying intent for one message."""
    text = content.lower()

    positive = sum(1 for word in POSITIVE_WORDS if word in text)
    negative = sum(1 for word in NEGATIVE_WORDS if word in text)
    sentiment: Sentiment = "neutral"
    if positive > negative:
        sentiment = "positive"
    elif negative > positive:
        sentiment = "negative"

    engagement = 0.5
    if len(content) > 50:
        engagement += 0.2
    if "?" in content:
        engagement += 0.1
    if speaker == Speaker.PROSPECT:
        engagement += 0.2

    urgency = "high" if any(word in text for word in URGENCY_WORDS) else "low"
    buying_intent = min(sum(1 for word in BUYING_WORDS if word in text) * 0.2, 1.0)

    return AIAnalysis(
        sentiment=sentiment,
        engagement_score=min(engagement, 1.0),
        urgency_level=urgency,
        buying_intent=buying_intent,
    )


def calculate_conversation_metrics(messages: Sequence[Message]) -> ConversationMetrics:
    """Estimate pacing and talk-time split. Duration is at least 5 minutes."""
    if not messages:
        return ConversationMetrics()

    total = len(messages)
    duration = max(total * 0.5, 5.0)
    rep = sum(1 for m in messages if m.speaker == Speaker.REP)
    prospect = sum(1 for m in messages if m.speaker == Speaker.PROSPECT)
    questions = sum(1 for m in messages if "?" in m.content)

    return ConversationMetrics(
        duration_estimate=duration,
        message_frequency=total / duration,
        rep_talk_time=rep / total * 100,
        prospect_talk_time=prospect / total * 100,
        question_ratio=questions / total,
    )


class ConversationAnalyzer:
    """Builds ``ConversationAnalysisReport`` snapshots from message lists."""

    def analyze_conversation(self, messages: Sequence[Message]) -> ConversationAnalysisReport:
        """
        Analyze a full conversation.

        Args:
            messages: Ordered conversation messages.

        Returns:
            The aggregated report; an empty conversation yields the fixed
            empty report.
        """
        if not messages:
            return self.empty_report()

        pattern_summary = self.summarize_patterns(messages)
        report = ConversationAnalysisReport(
            overall_sentiment=self.overall_sentiment(messages),
            engagement_score=self.engagement_score(messages),
            stage_progression=infer_stage(messages),
            pattern_summary=pattern_summary,
            recommendations=self.recommendations(messages, pattern_summary),
            conversation_health=self.conversation_health(messages, pattern_summary),
        )

        logger.info(
            "Conversation analyzed | messages=%d | stage=%s | sentiment=%s | health=%.2f",
            len(messages),
            report.stage_progression.current_stage,
            report.overall_sentiment,
            report.conversation_health.score,
        )
        return report

    # ── Sentiment & engagement ─────────────────────────────────────────

    @staticmethod
    def overall_sentiment(messages: Sequence[Message]) -> Sentiment:
        """
        Vote over per-message sentiment labels.

        Positive needs more than 60% of scored messages, negative more than
        40%; anything else is neutral.
        """
        labels = [m.ai_analysis.sentiment for m in messages if m.ai_analysis is not None]
        if not labels:
            return "neutral"

        counts = Counter(labels)
        if counts["positive"] / len(labels) > POSITIVE_RATIO_THRESHOLD:
            return "positive"
        if counts["negative"] / len(labels) > NEGATIVE_RATIO_THRESHOLD:
            return "negative"
        return "neutral"

    @staticmethod
    def engagement_score(messages: Sequence[Message]) -> float:
        if not messages:
            return 0.0

        scores = [m.ai_analysis.engagement_score for m in messages if m.ai_analysis is not None]
        if scores:
            return sum(scores) / len(scores)

        # No per-message scores: fall back to questions, length, and pattern diversity
        score = 0.5
        questions = sum(1 for m in messages if "?" in m.content)
        score += min(questions * 0.1, 0.3)

        average_length = sum(len(m.content) for m in messages) / len(messages)
        if average_length > 100:
            score += 0.1
        if average_length > 200:
            score += 0.1

        pattern_types = {p.type for m in messages for p in m.detected_patterns}
        score += min(len(pattern_types) * 0.05, 0.2)

        return min(score, 1.0)

    # ── Patterns & recommendations ─────────────────────────────────────

    @staticmethod
    def summarize_patterns(messages: Sequence[Message]) -> ConversationPatternSummary:
        distribution = Counter(p.type.value for m in messages for p in m.detected_patterns)
        if not distribution:
            return ConversationPatternSummary()

        return ConversationPatternSummary(
            total_patterns=sum(distribution.values()),
            dominant_pattern=distribution.most_common(1)[0][0],
            pattern_distribution=dict(distribution),
        )

    @staticmethod
    def recommendations(
        messages: Sequence[Message],
        pattern_summary: ConversationPatternSummary,
    ) -> Recommendations:
        immediate, strategic, risks = (
            list(items)
            for items in _DOMINANT_ACTIONS.get(pattern_summary.dominant_pattern, _DEFAULT_ACTIONS)
        )

        if len(messages) < 5:
            strategic.append("Extend the conversation to gather more insights")

        if len(messages) > 20:
            risks.append("Long conversation may indicate lack of clear direction")
            immediate.append("Summarize key points and suggest next steps")

        prospect_messages = sum(1 for m in messages if m.speaker == Speaker.PROSPECT)
        if prospect_messages < len(messages) * 0.3:
            risks.append("Low prospect engagement - mostly one-sided conversation")
            immediate.append("Ask more engaging questions to encourage participation")

        return Recommendations(
            immediate_actions=immediate,
            strategic_suggestions=strategic,
            risk_factors=risks,
        )

    # ── Health ─────────────────────────────────────────────────────────

    @staticmethod
    def conversation_health(
        messages: Sequence[Message],
        pattern_summary: ConversationPatternSummary,
    ) -> ConversationHealth:
        """
        Score conversation health from 0.5, nudged by each factor.

        Factors: speaker balance, pattern diversity, buying signals,
        objection count, and conversation length.
        """
        factors: list[HealthFactor] = []
        score = BASE_HEALTH_SCORE

        rep = sum(1 for m in messages if m.speaker == Speaker.REP)
        prospect = sum(1 for m in messages if m.speaker == Speaker.PROSPECT)
        balance = prospect / (rep + prospect) if rep + prospect else 0.0

        if 0.3 < balance < 0.7:
            score += 0.2
            factors.append(HealthFactor(
                factor="Message Balance",
                impact="positive",
                description="Good balance between rep and prospect participation",
            ))
        elif balance < 0.2:
            score -= 0.2
            factors.append(HealthFactor(
                factor="Message Balance",
                impact="negative",
                description="Conversation is too one-sided - prospect not engaged enough",
            ))

        distribution = pattern_summary.pattern_distribution
        if len(distribution) > 2:
            score += 0.15
            factors.append(HealthFactor(
                factor="Pattern Diversity",
                impact="positive",
                description="Multiple types of patterns detected - rich conversation",
            ))

        buying_signals = distribution.get(PatternType.BUYING_SIGNAL.value, 0)
        if buying_signals > 0:
            score += 0.2
            factors.append(HealthFactor(
                factor="Buying Signals",
                impact="positive",
                description=f"{buying_signals} buying signals detected",
            ))

        objections = distribution.get(PatternType.OBJECTION.value, 0)
        if objections > 2:
            score -= 0.15
            factors.append(HealthFactor(
                factor="Multiple Objections",
                impact="negative",
                description=f"{objections} objections need to be addressed",
            ))
        elif objections == 1:
            factors.append(HealthFactor(
                factor="Single Objection",
                impact="neutral",
                description="One objection identified - normal part of sales process",
            ))

        if len(messages) > 15:
            score += 0.1
            factors.append(HealthFactor(
                factor="Conversation Length",
                impact="positive",
                description="Substantial conversation with good depth",
            ))

        return ConversationHealth(score=max(0.0, min(1.0, score)), factors=factors)

    @staticmethod
    def empty_report() -> ConversationAnalysisReport:
        """Fixed report for a conversation with no messages yet."""
        return ConversationAnalysisReport(
            overall_sentiment="neutral",
            engagement_score=0.0,
            stage_progression=StageProgression(
                current_stage=StageId.DISCOVERY_SURFACE.value,
                progress_percentage=0.0,
                next_stage=StageId.DISCOVERY_DEEP.value,
                stage_confidence=0.6,
            ),
            pattern_summary=ConversationPatternSummary(),
            recommendations=Recommendations(
                immediate_actions=["Start the conversation with an engaging question"],
                strategic_suggestions=["Build rapport and establish trust"],
                risk_factors=[],
            ),
            conversation_health=ConversationHealth(score=BASE_HEALTH_SCORE, factors=[]),
        )


# ── Module-level singleton ────────────────────────────────────────────
conversation_analyzer = ConversationAnalyzer()
