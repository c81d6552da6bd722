"""
Conversation stage inference.

Maps a conversation onto six fixed stages:

    discovery_surface → discovery_deep → qualification →
    presentation → objection_handling → closing

The current stage is recomputed from the full message history on every
call through a priority cascade over the transcript text and the detected
patterns. Nothing is carried between calls, so the same history always
yields the same snapshot. The cascade can jump in either direction, e.g.
an early "budget" mention lands on qualification before deep discovery.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from app.models.conversation import (
    ConversationStage,
    Message,
    StageProgression,
    StageRecommendations,
)
from app.models.patterns import DetectedPattern, PatternType

logger = logging.getLogger(__name__)


class StageId(str, Enum):
    DISCOVERY_SURFACE = "discovery_surface"
    DISCOVERY_DEEP = "discovery_deep"
    QUALIFICATION = "qualification"
    PRESENTATION = "presentation"
    OBJECTION_HANDLING = "objection_handling"
    CLOSING = "closing"


# Successor of the final stage; not a stage of its own
FOLLOW_UP = "follow_up"


@dataclass(frozen=True)
class StageDefinition:
    """Static description of one stage."""

    id: StageId
    name: str
    description: str


STAGES: tuple[StageDefinition, ...] = (
    StageDefinition(
        StageId.DISCOVERY_SURFACE,
        "Discovery - Surface",
        "Initial discovery and rapport building",
    ),
    StageDefinition(
        StageId.DISCOVERY_DEEP,
        "Discovery - Deep",
        "Deep pain discovery and qualification",
    ),
    StageDefinition(
        StageId.QUALIFICATION,
        "Qualification",
        "Budget, authority, need, timeline qualification",
    ),
    StageDefinition(
        StageId.PRESENTATION,
        "Presentation",
        "Solution presentation and demonstration",
    ),
    StageDefinition(
        StageId.OBJECTION_HANDLING,
        "Objection Handling",
        "Address concerns and objections",
    ),
    StageDefinition(
        StageId.CLOSING,
        "Closing",
        "Secure commitment and define next steps",
    ),
)

_STAGE_ORDER: list[str] = [stage.id.value for stage in STAGES]

# ── Cascade phrases ────────────────────────────────────────────────────

CLOSING_PHRASES = ("next steps", "move forward", "when can we start")
PRESENTATION_PHRASES = ("demo", "show you", "solution", "features")
QUALIFICATION_PHRASES = ("budget", "timeline", "decision", "authority")
DEEP_DISCOVERY_PHRASES = ("impact", "cost", "affect")

# Stage → pattern types or contexts that raise confidence in it
STAGE_RELEVANCE: dict[str, tuple[str, ...]] = {
    StageId.DISCOVERY_SURFACE.value: ("greeting", "question"),
    StageId.DISCOVERY_DEEP.value: ("pain_point",),
    StageId.QUALIFICATION.value: ("budget", "authority", "timeline"),
    StageId.PRESENTATION.value: ("interest", "feature_request"),
    StageId.OBJECTION_HANDLING.value: ("objection", "concern"),
    StageId.CLOSING.value: ("buying_signal", "urgency"),
}

# Exit criteria per stage; progress is only computed for known stages
STAGE_REQUIREMENTS: dict[str, tuple[str, ...]] = {
    StageId.DISCOVERY_SURFACE.value: ("rapport", "current_state", "initial_pain"),
    StageId.DISCOVERY_DEEP.value: ("pain_quantified", "impact_understood", "urgency"),
    StageId.QUALIFICATION.value: ("budget", "authority", "timeline", "decision_process"),
    StageId.PRESENTATION.value: ("solution_presented", "benefits_shown", "questions_answered"),
    StageId.OBJECTION_HANDLING.value: ("concerns_addressed", "proof_provided", "confidence_restored"),
    StageId.CLOSING.value: ("commitment_requested", "next_steps_defined", "timeline_set"),
}

BASE_STAGE_CONFIDENCE = 0.6
MAX_STAGE_CONFIDENCE = 0.95


# ── Inference ──────────────────────────────────────────────────────────

def _all_patterns(messages: Sequence[Message]) -> list[DetectedPattern]:
    return [pattern for message in messages for pattern in message.detected_patterns]


def _count(patterns: Sequence[DetectedPattern], pattern_type: PatternType) -> int:
    return sum(1 for p in patterns if p.type == pattern_type)


def determine_current_stage(
    messages: Sequence[Message],
    patterns: Sequence[DetectedPattern] | None = None,
) -> str:
    """Run the stage cascade over the transcript and its patterns."""
    if patterns is None:
        patterns = _all_patterns(messages)
    transcript = " ".join(m.content for m in messages).lower()

    if any(phrase in transcript for phrase in CLOSING_PHRASES):
        return StageId.CLOSING.value
    if _count(patterns, PatternType.OBJECTION) > 0:
        return StageId.OBJECTION_HANDLING.value
    if any(phrase in transcript for phrase in PRESENTATION_PHRASES):
        return StageId.PRESENTATION.value
    if any(phrase in transcript for phrase in QUALIFICATION_PHRASES):
        return StageId.QUALIFICATION.value
    if _count(patterns, PatternType.PAIN_POINT) > 2 or any(
        phrase in transcript for phrase in DEEP_DISCOVERY_PHRASES
    ):
        return StageId.DISCOVERY_DEEP.value
    return StageId.DISCOVERY_SURFACE.value


def determine_next_stage(current_stage: str, patterns: Sequence[DetectedPattern]) -> str:
    """
    Pick the stage that should follow ``current_stage``.

    Any objection forces objection handling. More than two buying signals
    during surface discovery skip straight to qualification. Otherwise the
    canonical successor is returned; unknown stage ids map to themselves.
    """
    if _count(patterns, PatternType.OBJECTION) > 0:
        return StageId.OBJECTION_HANDLING.value

    if (
        _count(patterns, PatternType.BUYING_SIGNAL) > 2
        and current_stage == StageId.DISCOVERY_SURFACE.value
    ):
        return StageId.QUALIFICATION.value

    if current_stage not in _STAGE_ORDER:
        return current_stage
    index = _STAGE_ORDER.index(current_stage)
    if index + 1 < len(_STAGE_ORDER):
        return _STAGE_ORDER[index + 1]
    return FOLLOW_UP


def calculate_stage_progress(
    stage: str,
    messages: Sequence[Message],
    patterns: Sequence[DetectedPattern] | None = None,
) -> float:
    """Blend conversation length (max 80) and pattern density (max 20)."""
    if stage not in STAGE_REQUIREMENTS:
        return 100.0
    if patterns is None:
        patterns = _all_patterns(messages)

    base = min(len(messages) / 10 * 100, 80.0)
    bonus = min(len(patterns) * 5, 20)
    return float(min(base + bonus, 100.0))


def calculate_stage_confidence(stage: str, patterns: Sequence[DetectedPattern]) -> float:
    """0.6 plus 0.1 × confidence of each pattern relevant to ``stage``."""
    relevant = STAGE_RELEVANCE.get(stage, ())
    confidence = BASE_STAGE_CONFIDENCE

    for pattern in patterns:
        context = pattern.context or ""
        if pattern.type.value in relevant or any(item in context for item in relevant):
            confidence += 0.1 * pattern.confidence

    return min(confidence, MAX_STAGE_CONFIDENCE)


def infer_stage(messages: Sequence[Message]) -> StageProgression:
    """
    Infer the stage snapshot for a conversation.

    Args:
        messages: Ordered conversation messages with their patterns.

    Returns:
        Current stage, progress within it, next stage, and confidence.
    """
    patterns = _all_patterns(messages)
    current = determine_current_stage(messages, patterns)

    progression = StageProgression(
        current_stage=current,
        progress_percentage=calculate_stage_progress(current, messages, patterns),
        next_stage=determine_next_stage(current, patterns),
        stage_confidence=calculate_stage_confidence(current, patterns),
    )

    logger.debug(
        "Stage inferred | messages=%d | patterns=%d | current=%s | next=%s",
        len(messages),
        len(patterns),
        progression.current_stage,
        progression.next_stage,
    )
    return progression


def stage_snapshot(progression: StageProgression) -> list[ConversationStage]:
    """
    Expand a progression into the full stage list.

    Stages before the current one are completed, the current one carries
    the inferred progress, later ones are untouched.
    """
    current_index = (
        _STAGE_ORDER.index(progression.current_stage)
        if progression.current_stage in _STAGE_ORDER
        else -1
    )

    snapshot = []
    for index, stage in enumerate(STAGES):
        is_current = index == current_index
        completed = current_index >= 0 and index < current_index
        if completed:
            progress = 100.0
        elif is_current:
            progress = progression.progress_percentage
        else:
            progress = 0.0
        snapshot.append(
            ConversationStage(
                id=stage.id.value,
                name=stage.name,
                description=stage.description,
                completed=completed,
                current=is_current,
                progress=progress,
            )
        )
    return snapshot


# ── Stage recommendations ──────────────────────────────────────────────

_STAGE_RECOMMENDATIONS: dict[str, StageRecommendations] = {
    StageId.DISCOVERY_SURFACE.value: StageRecommendations(
        objectives=["Build rapport", "Understand current state", "Identify initial pain points"],
        key_questions=[
            "Can you walk me through your current process?",
            "What challenges are you facing?",
            "How are you handling this today?",
        ],
        success_criteria=["Prospect is engaged", "Initial pain identified", "Trust established"],
    ),
    StageId.DISCOVERY_DEEP.value: StageRecommendations(
        objectives=["Quantify pain", "Understand impact", "Identify decision makers"],
        key_questions=[
            "How much is this costing you?",
            "What happens if you don't fix this?",
            "Who else is affected by this problem?",
        ],
        success_criteria=["Pain quantified", "Impact understood", "Urgency established"],
    ),
    StageId.QUALIFICATION.value: StageRecommendations(
        objectives=["Confirm budget", "Identify decision process", "Establish timeline"],
        key_questions=[
            "What's your budget for solving this?",
            "How do decisions like this get made?",
            "What's your timeline for implementation?",
        ],
        success_criteria=["Budget confirmed", "Decision process clear", "Timeline established"],
    ),
    StageId.PRESENTATION.value: StageRecommendations(
        objectives=["Present solution", "Connect features to benefits", "Address concerns"],
        key_questions=[
            "How does this address your specific needs?",
            "What questions do you have?",
            "How do you see this fitting into your workflow?",
        ],
        success_criteria=["Solution understood", "Value demonstrated", "Concerns addressed"],
    ),
    StageId.OBJECTION_HANDLING.value: StageRecommendations(
        objectives=["Address concerns", "Provide reassurance", "Maintain momentum"],
        key_questions=[
            "What specific concerns do you have?",
            "What would need to happen for you to move forward?",
            "How can I address that concern?",
        ],
        success_criteria=["Objections resolved", "Confidence restored", "Path forward clear"],
    ),
    StageId.CLOSING.value: StageRecommendations(
        objectives=["Secure commitment", "Define next steps", "Set expectations"],
        key_questions=[
            "Are you ready to move forward?",
            "What are the next steps?",
            "When can we get started?",
        ],
        success_criteria=["Commitment secured", "Next steps defined", "Timeline agreed"],
    ),
}

_GENERIC_RECOMMENDATIONS = StageRecommendations(
    objectives=["Continue conversation"],
    key_questions=["What questions do you have?"],
    success_criteria=["Engagement maintained"],
)


def get_stage_recommendations(stage: str) -> StageRecommendations:
    """Objectives for ``stage``; unknown ids get the generic list."""
    recommendations = _STAGE_RECOMMENDATIONS.get(stage, _GENERIC_RECOMMENDATIONS)
    return recommendations.model_copy(deep=True)
