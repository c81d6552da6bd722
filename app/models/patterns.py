"""
Pydantic models for detected conversation patterns.

A pattern is a classified linguistic signal (objection, buying signal,
pain point, ...) extracted from a single utterance.
"""

from enum import Enum

from pydantic import BaseModel, Field


class Speaker(str, Enum):
    """Conversation roles an utterance can be attributed to."""

    REP = "rep"
    PROSPECT = "prospect"


class PatternType(str, Enum):
    """Categories of detectable conversation patterns."""

    OBJECTION = "objection"
    BUYING_SIGNAL = "buying_signal"
    PAIN_POINT = "pain_point"
    GREETING = "greeting"
    CLOSING = "closing"
    QUESTION = "question"
    CONCERN = "concern"
    INTEREST = "interest"
    URGENCY = "urgency"
    BUDGET = "budget"
    AUTHORITY = "authority"
    TIMELINE = "timeline"
    COMPETITOR = "competitor"
    FEATURE_REQUEST = "feature_request"


class DetectedPattern(BaseModel):
    """A single pattern detected in an utterance."""

    type: PatternType
    confidence: float = Field(
        ...,
        ge=0.0,
        le=1.0,
        description="Confidence score (0.0–1.0) from the detection heuristics.",
    )
    description: str = Field(
        ...,
        description='Human-readable label, e.g. budget objection: "too expensive".',
    )
    keywords: list[str] = Field(
        default_factory=list,
        description="Matched text: the whole match followed by captured groups.",
    )
    context: str | None = Field(
        default=None,
        description="Pattern subtype, e.g. budget, timing, engagement.",
    )

    model_config = {"frozen": True}


class PatternSummary(BaseModel):
    """Per-utterance counts of the three primary pattern categories."""

    total_patterns: int = 0
    objections: int = 0
    buying_signals: int = 0
    pain_points: int = 0
    confidence: float = Field(
        default=0.0,
        description="Mean confidence of the detected patterns.",
    )


class PatternTrends(BaseModel):
    """Pattern keys (``type-context``) rising or falling in recent messages."""

    increasing: list[str] = []
    decreasing: list[str] = []


class PatternAnalysis(BaseModel):
    """Patterns for one message plus summary counts and conversation trends."""

    patterns: list[DetectedPattern] = []
    summary: PatternSummary = Field(default_factory=PatternSummary)
    trends: PatternTrends = Field(default_factory=PatternTrends)


class ConfidenceDistribution(BaseModel):
    """Pattern counts bucketed by confidence band."""

    high: int = 0
    medium: int = 0
    low: int = 0


class PatternTimelineEntry(BaseModel):
    timestamp: float
    message_id: str
    patterns: list[DetectedPattern] = []


class ConversationPatternStats(BaseModel):
    """Conversation-wide pattern totals for analytics views."""

    total_patterns: int = 0
    patterns_by_type: dict[str, int] = Field(default_factory=dict)
    confidence_distribution: ConfidenceDistribution = Field(
        default_factory=ConfidenceDistribution
    )
    timeline: list[PatternTimelineEntry] = []


class PatternInsights(BaseModel):
    """Dominant pattern type with matching coaching recommendations."""

    dominant_pattern: str = "none"
    average_confidence: float = 0.0
    recommendations: list[str] = []
