"""
Pydantic models for utterances, messages, stages, and analysis reports.

Messages are the unit every analysis runs over: the ordered message list
of a conversation is the sole input to stage inference and trend analysis.
"""

import time
from typing import Literal

from pydantic import BaseModel, Field

from app.models.patterns import DetectedPattern, Speaker

Sentiment = Literal["positive", "negative", "neutral"]
Impact = Literal["positive", "negative", "neutral"]


class Utterance(BaseModel):
    """One finalized speaker turn as delivered by a transcript source."""

    text: str = Field(..., min_length=1, description="Transcribed or typed text.")
    speaker: Speaker | None = Field(
        default=None,
        description="Declared speaker role. Inferred from the text when absent.",
    )
    confidence: float | None = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Recognition confidence reported by the transcript source.",
    )
    timestamp: float = Field(
        default_factory=time.time,
        description="Unix timestamp of the utterance.",
    )

    model_config = {"frozen": True, "extra": "ignore"}


class AIAnalysis(BaseModel):
    """Lightweight per-message heuristics attached to a Message."""

    sentiment: Sentiment = "neutral"
    engagement_score: float = Field(default=0.5, ge=0.0, le=1.0)
    urgency_level: Literal["low", "medium", "high"] = "low"
    buying_intent: float = Field(default=0.0, ge=0.0, le=1.0)
    pain_level: float | None = None
    decision_maker_likelihood: float | None = None
    key_topics: list[str] = []
    next_best_action: str | None = None


class Message(BaseModel):
    """An analyzed utterance belonging to a conversation."""

    id: str
    content: str
    speaker: Speaker
    timestamp: float = Field(default_factory=time.time)
    detected_patterns: list[DetectedPattern] = []
    ai_analysis: AIAnalysis | None = None
    confidence: float | None = None

    model_config = {"frozen": True}


class ConversationStage(BaseModel):
    """One of the six conversation stages with its per-turn flags."""

    id: str
    name: str
    description: str
    completed: bool = False
    current: bool = False
    progress: float = Field(default=0.0, ge=0.0, le=100.0)


class StageProgression(BaseModel):
    """Snapshot of where a conversation sits in the stage model."""

    current_stage: str
    progress_percentage: float = Field(default=0.0, ge=0.0, le=100.0)
    next_stage: str
    stage_confidence: float = Field(default=0.6, ge=0.0, le=1.0)


class StageRecommendations(BaseModel):
    """Objectives, questions, and success criteria for a stage."""

    objectives: list[str] = []
    key_questions: list[str] = []
    success_criteria: list[str] = []


class ConversationPatternSummary(BaseModel):
    total_patterns: int = 0
    dominant_pattern: str = "none"
    pattern_distribution: dict[str, int] = Field(default_factory=dict)


class Recommendations(BaseModel):
    immediate_actions: list[str] = []
    strategic_suggestions: list[str] = []
    risk_factors: list[str] = []


class HealthFactor(BaseModel):
    factor: str
    impact: Impact
    description: str


class ConversationHealth(BaseModel):
    score: float = Field(default=0.5, ge=0.0, le=1.0)
    factors: list[HealthFactor] = []


class ConversationAnalysisReport(BaseModel):
    """Aggregated analysis of a conversation snapshot."""

    overall_sentiment: Sentiment = "neutral"
    engagement_score: float = 0.0
    stage_progression: StageProgression
    pattern_summary: ConversationPatternSummary = Field(
        default_factory=ConversationPatternSummary
    )
    recommendations: Recommendations = Field(default_factory=Recommendations)
    conversation_health: ConversationHealth = Field(default_factory=ConversationHealth)


class ConversationMetrics(BaseModel):
    """Rough talk-time and pacing statistics for a conversation."""

    duration_estimate: float = Field(
        default=0.0, description="Estimated duration in minutes."
    )
    message_frequency: float = Field(
        default=0.0, description="Messages per minute."
    )
    rep_talk_time: float = Field(default=0.0, description="Rep share of messages (0–100).")
    prospect_talk_time: float = Field(
        default=0.0, description="Prospect share of messages (0–100)."
    )
    question_ratio: float = Field(
        default=0.0, description="Messages containing a question, per message."
    )
