"""
Request and response bodies for the conversation and coaching endpoints.

Designed for resilience:
- ``speaker`` is optional (most transcript sources don't diarize)
- blank ``text`` is accepted and treated as a skipped turn, not an error
- Extra fields are ignored (forward-compatible with transcript sources)
"""

from pydantic import BaseModel, Field

from app.models.conversation import Message, StageProgression
from app.models.patterns import DetectedPattern, PatternAnalysis, Speaker
from app.models.playbook import PlaybookSuggestion


class ConversationCreate(BaseModel):
    """Body for starting a new conversation."""

    title: str = Field(default="Untitled conversation", max_length=200)

    model_config = {"extra": "ignore"}


class ConversationInfo(BaseModel):
    conversation_id: str
    title: str
    created_at: float
    message_count: int = 0
    current_stage: str | None = None


class TranscriptEvent(BaseModel):
    """
    A transcript event delivered by a voice or text front-end.

    Example::

        {
            "text": "This is too expensive for our budget",
            "confidence": 0.92,
            "is_final": true
        }
    """

    text: str = Field(default="", description="Finalized utterance text.")
    confidence: float | None = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Recognition confidence from the transcript source.",
    )
    is_final: bool = Field(
        default=True,
        description="Interim results are acknowledged but not analyzed.",
    )
    speaker: Speaker | None = Field(
        default=None,
        description="Declared speaker role; inferred from the text when absent.",
    )
    timestamp: float | None = Field(
        default=None,
        description="Unix timestamp of the utterance; server time when absent.",
    )

    model_config = {"extra": "ignore"}


class TurnResult(BaseModel):
    """Everything produced by analyzing one utterance."""

    message: Message
    analysis: PatternAnalysis
    stage: StageProgression
    suggestions: list[PlaybookSuggestion] = []
    objection_responses: list[PlaybookSuggestion] = []


class TurnResponse(BaseModel):
    """Response returned after posting a transcript event."""

    status: str = "ok"  # ok | skipped
    conversation_id: str
    turn: TurnResult | None = None


class ObjectionRequest(BaseModel):
    """An objection pattern to generate rebuttals for."""

    pattern: DetectedPattern


class FeedbackResponse(BaseModel):
    status: str = "ok"
    conversation_id: str
    recorded: int
