"""
Pydantic models for sales playbooks and coaching suggestions.

Frameworks are static data: adding a methodology means adding a
``PlaybookFramework`` entry, never subclassing.
"""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class FrameworkName(str, Enum):
    """Sales methodologies the playbook engine draws from."""

    SANDLER = "Sandler"
    SPIN = "SPIN"
    MEDDIC = "MEDDIC"
    CHALLENGER = "Challenger"


class SuggestionType(str, Enum):
    QUESTION = "question"
    RESPONSE = "response"
    TECHNIQUE = "technique"
    OBJECTION_HANDLER = "objection_handler"


class PlaybookTechnique(BaseModel):
    """A technique with its templates and the words that trigger it."""

    name: str
    description: str
    questions: tuple[str, ...] = ()
    responses: tuple[str, ...] = ()
    triggers: tuple[str, ...] = ()
    stage: str

    model_config = {"frozen": True}


class PlaybookFramework(BaseModel):
    """A named sales methodology and its techniques."""

    id: str
    name: FrameworkName
    title: str = Field(..., description="Full methodology name, e.g. SPIN Selling.")
    description: str
    stages: tuple[str, ...] = ()
    techniques: dict[str, PlaybookTechnique] = Field(default_factory=dict)

    model_config = {"frozen": True}


class PlaybookSuggestion(BaseModel):
    """A generated coaching suggestion for the rep."""

    id: str
    framework: FrameworkName
    type: SuggestionType
    content: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    context: str
    stage: str
    reasoning: str | None = None
    follow_ups: list[str] = []

    model_config = {"frozen": True}


class SuggestionUsage(BaseModel):
    """Caller-reported outcome of using a suggestion."""

    suggestion_id: str
    used: bool = True
    outcome: Literal["positive", "negative", "neutral"] = "neutral"
