"""
Speaker attribution for incoming utterances.

Scores an utterance against rep-leaning and prospect-leaning cue sets and
picks a role. Ambiguous utterances stick with the previous speaker so the
attribution does not flap on short replies.
"""

import logging
from collections.abc import Iterable

from pydantic import BaseModel

from app.engine.lexicon import PROSPECT_CUES, REP_CUES, match_terms
from app.engine.pattern_engine import PatternEngine, pattern_engine
from app.models.conversation import Utterance
from app.models.patterns import DetectedPattern, Speaker

logger = logging.getLogger(__name__)

MIN_CLASSIFIABLE_LENGTH = 10
HYSTERESIS_THRESHOLD = 0.6


class ProcessedUtterance(BaseModel):
    """Result of attributing and scanning a single utterance."""

    speaker: Speaker
    patterns: list[DetectedPattern] = []
    confidence: float | None = None


def classify_speaker(text: str, previous_speaker: Speaker | None = None) -> Speaker:
    """
    Attribute an utterance to the rep or the prospect.

    Args:
        text: Raw utterance text.
        previous_speaker: Role of the previous turn, if known.

    Returns:
        The inferred role. Never fails; short or cue-free text falls back
        to ``previous_speaker`` (or ``rep``).
    """
    fallback = previous_speaker or Speaker.REP
    clean = text.lower().strip()

    if len(clean) < MIN_CLASSIFIABLE_LENGTH:
        return fallback

    rep_score = sum(len(match_terms(cue, clean)) for cue in REP_CUES)
    prospect_score = sum(len(match_terms(cue, clean)) for cue in PROSPECT_CUES)

    if "?" in clean:
        rep_score += 2
    if clean.startswith("we ") or clean.startswith("our "):
        prospect_score += 2
    if "thanks for" in clean or "appreciate" in clean:
        rep_score += 1
    if "struggling" in clean or "problem" in clean:
        prospect_score += 2

    total = rep_score + prospect_score
    if total == 0:
        return fallback

    confidence = max(rep_score, prospect_score) / total
    if confidence < HYSTERESIS_THRESHOLD and previous_speaker is not None:
        return previous_speaker

    return Speaker.REP if rep_score >= prospect_score else Speaker.PROSPECT


def process_utterance(
    utterance: Utterance | str | None,
    previous_speaker: Speaker | None = None,
    engine: PatternEngine = pattern_engine,
) -> ProcessedUtterance | None:
    """
    Attribute an utterance and detect its patterns.

    A declared speaker on the utterance wins over classification. Blank or
    non-string text is a no-op turn and returns None.
    """
    if isinstance(utterance, Utterance):
        text, declared, confidence = utterance.text, utterance.speaker, utterance.confidence
    else:
        text, declared, confidence = utterance, None, None

    if not isinstance(text, str) or not text.strip():
        logger.debug("Skipping blank utterance")
        return None

    speaker = declared or classify_speaker(text, previous_speaker)
    patterns = engine.detect_patterns(text, speaker)
    return ProcessedUtterance(speaker=speaker, patterns=patterns, confidence=confidence)


def speaker_accuracy(predictions: Iterable[tuple[Speaker, Speaker]]) -> float:
    """Percentage of ``(predicted, actual)`` pairs that agree; 0 when empty."""
    pairs = list(predictions)
    if not pairs:
        return 0.0
    correct = sum(1 for predicted, actual in pairs if predicted == actual)
    return correct / len(pairs) * 100
