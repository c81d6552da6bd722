"""
In-memory conversation store.

Holds analyzed messages grouped by ``conversation_id``. Uses an
``asyncio.Lock`` so concurrent requests for the same conversation are
serialized. Every conversation owns its own pattern history and
suggestion usage; nothing is shared across conversations and nothing
outlives the process.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

from app.engine.analyzer import conversation_analyzer, generate_ai_analysis
from app.engine.pattern_engine import PatternHistory
from app.engine.playbook import calculate_playbook_effectiveness, playbook_engine
from app.engine.speaker import process_utterance
from app.engine.stages import infer_stage
from app.models.api import ConversationInfo, TranscriptEvent, TurnResponse, TurnResult
from app.models.conversation import ConversationAnalysisReport, Message, Utterance
from app.models.patterns import PatternType
from app.models.playbook import PlaybookSuggestion, SuggestionUsage

logger = logging.getLogger(__name__)


@dataclass
class ConversationData:
    """Container for all data associated with a single conversation."""

    conversation_id: str
    title: str = "Untitled conversation"
    created_at: float = field(default_factory=time.time)
    messages: list[Message] = field(default_factory=list)
    pattern_history: PatternHistory = field(default_factory=PatternHistory)
    latest_suggestions: list[PlaybookSuggestion] = field(default_factory=list)
    issued_suggestions: dict[str, PlaybookSuggestion] = field(default_factory=dict)
    suggestion_usage: list[SuggestionUsage] = field(default_factory=list)
    idempotent_responses: dict[str, TurnResponse] = field(default_factory=dict)

    # ── Turn ingestion ─────────────────────────────────────────────────

    def add_turn(self, event: TranscriptEvent) -> TurnResult | None:
        """
        Analyze one utterance and append it as a message.

        Returns None for interim results and blank text; such turns leave
        the conversation untouched.
        """
        if not event.is_final or not event.text.strip():
            return None

        utterance = Utterance(
            text=event.text.strip(),
            speaker=event.speaker,
            confidence=event.confidence,
            timestamp=event.timestamp if event.timestamp is not None else time.time(),
        )
        previous = self.messages[-1].speaker if self.messages else None
        processed = process_utterance(utterance, previous_speaker=previous)
        if processed is None:
            return None

        message = Message(
            id=uuid.uuid4().hex,
            content=utterance.text,
            speaker=processed.speaker,
            timestamp=utterance.timestamp,
            detected_patterns=processed.patterns,
            ai_analysis=generate_ai_analysis(utterance.text, processed.speaker),
            confidence=processed.confidence,
        )
        self.messages.append(message)

        analysis = self.pattern_history.analyze_message(
            message, self.messages, patterns=message.detected_patterns
        )
        stage = infer_stage(self.messages)
        suggestions = playbook_engine.generate_suggestions(
            message.detected_patterns,
            stage.current_stage,
            [m.content for m in self.messages],
        )

        objections = [p for p in message.detected_patterns if p.type == PatternType.OBJECTION]
        rebuttals = (
            playbook_engine.generate_objection_response(objections[0]) if objections else []
        )

        self.latest_suggestions = suggestions
        for suggestion in [*suggestions, *rebuttals]:
            self.issued_suggestions[suggestion.id] = suggestion

        return TurnResult(
            message=message,
            analysis=analysis,
            stage=stage,
            suggestions=suggestions,
            objection_responses=rebuttals,
        )

    # ── Analysis ───────────────────────────────────────────────────────

    def analyze(self) -> ConversationAnalysisReport:
        return conversation_analyzer.analyze_conversation(self.messages)

    def effectiveness(self) -> dict[str, float]:
        return calculate_playbook_effectiveness(
            self.issued_suggestions.values(), self.suggestion_usage
        )

    # ── Serialization ──────────────────────────────────────────────────

    def info(self) -> ConversationInfo:
        return ConversationInfo(
            conversation_id=self.conversation_id,
            title=self.title,
            created_at=self.created_at,
            message_count=len(self.messages),
            current_stage=infer_stage(self.messages).current_stage if self.messages else None,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize conversation data for API responses."""
        return {
            **self.info().model_dump(),
            "messages": [m.model_dump() for m in self.messages],
        }


class ConversationStore:
    """
    Async-safe in-memory store for conversations.

    Each conversation is keyed by its ``conversation_id``. An asyncio lock
    protects concurrent access.
    """

    def __init__(self) -> None:
        self._conversations: dict[str, ConversationData] = {}
        self._lock = asyncio.Lock()

    async def create_conversation(
        self, title: str = "Untitled conversation", conversation_id: str | None = None
    ) -> ConversationData:
        """Create a conversation, or return the existing one with that id."""
        async with self._lock:
            conversation_id = conversation_id or uuid.uuid4().hex
            if conversation_id not in self._conversations:
                self._conversations[conversation_id] = ConversationData(
                    conversation_id=conversation_id, title=title
                )
                logger.info("Conversation created | conversation=%s", conversation_id)
            return self._conversations[conversation_id]

    async def get_conversation(self, conversation_id: str) -> ConversationData | None:
        """Retrieve a conversation, or None if it doesn't exist."""
        async with self._lock:
            return self._conversations.get(conversation_id)

    async def add_turn(
        self, conversation_id: str, event: TranscriptEvent
    ) -> TurnResult | None:
        """
        Analyze and store one utterance.

        Returns None when the conversation doesn't exist or the turn was
        blank.
        """
        async with self._lock:
            conversation = self._conversations.get(conversation_id)
            if conversation is None:
                return None
            result = conversation.add_turn(event)

        if result is None:
            logger.info("Turn skipped (interim or blank) | conversation=%s", conversation_id)
        else:
            logger.info(
                "Turn analyzed | conversation=%s | speaker=%s | patterns=%d | stage=%s",
                conversation_id,
                result.message.speaker.value,
                len(result.message.detected_patterns),
                result.stage.current_stage,
            )
        return result

    async def run_analysis(self, conversation_id: str) -> ConversationAnalysisReport | None:
        """Run the conversation analyzer, or None for unknown conversations."""
        async with self._lock:
            conversation = self._conversations.get(conversation_id)
            if conversation is None:
                return None
            return conversation.analyze()

    async def record_usage(
        self, conversation_id: str, usage: list[SuggestionUsage]
    ) -> int | None:
        """Append suggestion usage records; returns how many were stored."""
        async with self._lock:
            conversation = self._conversations.get(conversation_id)
            if conversation is None:
                return None
            conversation.suggestion_usage.extend(usage)
            return len(usage)

    async def list_conversations(self) -> list[ConversationInfo]:
        async with self._lock:
            return [c.info() for c in self._conversations.values()]

    async def get_stats(self) -> dict[str, Any]:
        """Return summary statistics across all conversations."""
        async with self._lock:
            return {
                "active_conversations": len(self._conversations),
                "total_messages": sum(
                    len(c.messages) for c in self._conversations.values()
                ),
            }

    async def clear(self) -> None:
        async with self._lock:
            self._conversations.clear()


# ── Module-level singleton ────────────────────────────────────────────
# Imported by the routers and any other module that needs access.
conversation_store = ConversationStore()
