"""Tests for the in-memory conversation store and per-turn pipeline."""

from __future__ import annotations

import pytest

from app.models.api import TranscriptEvent
from app.models.patterns import PatternType, Speaker
from app.models.playbook import SuggestionUsage
from app.store.conversation_store import ConversationStore

OBJECTION_TEXT = "This is too expensive for our budget"
DISCOVERY_TEXT = "Could you tell me about your team's current workflow for client reporting today?"


class TestConversationLifecycle:
    async def test_create_and_get(self, store: ConversationStore) -> None:
        created = await store.create_conversation("Acme intro call")
        fetched = await store.get_conversation(created.conversation_id)

        assert fetched is created
        assert fetched.title == "Acme intro call"
        assert fetched.messages == []

    async def test_create_with_existing_id_returns_it(self, store: ConversationStore) -> None:
        first = await store.create_conversation("one", conversation_id="abc")
        second = await store.create_conversation("two", conversation_id="abc")

        assert second is first
        assert second.title == "one"

    async def test_unknown_conversation(self, store: ConversationStore) -> None:
        assert await store.get_conversation("missing") is None
        assert await store.add_turn("missing", TranscriptEvent(text=OBJECTION_TEXT)) is None
        assert await store.run_analysis("missing") is None
        assert await store.record_usage("missing", []) is None

    async def test_stats_list_and_clear(self, store: ConversationStore) -> None:
        conversation = await store.create_conversation()
        await store.add_turn(conversation.conversation_id, TranscriptEvent(text=OBJECTION_TEXT))

        stats = await store.get_stats()
        assert stats == {"active_conversations": 1, "total_messages": 1}

        listed = await store.list_conversations()
        assert [c.conversation_id for c in listed] == [conversation.conversation_id]
        assert listed[0].message_count == 1

        await store.clear()
        assert await store.get_stats() == {"active_conversations": 0, "total_messages": 0}


class TestAddTurn:
    async def test_interim_turn_is_skipped(self, store: ConversationStore) -> None:
        conversation = await store.create_conversation()
        result = await store.add_turn(
            conversation.conversation_id, TranscriptEvent(text=OBJECTION_TEXT, is_final=False)
        )

        assert result is None
        assert conversation.messages == []

    @pytest.mark.parametrize("text", ["", "   ", "\n"])
    async def test_blank_turn_is_skipped(self, store: ConversationStore, text: str) -> None:
        conversation = await store.create_conversation()
        assert await store.add_turn(conversation.conversation_id, TranscriptEvent(text=text)) is None
        assert len(conversation.pattern_history) == 0

    async def test_objection_turn(self, store: ConversationStore) -> None:
        conversation = await store.create_conversation()
        result = await store.add_turn(
            conversation.conversation_id,
            TranscriptEvent(text=OBJECTION_TEXT, speaker=Speaker.PROSPECT, confidence=0.92),
        )

        assert result is not None
        assert result.message.speaker == Speaker.PROSPECT
        assert result.message.confidence == 0.92
        assert result.message.ai_analysis is not None
        assert result.message.detected_patterns[0].type == PatternType.OBJECTION
        assert result.analysis.summary.objections == 1
        assert result.stage.current_stage == "objection_handling"
        assert len(result.objection_responses) == 3
        assert all(r.id.startswith("objection-budget-") for r in result.objection_responses)
        assert len(result.suggestions) <= 6
        assert all(r.id in conversation.issued_suggestions for r in result.objection_responses)
        assert result.message.id in conversation.pattern_history

    async def test_text_is_trimmed(self, store: ConversationStore) -> None:
        conversation = await store.create_conversation()
        result = await store.add_turn(
            conversation.conversation_id, TranscriptEvent(text=f"  {OBJECTION_TEXT}  ")
        )
        assert result is not None
        assert result.message.content == OBJECTION_TEXT

    async def test_speaker_is_inferred(self, store: ConversationStore) -> None:
        conversation = await store.create_conversation()
        result = await store.add_turn(
            conversation.conversation_id,
            TranscriptEvent(text="Can you tell me about your current process?"),
        )
        assert result is not None
        assert result.message.speaker == Speaker.REP

    async def test_short_reply_keeps_previous_speaker(self, store: ConversationStore) -> None:
        conversation = await store.create_conversation()
        await store.add_turn(
            conversation.conversation_id,
            TranscriptEvent(text="We are struggling with a problem in our reporting"),
        )
        result = await store.add_turn(conversation.conversation_id, TranscriptEvent(text="yes"))

        assert result is not None
        assert result.message.speaker == Speaker.PROSPECT

    async def test_histories_are_isolated(self, store: ConversationStore) -> None:
        first = await store.create_conversation("first")
        second = await store.create_conversation("second")

        await store.add_turn(first.conversation_id, TranscriptEvent(text=OBJECTION_TEXT))
        await store.add_turn(first.conversation_id, TranscriptEvent(text=DISCOVERY_TEXT))
        await store.add_turn(second.conversation_id, TranscriptEvent(text=OBJECTION_TEXT))

        assert len(first.pattern_history) == 2
        assert len(second.pattern_history) == 1
        assert all(m.id not in second.pattern_history for m in first.messages)


class TestAnalysisAndFeedback:
    async def test_run_analysis(self, store: ConversationStore) -> None:
        conversation = await store.create_conversation()
        empty = await store.run_analysis(conversation.conversation_id)
        assert empty is not None and empty.conversation_health.score == 0.5

        await store.add_turn(
            conversation.conversation_id,
            TranscriptEvent(text=OBJECTION_TEXT, speaker=Speaker.PROSPECT),
        )
        report = await store.run_analysis(conversation.conversation_id)

        assert report is not None
        assert report.pattern_summary.total_patterns == 3
        assert report.stage_progression.current_stage == "objection_handling"

    async def test_usage_feeds_effectiveness(self, store: ConversationStore) -> None:
        conversation = await store.create_conversation()
        result = await store.add_turn(
            conversation.conversation_id,
            TranscriptEvent(text=DISCOVERY_TEXT, speaker=Speaker.REP),
        )
        assert result is not None and result.suggestions

        top = result.suggestions[0]
        recorded = await store.record_usage(
            conversation.conversation_id,
            [SuggestionUsage(suggestion_id=top.id, outcome="positive")],
        )

        assert recorded == 1
        assert conversation.effectiveness() == {top.framework.value: 1.0}

    async def test_repeated_turns_issue_fresh_suggestions(self, store: ConversationStore) -> None:
        conversation = await store.create_conversation()
        event = TranscriptEvent(text="We are struggling with this problem", speaker=Speaker.PROSPECT)

        first = await store.add_turn(conversation.conversation_id, event)
        second = await store.add_turn(conversation.conversation_id, event)
        assert first is not None and first.suggestions
        assert second is not None and second.suggestions
        assert first.suggestions[0].id != second.suggestions[0].id

        tops = [first.suggestions[0], second.suggestions[0]]
        await store.record_usage(
            conversation.conversation_id,
            [SuggestionUsage(suggestion_id=s.id, outcome="positive") for s in tops],
        )

        expected: dict[str, float] = {}
        for suggestion in tops:
            framework = suggestion.framework.value
            expected[framework] = expected.get(framework, 0.0) + 1.0
        assert conversation.effectiveness() == expected
        assert sum(conversation.effectiveness().values()) == 2.0

    async def test_to_dict(self, store: ConversationStore) -> None:
        conversation = await store.create_conversation("Demo call")
        await store.add_turn(conversation.conversation_id, TranscriptEvent(text=OBJECTION_TEXT))

        data = conversation.to_dict()

        assert data["title"] == "Demo call"
        assert data["message_count"] == 1
        assert data["current_stage"] == "objection_handling"
        assert data["messages"][0]["content"] == OBJECTION_TEXT
