"""
Conversation management and turn ingestion endpoints.

Accepts finalized utterances from a voice or text front-end, analyzes them
synchronously, and returns the per-turn coaching result. Supports an
optional X-Idempotency-Key header so front-ends can safely retry.
"""

import logging
from typing import Any

from fastapi import APIRouter, Header, HTTPException, status

from app.models.api import ConversationCreate, ConversationInfo, TranscriptEvent, TurnResponse
from app.models.conversation import Message
from app.store.conversation_store import ConversationData, conversation_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/conversations", tags=["Conversations"])


# ── Helpers ────────────────────────────────────────────────────────────

async def _get_conversation_or_404(conversation_id: str) -> ConversationData:
    """Retrieve a conversation or raise 404."""
    conversation = await conversation_store.get_conversation(conversation_id)
    if conversation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Conversation '{conversation_id}' not found.",
        )
    return conversation


# ── Conversations ──────────────────────────────────────────────────────

@router.post(
    "",
    response_model=ConversationInfo,
    status_code=status.HTTP_201_CREATED,
    summary="Start a conversation",
)
async def create_conversation(body: ConversationCreate) -> ConversationInfo:
    conversation = await conversation_store.create_conversation(title=body.title)
    return conversation.info()


@router.get(
    "",
    summary="List active conversations",
    description="Returns every in-memory conversation and aggregate stats.",
)
async def list_conversations() -> dict[str, Any]:
    conversations = await conversation_store.list_conversations()
    stats = await conversation_store.get_stats()
    return {
        "conversations": [c.model_dump() for c in conversations],
        **stats,
    }


@router.get(
    "/{conversation_id}",
    summary="Get conversation",
    description="Returns conversation metadata and all analyzed messages.",
)
async def get_conversation(conversation_id: str) -> dict[str, Any]:
    conversation = await _get_conversation_or_404(conversation_id)
    return conversation.to_dict()


# ── Messages ───────────────────────────────────────────────────────────

@router.post(
    "/{conversation_id}/messages",
    response_model=TurnResponse,
    status_code=status.HTTP_200_OK,
    summary="Submit an utterance",
    description=(
        "Attributes the utterance to a speaker, detects patterns, updates the "
        "stage, and returns fresh suggestions. Interim or blank utterances "
        "are acknowledged with status 'skipped'."
    ),
)
async def post_message(
    conversation_id: str,
    event: TranscriptEvent,
    x_idempotency_key: str | None = Header(default=None),
) -> TurnResponse:
    """
    Handle one transcript event.

    1. Ensure the conversation exists
    2. Return the cached response for a key already seen on this conversation
    3. Analyze the utterance (no-op for interim or blank text)
    4. Return the turn result
    """
    conversation = await _get_conversation_or_404(conversation_id)

    # Keys are scoped to the conversation they were first sent to
    if x_idempotency_key and x_idempotency_key in conversation.idempotent_responses:
        logger.info(
            "Idempotent replay | key=%s | conversation=%s",
            x_idempotency_key,
            conversation_id,
        )
        return conversation.idempotent_responses[x_idempotency_key]

    turn = await conversation_store.add_turn(conversation_id, event)

    response = TurnResponse(
        status="ok" if turn is not None else "skipped",
        conversation_id=conversation_id,
        turn=turn,
    )

    if x_idempotency_key:
        conversation.idempotent_responses[x_idempotency_key] = response

    return response


@router.get(
    "/{conversation_id}/messages",
    response_model=list[Message],
    summary="List messages",
    description="Returns the analyzed messages of a conversation in order.",
)
async def list_messages(conversation_id: str) -> list[Message]:
    conversation = await _get_conversation_or_404(conversation_id)
    return list(conversation.messages)
