"""
Coaching API router.

Endpoints for conversation analysis, stage tracking, pattern views,
playbook suggestions, and objection rebuttals. Separated from the
conversation router for cleaner concern boundaries.
"""

import asyncio
import json
import logging
from typing import Any

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Query,
    WebSocket,
    WebSocketDisconnect,
    status,
)

from app.config import Settings, get_settings
from app.engine.analyzer import calculate_conversation_metrics
from app.engine.pattern_engine import (
    group_patterns_by_context,
    high_confidence_patterns,
    pattern_insights,
    summarize_conversation_patterns,
)
from app.engine.playbook import playbook_engine
from app.engine.stages import get_stage_recommendations, infer_stage, stage_snapshot
from app.models.api import FeedbackResponse, ObjectionRequest
from app.models.conversation import (
    ConversationAnalysisReport,
    ConversationMetrics,
    StageRecommendations,
)
from app.models.patterns import DetectedPattern, PatternType
from app.models.playbook import PlaybookFramework, PlaybookSuggestion, SuggestionUsage
from app.store.conversation_store import ConversationData, conversation_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/coaching", tags=["Coaching"])


# ── Helpers ────────────────────────────────────────────────────────────

async def _get_conversation_or_404(conversation_id: str) -> ConversationData:
    """Ensure the conversation exists or raise 404."""
    conversation = await conversation_store.get_conversation(conversation_id)
    if conversation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Conversation '{conversation_id}' not found.",
        )
    return conversation


# ── Static playbook data ───────────────────────────────────────────────

@router.get(
    "/playbooks",
    response_model=list[PlaybookFramework],
    summary="List playbook frameworks",
)
async def list_playbooks() -> list[PlaybookFramework]:
    return playbook_engine.all_frameworks()


@router.get(
    "/stages/{stage_id}",
    response_model=StageRecommendations,
    summary="Get stage recommendations",
    description="Objectives, key questions, and success criteria. Unknown stages get a generic list.",
)
async def get_stage_guidance(stage_id: str) -> StageRecommendations:
    return get_stage_recommendations(stage_id)


# ── Per-conversation analysis ──────────────────────────────────────────

@router.get(
    "/{conversation_id}/analysis",
    response_model=ConversationAnalysisReport,
    summary="Analyze a conversation",
)
async def get_analysis(conversation_id: str) -> ConversationAnalysisReport:
    await _get_conversation_or_404(conversation_id)
    return await conversation_store.run_analysis(conversation_id)


@router.get(
    "/{conversation_id}/stage",
    summary="Get stage progression",
    description="Current stage, progress, next stage, confidence, and the full stage list.",
)
async def get_stage(conversation_id: str) -> dict[str, Any]:
    conversation = await _get_conversation_or_404(conversation_id)
    progression = infer_stage(conversation.messages)
    return {
        "conversation_id": conversation_id,
        "progression": progression.model_dump(),
        "stages": [s.model_dump() for s in stage_snapshot(progression)],
        "recommendations": get_stage_recommendations(progression.current_stage).model_dump(),
    }


@router.get(
    "/{conversation_id}/suggestions",
    response_model=list[PlaybookSuggestion],
    summary="Get latest playbook suggestions",
    description="Top suggestions from the most recent turn (at most six).",
)
async def get_suggestions(conversation_id: str) -> list[PlaybookSuggestion]:
    conversation = await _get_conversation_or_404(conversation_id)
    return list(conversation.latest_suggestions)


@router.get(
    "/{conversation_id}/patterns",
    summary="Get detected patterns",
    description="All detected patterns, optionally filtered by type and confidence.",
)
async def get_patterns(
    conversation_id: str,
    type: PatternType | None = Query(
        default=None,
        description="Filter by pattern type (e.g. objection, buying_signal).",
    ),
    min_confidence: float = Query(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Minimum confidence threshold (0.0–1.0).",
    ),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    conversation = await _get_conversation_or_404(conversation_id)

    patterns: list[DetectedPattern] = [
        p for m in conversation.messages for p in m.detected_patterns
    ]
    if type is not None:
        patterns = [p for p in patterns if p.type == type]
    if min_confidence > 0.0:
        patterns = [p for p in patterns if p.confidence >= min_confidence]

    return {
        "conversation_id": conversation_id,
        "total_patterns": len(patterns),
        "high_confidence": len(
            high_confidence_patterns(patterns, settings.high_confidence_threshold)
        ),
        "by_context": {
            context: [p.model_dump() for p in group]
            for context, group in group_patterns_by_context(patterns).items()
        },
        "insights": pattern_insights(patterns).model_dump(),
    }


@router.get(
    "/{conversation_id}/patterns/summary",
    summary="Get pattern analytics",
    description="Pattern totals by type, confidence bands, and per-message timeline.",
)
async def get_pattern_summary(conversation_id: str) -> dict[str, Any]:
    conversation = await _get_conversation_or_404(conversation_id)
    stats = summarize_conversation_patterns(conversation.messages)
    return {"conversation_id": conversation_id, **stats.model_dump()}


@router.get(
    "/{conversation_id}/metrics",
    response_model=ConversationMetrics,
    summary="Get conversation metrics",
)
async def get_metrics(conversation_id: str) -> ConversationMetrics:
    conversation = await _get_conversation_or_404(conversation_id)
    return calculate_conversation_metrics(conversation.messages)


@router.get(
    "/{conversation_id}/coaching",
    summary="Get concise coaching",
    description="High-confidence patterns grouped by type with their rebuttals.",
)
async def get_coaching(
    conversation_id: str,
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """
    Return a compact coaching view for use during a live call.

    Patterns under the configured minimum confidence are dropped;
    objections carry canned rebuttals.
    """
    conversation = await _get_conversation_or_404(conversation_id)

    coaching: dict[str, list[dict[str, Any]]] = {}
    for message in conversation.messages:
        for pattern in message.detected_patterns:
            if pattern.confidence < settings.coaching_min_confidence:
                continue
            entry: dict[str, Any] = {
                "description": pattern.description,
                "context": pattern.context,
                "confidence": pattern.confidence,
            }
            if pattern.type == PatternType.OBJECTION:
                entry["rebuttals"] = [
                    s.content for s in playbook_engine.generate_objection_response(pattern)
                ]
            coaching.setdefault(pattern.type.value, []).append(entry)

    return {
        "conversation_id": conversation_id,
        "coaching": coaching,
        "total_items": sum(len(v) for v in coaching.values()),
    }


@router.post(
    "/{conversation_id}/objections",
    response_model=list[PlaybookSuggestion],
    summary="Get objection rebuttals",
    description="Three canned rebuttals for the supplied objection pattern.",
)
async def post_objection(conversation_id: str, body: ObjectionRequest) -> list[PlaybookSuggestion]:
    await _get_conversation_or_404(conversation_id)
    return playbook_engine.generate_objection_response(body.pattern)


# ── Suggestion feedback ────────────────────────────────────────────────

@router.post(
    "/{conversation_id}/feedback",
    response_model=FeedbackResponse,
    summary="Record suggestion usage",
)
async def post_feedback(conversation_id: str, usage: list[SuggestionUsage]) -> FeedbackResponse:
    await _get_conversation_or_404(conversation_id)
    recorded = await conversation_store.record_usage(conversation_id, usage)
    logger.info("Suggestion feedback | conversation=%s | records=%d", conversation_id, recorded)
    return FeedbackResponse(conversation_id=conversation_id, recorded=recorded)


@router.get(
    "/{conversation_id}/effectiveness",
    summary="Get playbook effectiveness",
    description="Per-framework score from recorded suggestion outcomes.",
)
async def get_effectiveness(conversation_id: str) -> dict[str, Any]:
    conversation = await _get_conversation_or_404(conversation_id)
    return {
        "conversation_id": conversation_id,
        "effectiveness": conversation.effectiveness(),
    }


# ── WebSocket (Real-Time Push) ────────────────────────────────────────

@router.websocket("/{conversation_id}/ws")
async def coaching_websocket(websocket: WebSocket, conversation_id: str):
    """
    WebSocket endpoint for live analysis updates.

    Sends the analysis report on connect and again whenever the message
    count changes. The client can send ``{"action": "refresh"}`` to force a
    fresh report.
    """
    settings = get_settings()
    await websocket.accept()
    logger.info("WebSocket connected | conversation=%s", conversation_id)

    last_count = -1
    force = False

    try:
        while True:
            conversation = await conversation_store.get_conversation(conversation_id)
            if conversation is None:
                await websocket.send_json({"error": "not_found", "conversation_id": conversation_id})
                await websocket.close(code=1008)
                return

            count = len(conversation.messages)
            if force or count != last_count:
                last_count = count
                report = await conversation_store.run_analysis(conversation_id)
                await websocket.send_json(report.model_dump())

            force = False
            try:
                data = await asyncio.wait_for(
                    websocket.receive_text(), timeout=settings.ws_poll_interval
                )
                msg = json.loads(data)
                if isinstance(msg, dict) and msg.get("action") == "refresh":
                    force = True
                    logger.info("WebSocket refresh requested | conversation=%s", conversation_id)
            except asyncio.TimeoutError:
                pass  # No client message; keep polling
            except json.JSONDecodeError:
                logger.warning("WebSocket sent invalid JSON | conversation=%s", conversation_id)

    except WebSocketDisconnect:
        logger.info("WebSocket disconnected | conversation=%s", conversation_id)
    except Exception:
        logger.exception("WebSocket error | conversation=%s", conversation_id)
        await websocket.close(code=1011)
