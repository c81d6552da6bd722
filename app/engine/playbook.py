"""
Unified playbook suggestion engine.

Combines four sales methodologies (Sandler, SPIN, MEDDIC, Challenger) into
one ranked list of coaching suggestions.

Design:
- Frameworks and techniques are static data loaded once at import.
- Each technique gets a relevance score from its trigger words appearing
  in the recent transcript and in the detected patterns.
- Techniques scoring above the cutoff contribute one suggestion per
  question template and one per response template; responses are
  trusted a little less.
- The union across frameworks is sorted by confidence and capped at six.
"""

import logging
import uuid
from collections.abc import Iterable, Sequence

from app.models.patterns import DetectedPattern
from app.models.playbook import (
    FrameworkName,
    PlaybookFramework,
    PlaybookSuggestion,
    PlaybookTechnique,
    SuggestionType,
    SuggestionUsage,
)

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 6
RELEVANCE_CUTOFF = 0.3
RESPONSE_DISCOUNT = 0.9
OBJECTION_HANDLER_CONFIDENCE = 0.8


# ── Framework Definitions ──────────────────────────────────────────────

SANDLER = PlaybookFramework(
    id="sandler",
    name=FrameworkName.SANDLER,
    title="Sandler Selling System",
    description="Pain-focused selling methodology",
    stages=(
        "bonding_rapport", "up_front_contract", "pain", "budget",
        "decision", "fulfillment", "post_sell",
    ),
    techniques={
        "pain_funnel": PlaybookTechnique(
            name="Pain Funnel",
            description="Systematic approach to uncovering pain",
            questions=(
                "Can you tell me more about that?",
                "How long has this been a problem?",
                "What have you tried to do about it?",
                "How much is this costing you?",
                "What happens if you don't fix this?",
            ),
            responses=(
                "That sounds frustrating. Can you help me understand the impact?",
                "I can see why that would be concerning. What's driving that issue?",
                "It sounds like this is really affecting your team. How so?",
            ),
            triggers=("problem", "issue", "challenge", "struggling", "difficult"),
            stage="pain",
        ),
        "upfront_contract": PlaybookTechnique(
            name="Up-Front Contract",
            description="Setting clear expectations",
            questions=(
                "What would you like to accomplish in our time together?",
                "How will you know if this meeting was worthwhile?",
                "What questions do you have for me?",
            ),
            responses=(
                "Let me suggest an agenda for our time together...",
                "Here's what I'd like to cover, does that work for you?",
            ),
            triggers=("meeting", "agenda", "time", "expectations"),
            stage="up_front_contract",
        ),
    },
)

SPIN = PlaybookFramework(
    id="spin",
    name=FrameworkName.SPIN,
    title="SPIN Selling",
    description="Situation, Problem, Implication, Need-payoff methodology",
    stages=("situation", "problem", "implication", "need_payoff", "close"),
    techniques={
        "situation_questions": PlaybookTechnique(
            name="Situation Questions",
            description="Understanding current state",
            questions=(
                "Can you walk me through your current process?",
                "How are you handling this today?",
                "What tools are you currently using?",
                "Who's involved in this process?",
            ),
            responses=(
                "That's helpful context. Let me understand...",
                "I see. Can you tell me more about how that works?",
            ),
            triggers=("current", "process", "workflow", "today", "now"),
            stage="situation",
        ),
        "problem_questions": PlaybookTechnique(
            name="Problem Questions",
            description="Identifying difficulties and dissatisfactions",
            questions=(
                "What challenges are you facing with that approach?",
                "Are you satisfied with how that's working?",
                "What problems does that create?",
                "Where do you see gaps in your current solution?",
            ),
            responses=(
                "That does sound problematic. How often does that happen?",
                "I can see how that would be frustrating.",
            ),
            triggers=("problem", "challenge", "issue", "difficulty", "gap"),
            stage="problem",
        ),
        "implication_questions": PlaybookTechnique(
            name="Implication Questions",
            description="Exploring consequences of problems",
            questions=(
                "What impact does that have on your team?",
                "How does that affect your customers?",
                "What happens if this continues?",
                "How much time does that waste?",
            ),
            responses=(
                "That's a significant impact. Have you calculated the cost?",
                "It sounds like this is affecting multiple areas.",
            ),
            triggers=("impact", "affect", "consequence", "result", "outcome"),
            stage="implication",
        ),
        "need_payoff_questions": PlaybookTechnique(
            name="Need-Payoff Questions",
            description="Getting buyer to state benefits",
            questions=(
                "How would solving this help your team?",
                "What would be the value of fixing this?",
                "How important is it to resolve this?",
                "What would success look like?",
            ),
            responses=(
                "That's exactly what our solution provides.",
                "Those are the benefits our clients typically see.",
            ),
            triggers=("value", "benefit", "help", "solve", "success"),
            stage="need_payoff",
        ),
    },
)

MEDDIC = PlaybookFramework(
    id="meddic",
    name=FrameworkName.MEDDIC,
    title="MEDDIC",
    description=(
        "Metrics, Economic buyer, Decision criteria, Decision process, "
        "Identify pain, Champion"
    ),
    stages=(
        "metrics", "economic_buyer", "decision_criteria",
        "decision_process", "identify_pain", "champion",
    ),
    techniques={
        "metrics_qualification": PlaybookTechnique(
            name="Metrics Qualification",
            description="Quantifying the opportunity",
            questions=(
                "What metrics are you trying to improve?",
                "How do you measure success in this area?",
                "What's the current baseline?",
                "What's your target improvement?",
            ),
            responses=(
                "Those are important metrics. Let's explore how we can impact them.",
                "I understand the measurement challenge.",
            ),
            triggers=("metrics", "measure", "kpi", "target", "goal"),
            stage="metrics",
        ),
        "economic_buyer": PlaybookTechnique(
            name="Economic Buyer Identification",
            description="Finding who controls the budget",
            questions=(
                "Who typically makes decisions about investments like this?",
                "Who controls the budget for this initiative?",
                "Who would need to approve a purchase?",
                "Who else would be involved in this decision?",
            ),
            responses=(
                "It's important we involve the right stakeholders.",
                "I'd like to understand the decision-making process.",
            ),
            triggers=("budget", "decision", "approve", "stakeholder", "authority"),
            stage="economic_buyer",
        ),
    },
)

CHALLENGER = PlaybookFramework(
    id="challenger",
    name=FrameworkName.CHALLENGER,
    title="Challenger Sale",
    description="Teach, Tailor, Take control approach",
    stages=("teach", "tailor", "take_control"),
    techniques={
        "commercial_teaching": PlaybookTechnique(
            name="Commercial Teaching",
            description="Teaching insights that lead to your solution",
            questions=(
                "Have you considered the hidden costs of your current approach?",
                "Are you aware of how industry leaders are handling this?",
                "What if I told you there's a better way?",
            ),
            responses=(
                "Let me share what we're seeing across the industry...",
                "Here's an insight that might surprise you...",
                "Most companies don't realize that...",
            ),
            triggers=("insight", "industry", "trend", "best practice", "research"),
            stage="teach",
        ),
        "tailored_message": PlaybookTechnique(
            name="Tailored Messaging",
            description="Customizing insights to specific stakeholder",
            questions=(
                "From your perspective as [role], how does this impact you?",
                "What matters most to you in this area?",
                "How would your team benefit from this?",
            ),
            responses=(
                "For someone in your position, this typically means...",
                "Given your role, you're probably concerned about...",
            ),
            triggers=("role", "position", "responsibility", "concern", "priority"),
            stage="tailor",
        ),
    },
)

FRAMEWORKS: dict[str, PlaybookFramework] = {
    framework.id: framework for framework in (SANDLER, SPIN, MEDDIC, CHALLENGER)
}

# Canned rebuttals keyed by objection subtype
OBJECTION_RESPONSES: dict[str, tuple[str, str, str]] = {
    "budget": (
        "I understand budget is a concern. Can you help me understand what you're comparing this investment to?",
        "What would need to happen for this to fit within your budget?",
        "Let's explore the cost of not solving this problem.",
    ),
    "timing": (
        "I appreciate you being upfront about timing. What would need to change for this to become a priority?",
        "Help me understand what's driving the current timeline.",
        "What happens if you wait to address this?",
    ),
    "authority": (
        "That makes sense. Who else would be involved in a decision like this?",
        "What information would be helpful for that conversation?",
        "How do decisions like this typically get made at your company?",
    ),
    "trust": (
        "I can understand that concern. What would help you feel more confident?",
        "What questions can I answer to address that hesitation?",
        "Would it be helpful to speak with some of our current clients?",
    ),
    "need": (
        "It sounds like your current solution is working well. What would make you consider a change?",
        "Help me understand what's working about your current approach.",
        "What would an ideal solution look like for you?",
    ),
}
DEFAULT_OBJECTION_CONTEXT = "trust"


# ── Engine ─────────────────────────────────────────────────────────────

def _batch_id() -> str:
    """Short id shared by every suggestion from one generation call."""
    return uuid.uuid4().hex[:8]


class PlaybookEngine:
    """
    Ranks playbook techniques against the live conversation.

    Holds a read-only view of the framework table; one instance can serve
    every conversation.
    """

    def __init__(self, frameworks: dict[str, PlaybookFramework] | None = None) -> None:
        self.frameworks = frameworks if frameworks is not None else FRAMEWORKS

    def generate_suggestions(
        self,
        patterns: Sequence[DetectedPattern],
        current_stage: str,
        context_texts: Sequence[str],
    ) -> list[PlaybookSuggestion]:
        """
        Produce the top coaching suggestions for the current turn.

        Args:
            patterns: Patterns detected in the latest utterance(s).
            current_stage: Inferred conversation stage id.
            context_texts: Recent transcript lines used for trigger matching.

        Returns:
            At most six suggestions, highest confidence first.
        """
        context_text = " ".join(context_texts).lower()
        batch = _batch_id()
        suggestions: list[PlaybookSuggestion] = []

        for framework in self.frameworks.values():
            for key, technique in framework.techniques.items():
                relevance, triggered_by = self._relevance(technique, patterns, context_text)
                if relevance <= RELEVANCE_CUTOFF:
                    continue
                suggestions.extend(
                    self._technique_suggestions(
                        framework, key, technique, relevance, triggered_by, batch
                    )
                )

        ranked = sorted(suggestions, key=lambda s: s.confidence, reverse=True)[:MAX_SUGGESTIONS]

        logger.info(
            "Playbook suggestions generated | stage=%s | patterns=%d | candidates=%d | returned=%d",
            current_stage,
            len(patterns),
            len(suggestions),
            len(ranked),
        )
        return ranked

    @staticmethod
    def _relevance(
        technique: PlaybookTechnique,
        patterns: Sequence[DetectedPattern],
        context_text: str,
    ) -> tuple[float, list[str]]:
        relevance = 0.1

        for trigger in technique.triggers:
            if trigger in context_text:
                relevance += 0.2

        triggered_by: list[str] = []
        for pattern in patterns:
            description = pattern.description.lower()
            keywords = [k.lower() for k in pattern.keywords]
            if any(
                trigger in description or any(trigger in k for k in keywords)
                for trigger in technique.triggers
            ):
                relevance += 0.3 * pattern.confidence
                if pattern.type.value not in triggered_by:
                    triggered_by.append(pattern.type.value)

        if any(p.confidence > 0.8 for p in patterns):
            relevance += 0.2

        # Rounded so 0.1 + 0.2 compares equal to the 0.3 cutoff
        return round(min(relevance, 1.0), 6), triggered_by

    @staticmethod
    def _technique_suggestions(
        framework: PlaybookFramework,
        key: str,
        technique: PlaybookTechnique,
        relevance: float,
        triggered_by: list[str],
        batch: str,
    ) -> list[PlaybookSuggestion]:
        if triggered_by:
            reasoning = f"Based on detected {', '.join(triggered_by)} patterns"
        else:
            reasoning = f"Based on conversation context matching {technique.name} triggers"

        suggestions = [
            PlaybookSuggestion(
                id=f"{framework.id}-{key}-q-{index}-{batch}",
                framework=framework.name,
                type=SuggestionType.QUESTION,
                content=question,
                confidence=relevance,
                context=technique.description,
                stage=technique.stage,
                reasoning=reasoning,
            )
            for index, question in enumerate(technique.questions)
        ]
        suggestions.extend(
            PlaybookSuggestion(
                id=f"{framework.id}-{key}-r-{index}-{batch}",
                framework=framework.name,
                type=SuggestionType.RESPONSE,
                content=response,
                confidence=relevance * RESPONSE_DISCOUNT,
                context=technique.description,
                stage=technique.stage,
                reasoning=reasoning,
            )
            for index, response in enumerate(technique.responses)
        )
        return suggestions

    def generate_objection_response(self, objection: DetectedPattern) -> list[PlaybookSuggestion]:
        """
        Return three canned rebuttals for an objection.

        Keyed by the objection's context; unrecognized contexts fall back to
        the trust set.
        """
        context = objection.context or "general"
        responses = OBJECTION_RESPONSES.get(context, OBJECTION_RESPONSES[DEFAULT_OBJECTION_CONTEXT])
        batch = _batch_id()

        return [
            PlaybookSuggestion(
                id=f"objection-{context}-{index}-{batch}",
                framework=FrameworkName.SANDLER,
                type=SuggestionType.OBJECTION_HANDLER,
                content=response,
                confidence=OBJECTION_HANDLER_CONFIDENCE,
                context=f"Handling {context} objection",
                stage="objection_handling",
                reasoning=f"Response to {objection.description}",
            )
            for index, response in enumerate(responses)
        ]

    def get_framework(self, framework_id: str) -> PlaybookFramework | None:
        return self.frameworks.get(framework_id)

    def get_framework_by_name(self, name: str) -> PlaybookFramework | None:
        """Look up a framework by short name (``SPIN``) or title (``SPIN Selling``)."""
        for framework in self.frameworks.values():
            if name in (framework.name.value, framework.title):
                return framework
        return None

    def all_frameworks(self) -> list[PlaybookFramework]:
        return list(self.frameworks.values())


def calculate_playbook_effectiveness(
    suggestions: Iterable[PlaybookSuggestion],
    usage: Iterable[SuggestionUsage],
) -> dict[str, float]:
    """
    Score each framework by reported suggestion outcomes.

    Positive outcomes add 1, negative subtract 0.5, neutral add 0.1.
    Suggestions without usage data are ignored.
    """
    usage_by_id = {}
    for record in usage:
        usage_by_id.setdefault(record.suggestion_id, record)

    outcome_weights = {"positive": 1.0, "negative": -0.5, "neutral": 0.1}
    effectiveness: dict[str, float] = {}

    for suggestion in suggestions:
        record = usage_by_id.get(suggestion.id)
        if record is None:
            continue
        framework = suggestion.framework.value
        effectiveness[framework] = effectiveness.get(framework, 0.0) + outcome_weights[record.outcome]

    return effectiveness


# ── Module-level singleton ────────────────────────────────────────────
playbook_engine = PlaybookEngine()
