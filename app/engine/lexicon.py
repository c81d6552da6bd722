"""
Lexical pattern library.

Static, case-insensitive regex rules grouped by pattern category and
subtype, plus the cue sets used for speaker attribution.

Design:
- Each rule is a (category, subtype, compiled pattern) record.
- All matches for an utterance are unioned, so rule order within a
  subtype never changes which patterns are found.
- ``match_terms`` is the single matching primitive shared by the speaker
  classifier and the pattern detector; both score on its result length.
"""

import re
from collections.abc import Iterator
from dataclasses import dataclass

from app.models.patterns import PatternType

# ── Rule Definitions ───────────────────────────────────────────────────


@dataclass(frozen=True)
class PatternRule:
    """A single lexical detection rule."""

    category: PatternType
    subtype: str
    pattern: re.Pattern[str]


def _compile(*sources: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(src, re.IGNORECASE) for src in sources)


OBJECTION_PATTERNS: dict[str, tuple[re.Pattern[str], ...]] = {
    "budget": _compile(
        r"\b(too expensive|costs? too much|can't afford|budget|price|expensive)\b",
        r"\b(cheaper|less expensive|lower cost|reduce price|discount)\b",
        r"\b(roi|return on investment|justify|worth it)\b",
    ),
    "timing": _compile(
        r"\b(not the right time|timing|too busy|later|next quarter|next year)\b",
        r"\b(rush|hurry|urgent|immediate|asap)\b",
        r"\b(delay|postpone|wait|hold off)\b",
    ),
    "authority": _compile(
        r"\b(need to think|discuss|talk to|check with|get approval|boss|manager)\b",
        r"\b(decision maker|authorize|permission|committee|board)\b",
        r"\b(consult|review|consider|evaluate)\b",
    ),
    "trust": _compile(
        r"\b(not sure|don't think|not convinced|hesitant|concerned|skeptical)\b",
        r"\b(proof|evidence|guarantee|references|testimonials)\b",
        r"\b(risk|risky|uncertain|doubt|worry)\b",
    ),
    "need": _compile(
        r"\b(already have|current solution|existing|satisfied with|working fine)\b",
        r"\b(don't need|unnecessary|overkill|too much)\b",
        r"\b(different|alternative|other options)\b",
    ),
}

BUYING_SIGNAL_PATTERNS: dict[str, tuple[re.Pattern[str], ...]] = {
    "interest": _compile(
        r"\b(interested|sounds good|that's helpful|I like|we need|we want)\b",
        r"\b(tell me more|learn more|details|information|explain)\b",
        r"\b(impressive|excellent|perfect|exactly|ideal)\b",
    ),
    "urgency": _compile(
        r"\b(when can|how soon|timeline|start|implement|next steps)\b",
        r"\b(asap|immediately|urgent|rush|quickly)\b",
        r"\b(deadline|by when|schedule|calendar)\b",
    ),
    "budget_inquiry": _compile(
        r"\b(pricing|cost|investment|budget|proposal|quote|price)\b",
        r"\b(how much|what does it cost|pricing structure|payment)\b",
        r"\b(affordable|reasonable|fair price|value)\b",
    ),
    "evaluation": _compile(
        r"\b(demo|trial|test|pilot|proof of concept|sample)\b",
        r"\b(try it|see it|show me|demonstrate|example)\b",
        r"\b(compare|evaluate|assess|review|analyze)\b",
    ),
}

PAIN_POINT_PATTERNS: dict[str, tuple[re.Pattern[str], ...]] = {
    "operational": _compile(
        r"\b(struggling|difficult|problem|issue|challenge|frustrated)\b",
        r"\b(broken|not working|failing|issues|problems)\b",
        r"\b(complicated|complex|confusing|hard to use)\b",
    ),
    "efficiency": _compile(
        r"\b(manual|time.consuming|inefficient|slow|tedious)\b",
        r"\b(automate|streamline|faster|quicker|efficient)\b",
        r"\b(bottleneck|delay|waiting|stuck)\b",
    ),
    "quality": _compile(
        r"\b(errors|mistakes|inaccurate|unreliable|inconsistent)\b",
        r"\b(quality|accuracy|reliable|consistent|correct)\b",
        r"\b(wrong|incorrect|bad data|poor quality)\b",
    ),
    "financial": _compile(
        r"\b(expensive|costly|waste|losing money|budget constraints)\b",
        r"\b(save money|reduce costs|cost effective|cheaper)\b",
        r"\b(revenue|profit|loss|financial impact)\b",
    ),
}

# Map categories to their subtype tables (scan order)
_CATEGORY_MAP: dict[PatternType, dict[str, tuple[re.Pattern[str], ...]]] = {
    PatternType.OBJECTION: OBJECTION_PATTERNS,
    PatternType.BUYING_SIGNAL: BUYING_SIGNAL_PATTERNS,
    PatternType.PAIN_POINT: PAIN_POINT_PATTERNS,
}

_CATEGORY_LABELS: dict[PatternType, str] = {
    PatternType.OBJECTION: "objection",
    PatternType.BUYING_SIGNAL: "signal",
    PatternType.PAIN_POINT: "pain",
}

RULES: tuple[PatternRule, ...] = tuple(
    PatternRule(category=category, subtype=subtype, pattern=pattern)
    for category, subtypes in _CATEGORY_MAP.items()
    for subtype, patterns in subtypes.items()
    for pattern in patterns
)

# ── Speaker Cues ───────────────────────────────────────────────────────

REP_CUES: tuple[re.Pattern[str], ...] = _compile(
    # Questions and discovery
    r"\b(can you|could you|would you|tell me about|walk me through|help me understand|what|how|when|where|why)\b",
    # Professional vocabulary
    r"\b(appreciate|understand|solution|process|workflow|challenge|opportunity|value|benefit)\b",
    # Closing and next steps
    r"\b(next steps|follow up|schedule|meeting|demo|proposal|contract|agreement)\b",
    # Acknowledgment
    r"\b(I see|I understand|that makes sense|absolutely|definitely|certainly)\b",
)

PROSPECT_CUES: tuple[re.Pattern[str], ...] = _compile(
    # Pain vocabulary
    r"\b(struggling|difficult|problem|issue|challenge|frustrated|concerned|worried)\b",
    # Current-state descriptions
    r"\b(currently|right now|at the moment|we have|we use|we're using|our process)\b",
    # Objection vocabulary
    r"\b(expensive|cost|budget|price|not sure|hesitant|concerned about|worried about)\b",
    # Interest and buying vocabulary
    r"\b(interested|sounds good|that's helpful|I like|we need|we want|when can|how soon)\b",
)

# ── Word Lists ─────────────────────────────────────────────────────────

STRONG_INDICATORS: tuple[str, ...] = ("struggling", "problem", "expensive", "interested", "need")

EMOTIONAL_WORDS: tuple[str, ...] = (
    "frustrated", "excited", "worried", "happy", "concerned", "pleased",
)
NEGATIVE_EMOTIONS: frozenset[str] = frozenset({"frustrated", "worried", "concerned"})

# "vs" is a plain substring check
COMPARISON_PHRASES: tuple[str, ...] = ("compared to", "versus", "vs")


# ── Accessors ──────────────────────────────────────────────────────────

def iter_rules(category: PatternType | None = None) -> Iterator[PatternRule]:
    """Yield rules in declaration order, optionally for one category."""
    for rule in RULES:
        if category is None or rule.category == category:
            yield rule


def category_label(category: PatternType) -> str:
    """Short label used in pattern descriptions; unknown -> ``pattern``."""
    return _CATEGORY_LABELS.get(category, "pattern")


def match_terms(pattern: re.Pattern[str], text: str) -> list[str]:
    """
    Return the first match of ``pattern`` in ``text`` as a term list.

    The list holds the whole match followed by every captured group, so a
    rule with one capturing group yields two terms when it matches.
    Returns an empty list when there is no match.
    """
    match = pattern.search(text)
    if match is None:
        return []
    return [match.group(0), *(group for group in match.groups() if group is not None)]
