"""
Query Router - keyword-based intent classification for clinician queries.

Decides whether a free-text query is answered from structured patient data,
from clinical knowledge, or from both. Classification is deterministic and
never fails: a query that matches nothing is a valid low-confidence result.
"""
import logging
import re
from typing import List, Optional, Tuple

from .base import Tool, ToolResult
from clinical_assistant.agent.models import AssistantRoute, DataIntent, RouteType

logger = logging.getLogger(__name__)


DATA_CONFIDENCE = 0.95
KNOWLEDGE_CONFIDENCE = 0.8
MIXED_CONFIDENCE = 0.7
FALLBACK_CONFIDENCE = 0.3

# Checked in this order; the first intent that matches wins.
DATA_INTENT_PATTERNS: List[Tuple[DataIntent, re.Pattern]] = [
    (DataIntent.AGE, re.compile(r"\b(edad|años|age|how old)\b")),
    (DataIntent.MRI, re.compile(r"\b(resonancias?|mri|rmn)\b")),
    (DataIntent.TODAY_APPOINTMENTS, re.compile(r"\b(citas?|agenda|appointments?)\b")),
    (DataIntent.PENDING_NOTES, re.compile(r"\b(notas?|pendientes?|pending notes?)\b")),
]

# Vocabulary about treatments, symptoms and exercise, not tied to one record.
# "terapia" also matches as a suffix (fisioterapia, electroterapia).
KNOWLEDGE_PATTERN = re.compile(
    r"\b("
    r"medicamentos?|medicinas?|dosis|tratamientos?|diagn[oó]sticos?|s[ií]ntomas?|"
    r"dolor(es)?|\w*terapias?|ejercicios?|recomiendas|recomiendo|recomendar|"
    r"recomendaci[oó]n(es)?"
    r")\b"
)


def match_data_intent(query: str) -> Optional[DataIntent]:
    """Return the first data intent whose keywords appear in a lowercased query."""
    for intent, pattern in DATA_INTENT_PATTERNS:
        if pattern.search(query):
            return intent
    return None


def route_query(text: str) -> AssistantRoute:
    """
    Classify a clinician query.

    - data intent only      → type "data", that intent, 0.95
    - knowledge only        → type "llm", 0.8
    - data intent + knowledge → type "both", that intent, 0.7
    - nothing               → type "data", no intent, 0.3

    Args:
        text: Raw query as typed by the clinician

    Returns:
        AssistantRoute (never raises)
    """
    query = (text or "").lower()

    data_intent = match_data_intent(query)
    has_knowledge = KNOWLEDGE_PATTERN.search(query) is not None

    if data_intent and has_knowledge:
        route = AssistantRoute(type=RouteType.BOTH, data_intent=data_intent, confidence=MIXED_CONFIDENCE)
    elif data_intent:
        route = AssistantRoute(type=RouteType.DATA, data_intent=data_intent, confidence=DATA_CONFIDENCE)
    elif has_knowledge:
        route = AssistantRoute(type=RouteType.LLM, confidence=KNOWLEDGE_CONFIDENCE)
    else:
        # TODO: return RouteType.FREE here once the UI renders free-form answers
        route = AssistantRoute(type=RouteType.DATA, confidence=FALLBACK_CONFIDENCE)

    logger.debug("Routed query as %s (intent=%s, confidence=%.2f)", route.type, route.data_intent, route.confidence)
    return route


class QueryRouterTool(Tool):
    """Classifies clinician queries into data / knowledge / mixed routes."""

    @property
    def name(self) -> str:
        return "query_router"

    @property
    def description(self) -> str:
        return (
            "Classifies a clinician query as a structured data lookup (age, MRI, "
            "today's appointments, pending notes), a clinical knowledge question, "
            "or both, with a confidence value."
        )

    def route(self, text: str) -> AssistantRoute:
        return route_query(text)

    async def execute(self, text: str) -> ToolResult:
        route = self.route(text)
        return ToolResult.ok(data=route, route_type=route.type, confidence=route.confidence)
