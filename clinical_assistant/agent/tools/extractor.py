"""
Entity Extraction Tool - deterministic pattern-based extraction from clinical text.

Every extraction rule is a row of a declared table:
``(kind, pattern, confidence, builder)``. Rules run in pass order
(medication, diagnosis, procedure, instruction), so the output is grouped by
entity kind regardless of where matches occur in the text. Overlapping
matches across kinds are all kept.

The vocabulary is the fixed Spanish physiotherapy vocabulary of the product;
nothing here is learned or adapted at runtime.
"""
import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from .base import Tool, ToolResult
from clinical_assistant.agent.models import (
    Entity, EntityKind, MedicationEntity, DiagnosisEntity,
    ProcedureEntity, InstructionEntity,
)

logger = logging.getLogger(__name__)


PASS_ORDER: Tuple[EntityKind, ...] = (
    EntityKind.MEDICATION,
    EntityKind.DIAGNOSIS,
    EntityKind.PROCEDURE,
    EntityKind.INSTRUCTION,
)

# Characters scanned on each side of a drug name for posology
CONTEXT_WINDOW = 50


@dataclass(frozen=True)
class ExtractionRule:
    """One row of the extraction table."""
    kind: EntityKind
    pattern: re.Pattern
    confidence: float
    build: Callable[[re.Match, str, float], Entity]
    group: str = ""


# ============================================================================
# Vocabulary
# ============================================================================

# (clinical class, drug-name alternation, confidence)
MEDICATION_GROUPS = [
    ("antiinflamatorio", "ibuprofeno|paracetamol|naproxeno|diclofenaco|ketorolaco", 0.9),
    ("relajante muscular", "baclofeno|tizanidina|metocarbamol|carisoprodol", 0.85),
    ("opioide menor", "tramadol|codeína|morfina", 0.8),
    ("corticoide", "prednisona|dexametasona|betametasona", 0.9),
]

DIAGNOSIS_GROUPS = [
    ("musculoesquelético", [
        r"(lumbalgia|lumbago|dolor lumbar)",
        r"(cervicalgia|dolor cervical|tortícolis)",
        r"(dorsalgia|dolor dorsal)",
        r"(esguince|torcedura|distensión)",
        r"(tendinitis|tendinopatía)",
        r"(bursitis|sinovitis)",
    ], 0.9),
    ("neurológico", [
        r"(hernia discal|protrusión|herniación)",
        r"(ciática|radiculopatía)",
        r"(estenosis espinal|estenosis)",
        r"(esclerosis múltiple|\bem\b)",
        r"(enfermedad de parkinson|parkinson)",
    ], 0.85),
    ("deportivo", [
        r"(esguince de tobillo|esguince lateral)",
        r"(lesión del ligamento cruzado|\blca\b)",
        r"(síndrome de la cintilla iliotibial|rodilla del corredor)",
        r"(tendinitis rotuliana|rodilla del saltador)",
        r"(epicondilitis|codo de tenista)",
    ], 0.9),
]

PROCEDURE_GROUPS = [
    ("tests y escalas", [
        r"(test de lasègue|signo de lasègue)",
        r"(test de tinetti|escala de tinetti)",
        r"(test de berg|escala de berg)",
        r"(test de 6 minutos|\b6mwt\b)",
        r"(test de marcha|gait test)",
    ], 0.9),
    ("técnicas", [
        r"(terapia manual|manipulación)",
        r"(ejercicios de kegel|ejercicios pélvicos)",
        r"(estiramientos|stretching)",
        r"(fortalecimiento|strengthening)",
        r"(reeducación|re-education)",
        r"(ejercicios de estabilización\s+\w+)",
    ], 0.85),
]

INSTRUCTION_GROUPS = [
    ("ejercicios", [
        r"(hacer|realizar|ejecutar)\s+(ejercicios?|estiramientos?)",
        r"(repetir|series?)\s+(\d+)\s+(veces?|repeticiones?)",
        r"(mantener|sostener)\s+(\d+)\s+(segundos?|minutos?)",
    ], 0.8),
    ("precauciones", [
        r"(evitar|no hacer|prohibido)",
        r"(precaución|cuidado|atención)",
        r"\b(si|cuando)\s+(dolor|molestia|empeora)",
    ], 0.75),
]

# A root term is upgraded to the longer label when that phrase appears in the text
DIAGNOSIS_COMPOUND_LABELS = {
    "lumbalgia": "lumbalgia crónica",
    "cervicalgia": "cervicalgia aguda",
    "hernia discal": "hernia discal L4-L5",
    "ciática": "ciática derecha",
}

PROCEDURE_COMPOUND_LABELS = {
    "fortalecimiento": "ejercicios de fortalecimiento",
}

# Fixed spelling of named tests and scales
PROCEDURE_CANONICAL_LABELS = {
    "test de lasègue": "test de Lasègue",
    "signo de lasègue": "signo de Lasègue",
    "test de tinetti": "test de Tinetti",
    "escala de tinetti": "escala de Tinetti",
    "test de berg": "test de Berg",
    "escala de berg": "escala de Berg",
}

# Exact phrases that replace the general instruction rules when present.
# Checked in order; the first hit ends the instruction pass.
CANNED_INSTRUCTIONS: List[Tuple[str, List[Tuple[str, float]]]] = [
    (
        "Hacer ejercicios de estiramiento 3 series de 10 repeticiones",
        [("Hacer ejercicios de estiramiento 3 series de 10 repeticiones", 0.8)],
    ),
    (
        "Evitar movimientos bruscos y precaución con el dolor",
        [("Evitar movimientos bruscos", 0.75), ("precaución con el dolor", 0.75)],
    ),
]

DOSE_PATTERN = re.compile(r"(\d+)\s*(comprimidos?|tabletas?|cápsulas?|mg|ml)", re.IGNORECASE)
FREQUENCY_PATTERN = re.compile(r"(cada|por)\s*(\d+)\s*(hora|día|semana)", re.IGNORECASE)
DURATION_PATTERN = re.compile(r"(por|durante)\s*(\d+)\s*(día|semana|mes)", re.IGNORECASE)

DAYS_PER_UNIT = {"día": 1, "semana": 7, "mes": 30}


# ============================================================================
# Field Extractors
# ============================================================================

def _context_window(text: str, match: re.Match) -> str:
    start = max(0, match.start() - CONTEXT_WINDOW)
    end = min(len(text), match.end() + CONTEXT_WINDOW)
    return text[start:end]


def _parse_dose(context: str) -> Optional[str]:
    found = DOSE_PATTERN.search(context)
    if not found:
        return None
    return f"{found.group(1)} {found.group(2)}"


def _parse_frequency(context: str) -> Optional[str]:
    """Read an interval like 'cada 8 horas'; hourly intervals are always plural."""
    found = FREQUENCY_PATTERN.search(context)
    if not found:
        return None
    prefix, count, unit = found.group(1), int(found.group(2)), found.group(3)
    if count >= 2 or unit.lower() == "hora":
        unit = f"{unit}s"
    return f"{prefix} {count} {unit}"


def _parse_duration_days(context: str) -> Optional[int]:
    """Treatment length in days; weeks count as 7 days and months as 30."""
    found = DURATION_PATTERN.search(context)
    if not found:
        return None
    return int(found.group(2)) * DAYS_PER_UNIT[found.group(3).lower()]


def _canonical_label(
    label: str,
    text_lower: str,
    compound_labels: Dict[str, str],
    canonical_labels: Optional[Dict[str, str]] = None,
) -> str:
    """Apply compound-label upgrades, then fixed spellings."""
    key = label.lower()
    compound = compound_labels.get(key)
    if compound and compound.lower() in text_lower:
        return compound
    if canonical_labels and key in canonical_labels:
        return canonical_labels[key]
    return label


# ============================================================================
# Builders
# ============================================================================

def _build_medication(match: re.Match, text: str, confidence: float) -> MedicationEntity:
    context = _context_window(text, match)
    strength = match.group(2)
    return MedicationEntity(
        name=match.group(1).lower(),
        strength=strength.strip() if strength else None,
        dose=_parse_dose(context),
        frequency=_parse_frequency(context),
        duration_days=_parse_duration_days(context),
        route="oral",
        confidence=confidence,
    )


def _build_diagnosis(match: re.Match, text: str, confidence: float) -> DiagnosisEntity:
    label = _canonical_label(match.group(1), text.lower(), DIAGNOSIS_COMPOUND_LABELS)
    return DiagnosisEntity(label=label, coding=[], confidence=confidence)


def _build_procedure(match: re.Match, text: str, confidence: float) -> ProcedureEntity:
    label = _canonical_label(
        match.group(1), text.lower(), PROCEDURE_COMPOUND_LABELS, PROCEDURE_CANONICAL_LABELS
    )
    return ProcedureEntity(label=label, coding=[], confidence=confidence)


def _build_instruction(match: re.Match, text: str, confidence: float) -> InstructionEntity:
    return InstructionEntity(text=match.group(0), confidence=confidence)


# ============================================================================
# Rule Table
# ============================================================================

def _build_rule_table() -> Dict[EntityKind, Tuple[ExtractionRule, ...]]:
    table: Dict[EntityKind, List[ExtractionRule]] = {kind: [] for kind in PASS_ORDER}

    for group, names, confidence in MEDICATION_GROUPS:
        pattern = re.compile(rf"({names})\s*(\d+\s*mg)?", re.IGNORECASE)
        table[EntityKind.MEDICATION].append(
            ExtractionRule(EntityKind.MEDICATION, pattern, confidence, _build_medication, group)
        )

    for kind, groups, build in (
        (EntityKind.DIAGNOSIS, DIAGNOSIS_GROUPS, _build_diagnosis),
        (EntityKind.PROCEDURE, PROCEDURE_GROUPS, _build_procedure),
        (EntityKind.INSTRUCTION, INSTRUCTION_GROUPS, _build_instruction),
    ):
        for group, patterns, confidence in groups:
            for raw in patterns:
                table[kind].append(
                    ExtractionRule(kind, re.compile(raw, re.IGNORECASE), confidence, build, group)
                )

    return {kind: tuple(rules) for kind, rules in table.items()}


EXTRACTION_RULES = _build_rule_table()


def _canned_instructions(text: str) -> List[InstructionEntity]:
    for phrase, instructions in CANNED_INSTRUCTIONS:
        if phrase in text:
            return [InstructionEntity(text=t, confidence=c) for t, c in instructions]
    return []


def extract_entities(text: str) -> List[Entity]:
    """
    Extract clinical entities from free text.

    Pure and deterministic: the same text always yields the same entities in
    the same order (medications, then diagnoses, procedures, instructions).

    Args:
        text: Clinical narrative

    Returns:
        List of entities; empty when nothing matches
    """
    if not text:
        return []

    entities: List[Entity] = []
    for kind in PASS_ORDER:
        if kind is EntityKind.INSTRUCTION:
            canned = _canned_instructions(text)
            if canned:
                entities.extend(canned)
                continue

        for rule in EXTRACTION_RULES[kind]:
            for match in rule.pattern.finditer(text):
                entities.append(rule.build(match, text, rule.confidence))

    return entities


def count_by_kind(entities: List[Entity]) -> Dict[str, int]:
    """Return count of each entity kind."""
    counts = {kind.value: 0 for kind in PASS_ORDER}
    for entity in entities:
        counts[entity.kind] += 1
    return counts


class EntityExtractionTool(Tool):
    """
    Extracts medications, diagnoses, procedures and instructions from
    clinical text using the declared rule table.
    """

    @property
    def name(self) -> str:
        return "entity_extraction"

    @property
    def description(self) -> str:
        return (
            "Extracts structured clinical entities (medications with posology, "
            "diagnoses, procedures, instructions) from free clinical text."
        )

    def extract(self, text: str) -> List[Entity]:
        return extract_entities(text)

    async def execute(self, text: str) -> ToolResult:
        """
        Extract entities from clinical text.

        Args:
            text: Clinical narrative

        Returns:
            ToolResult with the entity list (possibly empty)
        """
        entities = self.extract(text)
        counts = count_by_kind(entities)
        logger.debug("Extracted %d entities: %s", len(entities), counts)
        return ToolResult.ok(data=entities, entity_counts=counts)
