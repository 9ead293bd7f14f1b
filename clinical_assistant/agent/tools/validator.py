"""
Validation Tool - filtering and quality scoring of extracted entities.

Validation is filter-only: kept entities are returned untouched. Missing
required fields are downgraded to a warning plus exclusion; low-confidence
entities are dropped silently.
"""
import logging
import math
from typing import List

from .base import Tool, ToolResult
from clinical_assistant.agent.models import (
    Entity, EntityKind, ValidationResult,
)

logger = logging.getLogger(__name__)


# Entities at or below this confidence are discarded without a warning
MIN_CONFIDENCE = 0.3


def _missing_field_warning(entity: Entity) -> str:
    """Return a warning when a required field is empty, else an empty string."""
    if entity.kind == EntityKind.MEDICATION.value and not entity.name:
        return f"Medicamento sin nombre: {entity.model_dump_json()}"
    if entity.kind == EntityKind.DIAGNOSIS.value and not entity.label:
        return f"Diagnóstico sin etiqueta: {entity.model_dump_json()}"
    return ""


def validate_extracted_entities(entities: List[Entity]) -> ValidationResult:
    """
    Filter entities and compute the quality score.

    Rules, per entity:
    1. medication with empty name → dropped, one warning
    2. diagnosis with empty label → dropped, one warning
    3. confidence <= 0.3 → dropped, no warning
    4. otherwise kept

    quality_score is the mean confidence of kept entities rounded to two
    decimals (halves up), or 0 when nothing is kept.
    """
    valid: List[Entity] = []
    warnings: List[str] = []

    for entity in entities:
        warning = _missing_field_warning(entity)
        if warning:
            warnings.append(warning)
            continue
        if entity.confidence <= MIN_CONFIDENCE:
            continue
        valid.append(entity)

    quality_score = 0.0
    if valid:
        mean = sum(e.confidence for e in valid) / len(valid)
        # Halves round up (0.825 -> 0.83)
        quality_score = math.floor(mean * 100 + 0.5) / 100

    if warnings:
        logger.info("Discarded %d entities with missing required fields", len(warnings))

    return ValidationResult(valid_entities=valid, quality_score=quality_score, warnings=warnings)


class ValidationTool(Tool):
    """
    Validates extracted entities.

    Performs:
    - Required field checks (medication name, diagnosis label)
    - Confidence threshold filtering
    - Quality scoring of the surviving entities
    """

    @property
    def name(self) -> str:
        return "validator"

    @property
    def description(self) -> str:
        return (
            "Drops entities with missing required fields or low confidence and "
            "scores the remaining ones by mean confidence."
        )

    def validate(self, entities: List[Entity]) -> ValidationResult:
        return validate_extracted_entities(entities)

    async def execute(self, entities: List[Entity]) -> ToolResult:
        """
        Validate a list of entities.

        Args:
            entities: Entities from the extractor or a knowledge answer

        Returns:
            ToolResult with ValidationResult data
        """
        result = self.validate(entities)
        return ToolResult.ok(
            data=result,
            quality_score=result.quality_score,
            dropped=len(entities) - len(result.valid_entities),
            warnings=result.warnings if result.warnings else None,
        )
