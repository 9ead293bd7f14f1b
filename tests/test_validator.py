"""
Entity validation tests

Filter rules, warning format and quality scoring.
"""
import json

import pytest

from clinical_assistant.agent.models import (
    MedicationEntity, DiagnosisEntity, ProcedureEntity, InstructionEntity
)
from clinical_assistant.agent.tools.validator import (
    ValidationTool, validate_extracted_entities, MIN_CONFIDENCE
)


class TestValidationRules:
    """Required fields and confidence threshold."""

    def test_valid_entities_pass_through(self):
        entities = [
            MedicationEntity(name="ibuprofeno", strength="400 mg", confidence=0.9),
            DiagnosisEntity(label="lumbalgia", confidence=0.9),
        ]

        result = validate_extracted_entities(entities)

        assert len(result.valid_entities) == 2
        assert result.valid_entities == entities
        assert result.quality_score == 0.9
        assert result.warnings == []

    def test_medication_without_name_is_dropped_with_warning(self):
        entities = [MedicationEntity(name="", strength="400 mg", confidence=0.9)]

        result = validate_extracted_entities(entities)

        assert result.valid_entities == []
        assert result.quality_score == 0.0
        assert len(result.warnings) == 1
        assert result.warnings[0].startswith("Medicamento sin nombre: ")
        payload = json.loads(result.warnings[0].split(": ", 1)[1])
        assert payload["kind"] == "medication"
        assert payload["strength"] == "400 mg"

    def test_diagnosis_without_label_is_dropped_with_warning(self):
        entities = [DiagnosisEntity(label="", confidence=0.9)]

        result = validate_extracted_entities(entities)

        assert result.valid_entities == []
        assert len(result.warnings) == 1
        assert result.warnings[0].startswith("Diagnóstico sin etiqueta: ")

    def test_one_warning_per_offending_entity(self):
        entities = [
            MedicationEntity(name="", confidence=0.9),
            DiagnosisEntity(label="", confidence=0.9),
            MedicationEntity(name="", confidence=0.8),
            ProcedureEntity(label="terapia manual", confidence=0.85),
        ]

        result = validate_extracted_entities(entities)

        assert len(result.warnings) == 3
        assert [e.kind for e in result.valid_entities] == ["procedure"]

    def test_low_confidence_is_dropped_silently(self):
        entities = [
            MedicationEntity(name="ibuprofeno", confidence=0.2),
            DiagnosisEntity(label="lumbalgia", confidence=0.9),
        ]

        result = validate_extracted_entities(entities)

        assert len(result.valid_entities) == 1
        assert result.valid_entities[0].kind == "diagnosis"
        assert result.warnings == []

    def test_threshold_is_exclusive(self):
        """Confidence equal to the threshold is dropped; just above is kept."""
        at_threshold = InstructionEntity(text="Evitar", confidence=MIN_CONFIDENCE)
        above = InstructionEntity(text="Evitar", confidence=0.31)

        assert validate_extracted_entities([at_threshold]).valid_entities == []
        assert validate_extracted_entities([above]).valid_entities == [above]

    def test_procedures_and_instructions_have_no_required_field_check(self):
        entities = [
            ProcedureEntity(label="", confidence=0.85),
            InstructionEntity(text="", confidence=0.75),
        ]

        result = validate_extracted_entities(entities)

        assert len(result.valid_entities) == 2
        assert result.warnings == []

    def test_order_is_preserved(self):
        entities = [
            InstructionEntity(text="Evitar", confidence=0.75),
            MedicationEntity(name="tramadol", confidence=0.8),
            DiagnosisEntity(label="ciática", confidence=0.85),
        ]

        result = validate_extracted_entities(entities)

        assert result.valid_entities == entities


class TestQualityScore:
    """Mean confidence of the kept entities."""

    def test_empty_input(self):
        result = validate_extracted_entities([])

        assert result.valid_entities == []
        assert result.quality_score == 0.0
        assert result.warnings == []

    def test_rounded_to_two_decimals(self):
        entities = [
            MedicationEntity(name="ibuprofeno", confidence=0.9),
            DiagnosisEntity(label="lumbalgia", confidence=0.8),
            InstructionEntity(text="Evitar", confidence=0.75),
        ]

        result = validate_extracted_entities(entities)

        assert result.quality_score == 0.82

    def test_halves_round_up(self):
        """A 0.9 diagnosis with a 0.75 instruction averages 0.825 and scores 0.83."""
        entities = [
            DiagnosisEntity(label="lumbalgia", confidence=0.9),
            InstructionEntity(text="Evitar", confidence=0.75),
        ]

        result = validate_extracted_entities(entities)

        assert result.quality_score == 0.83

    def test_dropped_entities_do_not_count(self):
        entities = [
            MedicationEntity(name="ibuprofeno", confidence=0.9),
            MedicationEntity(name="", confidence=0.1),
            DiagnosisEntity(label="lumbalgia", confidence=0.1),
        ]

        result = validate_extracted_entities(entities)

        assert result.quality_score == 0.9


class TestValidationTool:

    @pytest.mark.asyncio
    async def test_execute_reports_dropped_count(self):
        tool = ValidationTool()
        entities = [
            MedicationEntity(name="ibuprofeno", confidence=0.9),
            MedicationEntity(name="", confidence=0.9),
        ]

        result = await tool.execute(entities)

        assert result.success is True
        assert result.metadata["dropped"] == 1
        assert result.metadata["quality_score"] == 0.9
        assert len(result.metadata["warnings"]) == 1
        assert result.data.valid_entities == entities[:1]
