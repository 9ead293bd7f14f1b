"""
Query orchestrator tests

Collaborators are replaced by in-memory fakes that record the order in
which they are called, so route handling, sequencing and failure
behavior can be checked without a database or an LLM.
"""
import pytest
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock

from clinical_assistant.agent.models import (
    AssistantResult, DataIntent, DiagnosisEntity, InstructionEntity,
    KnowledgeAnswer, LookupResult, MedicationEntity,
)
from clinical_assistant.agent.orchestrator import QueryOrchestrator, DATA_QUERY_HINT
from clinical_assistant.agent.trajectory import StepStatus
from clinical_assistant.services.base import (
    DataLookup, EMRWriter, KnowledgeGateway, KnowledgeGatewayError, RecordNotFoundError,
)


AGE_QUERY = "¿Cuál es la edad del paciente?"
KNOWLEDGE_QUERY = "¿Qué ejercicios recomiendas para la lumbalgia?"
MIXED_QUERY = "¿Cuál es la edad del paciente y qué ejercicios recomiendas?"


class FakeDataLookup(DataLookup):
    def __init__(self, calls: List[str], result: Optional[LookupResult] = None):
        self.calls = calls
        self.result = result or LookupResult(ok=True, answer_markdown="El paciente tiene 36 años.", data={"age": 36})
        self.received = []

    async def lookup(self, data_intent: DataIntent, params: Optional[Dict[str, Any]] = None) -> LookupResult:
        self.calls.append("lookup")
        self.received.append((data_intent, params))
        return self.result


class FakeKnowledgeGateway(KnowledgeGateway):
    def __init__(self, calls: List[str], answer: Optional[KnowledgeAnswer] = None, error: Exception = None):
        self.calls = calls
        self.answer = answer or KnowledgeAnswer(
            ok=True,
            answer_markdown="Ejercicios de estabilización lumbar.",
            entities=[InstructionEntity(text="Ejercicios de estabilización lumbar", confidence=0.8)],
        )
        self.error = error

    async def query(self, text: str) -> KnowledgeAnswer:
        self.calls.append("knowledge")
        if self.error:
            raise self.error
        return self.answer


class FakeEMRWriter(EMRWriter):
    def __init__(self, plans: Optional[Dict[str, str]] = None):
        self.plans = plans if plans is not None else {"visit-001": ""}
        self.snippets = []

    async def append_plan_snippet(self, record_id: str, snippet: str) -> str:
        if record_id not in self.plans:
            raise RecordNotFoundError(f"Clinical record not found: {record_id}")
        self.snippets.append(snippet)
        current = self.plans[record_id]
        self.plans[record_id] = f"{current}\n{snippet}" if current else snippet
        return self.plans[record_id]


@pytest.fixture
def calls():
    return []


@pytest.fixture
def orchestrator(calls):
    return QueryOrchestrator(
        data_lookup=FakeDataLookup(calls),
        knowledge_gateway=FakeKnowledgeGateway(calls),
        emr_writer=FakeEMRWriter(),
    )


# ============================================================================
# Query Flow
# ============================================================================

class TestRunQuery:
    """Route handling and collaborator sequencing."""

    @pytest.mark.asyncio
    async def test_data_route_calls_lookup_only(self, orchestrator, calls):
        context = {"patient_id": "patient-001", "visit_id": "visit-001"}

        result = await orchestrator.run_query(AGE_QUERY, context)

        assert isinstance(result, AssistantResult)
        assert result.ok is True
        assert result.route_type == "data"
        assert result.answer_markdown == "El paciente tiene 36 años."
        assert result.data == {"age": 36}
        assert result.confidence == 0.95
        assert calls == ["lookup"]
        intent, params = orchestrator.data_lookup.received[0]
        assert intent == "age"
        assert params == context

    @pytest.mark.asyncio
    async def test_llm_route_calls_knowledge_only(self, orchestrator, calls):
        result = await orchestrator.run_query(KNOWLEDGE_QUERY)

        assert result.ok is True
        assert result.route_type == "llm"
        assert result.answer_markdown == "Ejercicios de estabilización lumbar."
        assert len(result.entities) == 1
        assert result.entities[0].kind == "instruction"
        assert result.confidence == 0.8
        assert calls == ["knowledge"]

    @pytest.mark.asyncio
    async def test_both_route_is_sequential_and_joined(self, orchestrator, calls):
        result = await orchestrator.run_query(MIXED_QUERY, {"patient_id": "patient-001"})

        assert result.ok is True
        assert result.route_type == "both"
        assert calls == ["lookup", "knowledge"]
        assert result.answer_markdown == "El paciente tiene 36 años.\n\nEjercicios de estabilización lumbar."
        assert result.data == {"age": 36}
        assert result.confidence == 0.7

        trajectory = orchestrator.get_trajectory()
        assert trajectory.tool_names() == ["query_router", "data_lookup", "knowledge_gateway"]
        assert trajectory.success is True

    @pytest.mark.asyncio
    async def test_data_route_without_intent_returns_hint(self, orchestrator, calls):
        result = await orchestrator.run_query("¿Cómo estás?")

        assert result.ok is True
        assert result.route_type == "data"
        assert result.answer_markdown == DATA_QUERY_HINT
        assert result.confidence == 0.3
        assert calls == []

        trajectory = orchestrator.get_trajectory()
        assert trajectory.steps[-1].status == StepStatus.SKIPPED

    @pytest.mark.asyncio
    async def test_took_ms_is_measured(self, orchestrator):
        result = await orchestrator.run_query(AGE_QUERY, {"patient_id": "patient-001"})

        assert result.took_ms >= 0.0


class TestRunQueryFailures:
    """Any collaborator failure yields ok=False with confidence 0."""

    @pytest.mark.asyncio
    async def test_knowledge_failure_in_both_route_discards_data_answer(self, calls):
        orchestrator = QueryOrchestrator(
            data_lookup=FakeDataLookup(calls),
            knowledge_gateway=FakeKnowledgeGateway(calls, error=KnowledgeGatewayError("LLM down")),
        )

        result = await orchestrator.run_query(MIXED_QUERY, {"patient_id": "patient-001"})

        assert calls == ["lookup", "knowledge"]
        assert result.ok is False
        assert result.route_type == "both"
        assert result.error == "LLM down"
        assert result.confidence == 0.0
        assert result.answer_markdown is None
        assert result.data is None

        trajectory = orchestrator.get_trajectory()
        assert trajectory.success is False
        assert trajectory.steps[1].status == StepStatus.SUCCESS
        assert trajectory.steps[2].status == StepStatus.FAILED
        assert trajectory.steps[2].error_type == "KnowledgeGatewayError"

    @pytest.mark.asyncio
    async def test_lookup_failure_in_both_route_skips_knowledge(self, calls):
        failing = FakeDataLookup(calls, result=LookupResult(ok=False, answer_markdown="No se encontró el paciente."))
        orchestrator = QueryOrchestrator(data_lookup=failing, knowledge_gateway=FakeKnowledgeGateway(calls))

        result = await orchestrator.run_query(MIXED_QUERY)

        assert calls == ["lookup"]
        assert result.ok is False
        assert result.error == "No se encontró el paciente."
        assert result.confidence == 0.0

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_reported(self, calls):
        gateway = AsyncMock(spec=KnowledgeGateway)
        gateway.query.side_effect = RuntimeError("boom")
        orchestrator = QueryOrchestrator(knowledge_gateway=gateway)

        result = await orchestrator.run_query(KNOWLEDGE_QUERY)

        assert result.ok is False
        assert result.route_type == "llm"
        assert result.error == "boom"
        assert result.confidence == 0.0

    @pytest.mark.asyncio
    async def test_knowledge_not_ok_is_a_failure(self, calls):
        gateway = FakeKnowledgeGateway(calls, answer=KnowledgeAnswer(ok=False))
        orchestrator = QueryOrchestrator(knowledge_gateway=gateway)

        result = await orchestrator.run_query(KNOWLEDGE_QUERY)

        assert result.ok is False
        assert result.error == "Knowledge gateway returned no answer"

    @pytest.mark.asyncio
    async def test_missing_collaborator(self):
        orchestrator = QueryOrchestrator()

        result = await orchestrator.run_query(AGE_QUERY)

        assert result.ok is False
        assert result.error == "No data lookup service configured"
        assert result.confidence == 0.0


# ============================================================================
# Extraction Flow
# ============================================================================

class TestExtract:

    @pytest.mark.asyncio
    async def test_extract_and_validate(self, orchestrator):
        result = await orchestrator.extract("Paciente toma ibuprofeno 400 mg cada 8 horas por 7 días")

        assert len(result.valid_entities) == 1
        assert result.valid_entities[0].name == "ibuprofeno"
        assert result.quality_score == 0.9

        trajectory = orchestrator.get_trajectory()
        assert trajectory.tool_names() == ["entity_extraction", "validator"]
        assert trajectory.success is True

    @pytest.mark.asyncio
    async def test_extract_nothing(self, orchestrator):
        result = await orchestrator.extract("El paciente llegó a la consulta a las 10:00 AM")

        assert result.valid_entities == []
        assert result.quality_score == 0.0


class TestIntegrateMedication:
    """EMR write of a single medication entity."""

    @pytest.mark.asyncio
    async def test_integrate_medication(self, orchestrator):
        entity = MedicationEntity(
            name="ibuprofeno", strength="400 mg", dose="400 mg",
            frequency="cada 8 horas", duration_days=7, confidence=0.9,
        )

        result = await orchestrator.integrate_medication(entity, "visit-001")

        expected = "- Ibuprofeno 400 mg · vía oral · cada 8 horas · durante 7 días"
        assert result.success is True
        assert result.data == expected
        assert result.metadata["snippet"] == expected
        assert result.metadata["record_id"] == "visit-001"
        assert orchestrator.emr_writer.snippets == [expected]

    @pytest.mark.asyncio
    async def test_appends_to_existing_plan(self):
        writer = FakeEMRWriter({"visit-001": "- Reposo relativo"})
        orchestrator = QueryOrchestrator(emr_writer=writer)

        result = await orchestrator.integrate_medication(
            MedicationEntity(name="paracetamol", confidence=0.9), "visit-001"
        )

        assert result.data == "- Reposo relativo\n- Paracetamol · vía oral"

    @pytest.mark.asyncio
    async def test_rejects_non_medication(self, orchestrator):
        result = await orchestrator.integrate_medication(
            DiagnosisEntity(label="lumbalgia", confidence=0.9), "visit-001"
        )

        assert result.success is False
        assert result.metadata["reason"] == "unsupported_kind"
        assert orchestrator.emr_writer.snippets == []

    @pytest.mark.asyncio
    async def test_rejects_invalid_medication(self, orchestrator):
        result = await orchestrator.integrate_medication(
            MedicationEntity(name="", confidence=0.9), "visit-001"
        )

        assert result.success is False
        assert result.metadata["reason"] == "invalid_entity"
        assert "Medicamento sin nombre" in result.error

    @pytest.mark.asyncio
    async def test_rejects_low_confidence_medication(self, orchestrator):
        result = await orchestrator.integrate_medication(
            MedicationEntity(name="tramadol", confidence=0.2), "visit-001"
        )

        assert result.success is False
        assert result.metadata["reason"] == "invalid_entity"

    @pytest.mark.asyncio
    async def test_record_not_found(self, orchestrator):
        result = await orchestrator.integrate_medication(
            MedicationEntity(name="ibuprofeno", confidence=0.9), "missing"
        )

        assert result.success is False
        assert result.metadata["reason"] == "record_not_found"
        assert orchestrator.get_trajectory().success is False

    @pytest.mark.asyncio
    async def test_without_writer(self):
        orchestrator = QueryOrchestrator()

        result = await orchestrator.integrate_medication(
            MedicationEntity(name="ibuprofeno", confidence=0.9), "visit-001"
        )

        assert result.success is False
        assert result.metadata["reason"] == "not_configured"
