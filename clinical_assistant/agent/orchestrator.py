"""
Query Orchestrator - routes clinician queries to the right collaborators.

Query flow:
1. Route (QueryRouter) - always
2. Data lookup (DataLookup collaborator) - for "data" and "both" routes
3. Knowledge query (KnowledgeGateway collaborator) - for "llm", "free" and "both" routes

For "both" routes the lookup finishes before the knowledge query starts and
the answers are joined in that order. A failure in any collaborator turns the
whole request into ``ok=False`` with confidence 0; an answer already obtained
from the first call is discarded, not rolled back.

Extraction flow: EntityExtractor → EntityValidator → (optional) EMR write of a
single medication entity.
"""
import logging
import time
from typing import Any, Dict, Optional

from clinical_assistant.agent.models import (
    AssistantResult, AssistantRoute, DataIntent, Entity, EntityKind,
    KnowledgeAnswer, LookupResult, RouteType, ValidationResult,
)
from clinical_assistant.agent.trajectory import TrajectoryLogger, Trajectory
from clinical_assistant.agent.tools.base import ToolResult
from clinical_assistant.agent.tools.extractor import EntityExtractionTool, count_by_kind
from clinical_assistant.agent.tools.router import QueryRouterTool
from clinical_assistant.agent.tools.validator import ValidationTool
from clinical_assistant.services.base import (
    CollaboratorError, DataLookup, DataLookupError, EMRWriter,
    KnowledgeGateway, KnowledgeGatewayError, RecordNotFoundError,
)
from clinical_assistant.services.emr import format_medication_snippet

logger = logging.getLogger(__name__)


# Answer for data-routed queries that matched no specific data intent
DATA_QUERY_HINT = (
    'Para consultas de datos, usa palabras clave como "edad", "resonancia", '
    '"citas hoy" o "notas pendientes".'
)


class QueryOrchestrator:
    """
    Assistant entry point combining the deterministic engine with its
    collaborators.

    Collaborators are injected so they can be database-backed, remote or
    mocked. An instance keeps the trajectory of its latest request; create
    one orchestrator per request.
    """

    def __init__(
        self,
        data_lookup: Optional[DataLookup] = None,
        knowledge_gateway: Optional[KnowledgeGateway] = None,
        emr_writer: Optional[EMRWriter] = None,
    ):
        self.router = QueryRouterTool()
        self.extractor = EntityExtractionTool()
        self.validator = ValidationTool()

        self.data_lookup = data_lookup
        self.knowledge_gateway = knowledge_gateway
        self.emr_writer = emr_writer

        self._trajectory_logger: Optional[TrajectoryLogger] = None

    # =========================================================================
    # Query Flow
    # =========================================================================

    async def run_query(self, text: str, context: Optional[Dict[str, Any]] = None) -> AssistantResult:
        """
        Answer a clinician query.

        Args:
            text: Query as typed by the clinician
            context: Request context forwarded to the data lookup (patient_id, visit_id)

        Returns:
            AssistantResult; ok=False with confidence 0 when a collaborator fails
        """
        started = time.perf_counter()
        preview = text[:100] + "..." if len(text) > 100 else text
        self._trajectory_logger = TrajectoryLogger(
            agent_name="QueryOrchestrator",
            input_summary=f"Query ({len(text)} chars): {preview}"
        )

        route = await self._step_route(text)

        try:
            result = await self._answer(route, text, context or {})
            self._trajectory_logger.complete(success=True, output_summary=f"Answered via {route.type}")
        except Exception as e:
            logger.error("Assistant query failed on %s route: %s", route.type, e)
            self._trajectory_logger.complete(success=False, error=str(e))
            result = AssistantResult(ok=False, route_type=route.type, error=str(e), confidence=0.0)

        result.took_ms = (time.perf_counter() - started) * 1000
        return result

    async def _answer(self, route: AssistantRoute, text: str, context: Dict[str, Any]) -> AssistantResult:
        if route.type == RouteType.DATA.value:
            if route.data_intent is None:
                self._trajectory_logger.skip_step("Data Lookup", "data_lookup", "No specific data intent")
                return AssistantResult(
                    ok=True,
                    route_type=route.type,
                    answer_markdown=DATA_QUERY_HINT,
                    confidence=route.confidence,
                )

            lookup = await self._step_lookup(route.data_intent, context)
            return AssistantResult(
                ok=True,
                route_type=route.type,
                answer_markdown=lookup.answer_markdown,
                data=lookup.data,
                confidence=route.confidence,
            )

        if route.type == RouteType.BOTH.value and route.data_intent is not None:
            # Sequential on purpose: data answer first, then knowledge
            lookup = await self._step_lookup(route.data_intent, context)
            knowledge = await self._step_knowledge(text)
            return AssistantResult(
                ok=True,
                route_type=route.type,
                answer_markdown=f"{lookup.answer_markdown}\n\n{knowledge.answer_markdown}",
                data=lookup.data,
                entities=knowledge.entities,
                confidence=route.confidence,
            )

        knowledge = await self._step_knowledge(text)
        return AssistantResult(
            ok=True,
            route_type=route.type,
            answer_markdown=knowledge.answer_markdown,
            entities=knowledge.entities,
            confidence=route.confidence,
        )

    async def _step_route(self, text: str) -> AssistantRoute:
        step = self._trajectory_logger.start_step(
            step_name="Route Query",
            tool_name=self.router.name,
            input_summary=f"Query ({len(text)} chars)"
        )
        result = await self.router.run(text)
        route: AssistantRoute = result.data
        summary = f"type={route.type}, confidence={route.confidence}"
        if route.data_intent:
            summary += f", intent={route.data_intent}"
        self._trajectory_logger.complete_step(step, output_summary=summary)
        return route

    async def _step_lookup(self, data_intent: DataIntent, context: Dict[str, Any]) -> LookupResult:
        step = self._trajectory_logger.start_step(
            step_name="Data Lookup",
            tool_name="data_lookup",
            input_summary=f"intent={data_intent}"
        )
        try:
            if self.data_lookup is None:
                raise DataLookupError("No data lookup service configured")
            lookup = await self.data_lookup.lookup(data_intent, context)
            if not lookup.ok:
                raise DataLookupError(lookup.answer_markdown or f"Data lookup returned no answer for '{data_intent}'")
        except Exception as e:
            self._trajectory_logger.fail_step(step, str(e), error_type=type(e).__name__)
            raise

        self._trajectory_logger.complete_step(step, output_summary=lookup.answer_markdown[:100])
        return lookup

    async def _step_knowledge(self, text: str) -> KnowledgeAnswer:
        step = self._trajectory_logger.start_step(
            step_name="Knowledge Query",
            tool_name="knowledge_gateway",
            input_summary=f"Question ({len(text)} chars)"
        )
        try:
            if self.knowledge_gateway is None:
                raise KnowledgeGatewayError("No knowledge gateway configured")
            answer = await self.knowledge_gateway.query(text)
            if not answer.ok:
                raise KnowledgeGatewayError(answer.answer_markdown or "Knowledge gateway returned no answer")
        except Exception as e:
            self._trajectory_logger.fail_step(step, str(e), error_type=type(e).__name__)
            raise

        self._trajectory_logger.complete_step(
            step,
            output_summary=f"{len(answer.answer_markdown)} chars, {len(answer.entities)} entities"
        )
        return answer

    # =========================================================================
    # Extraction Flow
    # =========================================================================

    async def extract(self, text: str) -> ValidationResult:
        """
        Extract and validate entities from clinical narrative.

        Args:
            text: Clinical narrative

        Returns:
            ValidationResult with the surviving entities and quality score
        """
        self._trajectory_logger = TrajectoryLogger(
            agent_name="QueryOrchestrator",
            input_summary=f"Narrative ({len(text)} chars)"
        )

        step = self._trajectory_logger.start_step(
            step_name="Extract Entities",
            tool_name=self.extractor.name,
            input_summary=f"Narrative ({len(text)} chars)"
        )
        extraction = await self.extractor.run(text)
        entities = extraction.data
        self._trajectory_logger.complete_step(step, output_summary=f"Extracted: {count_by_kind(entities)}")

        step = self._trajectory_logger.start_step(
            step_name="Validate Entities",
            tool_name=self.validator.name,
            input_summary=f"{len(entities)} entities"
        )
        validation = await self.validator.run(entities)
        result: ValidationResult = validation.data
        summary = f"Kept {len(result.valid_entities)}/{len(entities)}, quality={result.quality_score}"
        if result.warnings:
            summary += f" with {len(result.warnings)} warning(s)"
        self._trajectory_logger.complete_step(step, output_summary=summary)

        self._trajectory_logger.complete(success=True, output_summary=summary)
        return result

    async def integrate_medication(self, entity: Entity, record_id: str) -> ToolResult:
        """
        Append a medication entity to a clinical record's plan.

        Only medication entities that pass validation are eligible.

        Args:
            entity: Entity chosen by the clinician
            record_id: Target clinical record id

        Returns:
            ToolResult with the updated plan text, or failure details
        """
        self._trajectory_logger = TrajectoryLogger(
            agent_name="QueryOrchestrator",
            input_summary=f"Integrate {entity.kind} into record {record_id}"
        )

        if entity.kind != EntityKind.MEDICATION.value:
            return self._fail_integration(
                f"Only medication entities can be integrated into the plan (got '{entity.kind}')",
                reason="unsupported_kind",
            )

        validation = self.validator.validate([entity])
        if not validation.valid_entities:
            reason = validation.warnings[0] if validation.warnings else "Confidence too low"
            return self._fail_integration(f"Medication failed validation: {reason}", reason="invalid_entity")

        if self.emr_writer is None:
            return self._fail_integration("No EMR writer configured", reason="not_configured")

        snippet = format_medication_snippet(entity)
        step = self._trajectory_logger.start_step(
            step_name="Append Plan Snippet",
            tool_name="emr_writer",
            input_summary=snippet
        )
        try:
            plan = await self.emr_writer.append_plan_snippet(record_id, snippet)
        except RecordNotFoundError as e:
            self._trajectory_logger.fail_step(step, str(e), error_type="RecordNotFoundError")
            return self._fail_integration(str(e), reason="record_not_found")
        except CollaboratorError as e:
            self._trajectory_logger.fail_step(step, str(e), error_type=type(e).__name__)
            return self._fail_integration(str(e), reason="emr_error")

        self._trajectory_logger.complete_step(step, output_summary=f"Plan now {len(plan)} chars")
        self._trajectory_logger.complete(success=True, output_summary="Medication integrated")
        return ToolResult.ok(data=plan, snippet=snippet, record_id=record_id)

    def _fail_integration(self, error: str, **metadata) -> ToolResult:
        self._trajectory_logger.complete(success=False, error=error)
        return ToolResult.fail(error, **metadata)

    def get_trajectory(self) -> Optional[Trajectory]:
        """Get the trajectory of the latest request (if any)."""
        if self._trajectory_logger:
            return self._trajectory_logger.get_trajectory()
        return None
