"""
Clinical Query Understanding Engine

A deterministic pipeline that routes clinician queries and extracts
structured clinical entities from narrative text.

Components:
- QueryOrchestrator: Combines routing with data/knowledge/EMR collaborators
- Tools: Query routing, entity extraction, entity validation
- Models: Entity tagged union and result schemas
- Trajectory: Execution audit trail logging

Usage:
    from clinical_assistant.agent import route_query, extract_entities, validate_extracted_entities

    route = route_query("¿Cuál es la edad del paciente?")
    result = validate_extracted_entities(extract_entities(note_text))
    print(f"Kept {len(result.valid_entities)} entities, quality {result.quality_score}")
"""
from clinical_assistant.agent.orchestrator import QueryOrchestrator
from clinical_assistant.agent.models import (
    Entity,
    EntityKind,
    MedicationEntity,
    DiagnosisEntity,
    ProcedureEntity,
    InstructionEntity,
    AssistantRoute,
    AssistantResult,
    RouteType,
    DataIntent,
    ValidationResult,
    LookupResult,
    KnowledgeAnswer,
)
from clinical_assistant.agent.tools import route_query, extract_entities, validate_extracted_entities
from clinical_assistant.agent.trajectory import Trajectory, TrajectoryStep, TrajectoryLogger

__all__ = [
    # Orchestration
    "QueryOrchestrator",

    # Engine
    "route_query",
    "extract_entities",
    "validate_extracted_entities",

    # Models
    "Entity",
    "EntityKind",
    "MedicationEntity",
    "DiagnosisEntity",
    "ProcedureEntity",
    "InstructionEntity",
    "AssistantRoute",
    "AssistantResult",
    "RouteType",
    "DataIntent",
    "ValidationResult",
    "LookupResult",
    "KnowledgeAnswer",

    # Trajectory
    "Trajectory",
    "TrajectoryStep",
    "TrajectoryLogger",
]
