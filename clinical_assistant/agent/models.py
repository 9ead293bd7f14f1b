"""
Pydantic models for the clinical query understanding engine.

Entities form a tagged union discriminated by ``kind``:
- MedicationEntity  → a drug mention with optional posology
- DiagnosisEntity   → a condition or symptom label
- ProcedureEntity   → a clinical test, scale or therapeutic technique
- InstructionEntity → an exercise or precaution given to the patient

All models are immutable value objects created fresh per request.
"""
from pydantic import BaseModel, Field, TypeAdapter
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from enum import Enum


class EntityKind(str, Enum):
    """Entity discriminant values, in extraction pass order."""
    MEDICATION = "medication"
    DIAGNOSIS = "diagnosis"
    PROCEDURE = "procedure"
    INSTRUCTION = "instruction"


class RouteType(str, Enum):
    """How a query should be answered."""
    DATA = "data"
    LLM = "llm"
    BOTH = "both"
    FREE = "free"


class DataIntent(str, Enum):
    """Structured lookups the data collaborator understands."""
    AGE = "age"
    MRI = "mri"
    TODAY_APPOINTMENTS = "todayAppointments"
    PENDING_NOTES = "pendingNotes"


# ============================================================================
# Entity Tagged Union
# ============================================================================

Confidence = Annotated[float, Field(ge=0.0, le=1.0, description="Engine certainty, not a calibrated probability")]


class MedicationEntity(BaseModel):
    """
    Medication mention with whatever posology could be read around it.

    ``name`` is required but may be empty so that upstream sources (e.g. the
    knowledge gateway) can hand over incomplete entities for the validator
    to reject with a warning.
    """
    kind: Literal["medication"] = "medication"
    name: str = Field(..., description="Lowercased drug name")
    strength: Optional[str] = Field(None, description="Strength written next to the name (e.g. '400 mg')")
    dose: Optional[str] = Field(None, description="Quantity + unit found nearby (e.g. '1 comprimido')")
    frequency: Optional[str] = Field(None, description="Dosing interval (e.g. 'cada 8 horas')")
    duration_days: Optional[int] = Field(None, ge=0, description="Treatment length in days")
    route: str = Field(default="oral", description="Administration route")
    confidence: Confidence

    model_config = {"extra": "forbid", "frozen": True}


class DiagnosisEntity(BaseModel):
    """Diagnosis or symptom label."""
    kind: Literal["diagnosis"] = "diagnosis"
    label: str = Field(..., description="Diagnosis label as written (or its canonical compound form)")
    coding: List[str] = Field(default_factory=list, description="Terminology codes, if any")
    confidence: Confidence

    model_config = {"extra": "forbid", "frozen": True}


class ProcedureEntity(BaseModel):
    """Clinical test, scale or therapeutic technique."""
    kind: Literal["procedure"] = "procedure"
    label: str = Field(..., description="Procedure label")
    coding: List[str] = Field(default_factory=list)
    confidence: Confidence

    model_config = {"extra": "forbid", "frozen": True}


class InstructionEntity(BaseModel):
    """Exercise prescription or precaution."""
    kind: Literal["instruction"] = "instruction"
    text: str = Field(..., description="Instruction text as found in the source")
    confidence: Confidence

    model_config = {"extra": "forbid", "frozen": True}


Entity = Annotated[
    Union[MedicationEntity, DiagnosisEntity, ProcedureEntity, InstructionEntity],
    Field(discriminator="kind"),
]

# Parses plain dicts (e.g. from an LLM payload) into the right entity class
EntityAdapter = TypeAdapter(Entity)
EntityListAdapter = TypeAdapter(List[Entity])


# ============================================================================
# Routing and Validation Results
# ============================================================================

class AssistantRoute(BaseModel):
    """
    Classification of a clinician query.

    ``confidence`` is the certainty of the classification itself, not of any
    downstream answer.
    """
    type: RouteType
    data_intent: Optional[DataIntent] = None
    entities: Dict[str, str] = Field(default_factory=dict)
    confidence: Confidence

    model_config = {"frozen": True, "use_enum_values": True}

    @property
    def has_data_component(self) -> bool:
        return self.type in (RouteType.DATA.value, RouteType.BOTH.value)


class ValidationResult(BaseModel):
    """Entities that survived validation plus their quality score."""
    valid_entities: List[Entity] = Field(default_factory=list)
    quality_score: float = Field(default=0.0, ge=0.0, le=1.0)
    warnings: List[str] = Field(default_factory=list)


# ============================================================================
# Collaborator Payloads
# ============================================================================

class LookupResult(BaseModel):
    """Answer returned by a DataLookup collaborator."""
    ok: bool
    answer_markdown: str = ""
    data: Optional[Dict[str, Any]] = None


class KnowledgeAnswer(BaseModel):
    """Answer returned by a KnowledgeGateway collaborator."""
    ok: bool
    answer_markdown: str = ""
    entities: List[Entity] = Field(default_factory=list)


class AssistantResult(BaseModel):
    """
    Outcome of an orchestrated assistant query.

    ``ok=False`` means "no answer available": callers render ``error`` and
    must not treat ``answer_markdown`` as a partial answer.
    """
    ok: bool
    route_type: RouteType
    answer_markdown: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    entities: Optional[List[Entity]] = None
    error: Optional[str] = None
    took_ms: float = 0.0
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    model_config = {"use_enum_values": True}
