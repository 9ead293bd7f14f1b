from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from .agent.models import Entity

# Health check schema
class HealthResponse(BaseModel):
    """Health check response"""
    status: str

# Routing schemas
class RouteQueryRequest(BaseModel):
    """Request schema for query intent classification"""
    query: str = Field(..., min_length=1, max_length=2000, description="Clinician query")

# Extraction schemas
class ExtractEntitiesRequest(BaseModel):
    """Request schema for entity extraction from clinical narrative"""
    text: str = Field(..., min_length=1, description="Clinical narrative")

class ExtractEntitiesResponse(BaseModel):
    """Extracted entities, the validated subset and its quality score"""
    entities: List[Entity] = Field(..., description="All extracted entities, in pass order")
    valid_entities: List[Entity] = Field(..., description="Entities that passed validation")
    quality_score: float = Field(..., ge=0.0, le=1.0, description="Mean confidence of valid entities")
    warnings: List[str] = Field(default_factory=list)
    entity_counts: Dict[str, int] = Field(default_factory=dict)

# Assistant query schemas
class AssistantQueryRequest(BaseModel):
    """Request schema for an orchestrated assistant query"""
    query: str = Field(..., min_length=1, max_length=2000, description="Clinician query")
    patient_id: Optional[str] = Field(None, description="Patient in context, for data lookups")
    visit_id: Optional[str] = Field(None, description="Clinical record in context")
    include_trajectory: bool = Field(default=False, description="Include execution trajectory in response")

class AssistantQueryResponse(BaseModel):
    """Assistant answer; ok=False means no answer is available"""
    ok: bool
    route_type: str
    answer_markdown: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    entities: Optional[List[Entity]] = None
    error: Optional[str] = None
    took_ms: float
    confidence: float = Field(..., ge=0.0, le=1.0)
    trajectory: Optional[Dict[str, Any]] = None

# EMR integration schemas
class IntegrateMedicationRequest(BaseModel):
    """Request to append an extracted medication to a clinical record's plan"""
    record_id: str = Field(..., min_length=1, description="Target clinical record id")
    entity: Entity = Field(..., description="Entity chosen by the clinician (must be a medication)")

class IntegrateMedicationResponse(BaseModel):
    """Updated plan after integration"""
    record_id: str
    snippet: str
    plan: str
