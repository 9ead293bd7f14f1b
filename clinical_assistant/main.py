from fastapi import FastAPI, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from . import schemas, database
from .config import settings
from .agent.models import AssistantRoute
from .agent.orchestrator import QueryOrchestrator
from .agent.tools.extractor import extract_entities, count_by_kind
from .agent.tools.router import route_query
from .agent.tools.validator import validate_extracted_entities
from .services.data_lookup import DatabaseDataLookup
from .services.emr import DatabaseEMRWriter
from .services.knowledge_gateway import LLMKnowledgeGateway

from contextlib import asynccontextmanager

logging.basicConfig(
    level=logging.DEBUG if settings.debug else settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database tables on startup"""
    database.init_db()
    logger.info("Database tables created")
    yield

# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Clinical query understanding engine: intent routing, entity extraction and validation",
    version="1.0.0",
    lifespan=lifespan
)

def build_orchestrator(db: Session) -> QueryOrchestrator:
    """One orchestrator per request, wired to database-backed collaborators"""
    return QueryOrchestrator(
        data_lookup=DatabaseDataLookup(db),
        knowledge_gateway=LLMKnowledgeGateway(db=db),
        emr_writer=DatabaseEMRWriter(db),
    )

@app.get("/health", response_model=schemas.HealthResponse)
def health_check():
    """Health check endpoint - returns {"status": "ok"}"""
    return {"status": "ok"}

@app.post("/route_query", response_model=AssistantRoute)
def classify_query(request: schemas.RouteQueryRequest):
    """
    Classify a clinician query.

    Returns the route type (data, llm, both), the data intent when the
    query targets structured data, and the classification confidence.
    """
    return route_query(request.query)

@app.post("/extract_entities", response_model=schemas.ExtractEntitiesResponse)
def extract(request: schemas.ExtractEntitiesRequest):
    """
    Extract clinical entities from narrative text and validate them.

    Returns every extracted entity (medications, diagnoses, procedures,
    instructions in that order), the subset that passed validation and
    its quality score.
    """
    entities = extract_entities(request.text)
    validation = validate_extracted_entities(entities)
    return schemas.ExtractEntitiesResponse(
        entities=entities,
        valid_entities=validation.valid_entities,
        quality_score=validation.quality_score,
        warnings=validation.warnings,
        entity_counts=count_by_kind(entities),
    )

@app.post("/assistant_query", response_model=schemas.AssistantQueryResponse)
async def assistant_query(
    request: schemas.AssistantQueryRequest,
    db: Session = Depends(database.get_db)
):
    """
    Answer a clinician query with patient data, clinical knowledge or both.

    Collaborator failures are reported in the body (ok=false, error,
    confidence 0), not as HTTP errors.
    """
    orchestrator = build_orchestrator(db)
    context = {"patient_id": request.patient_id, "visit_id": request.visit_id}
    result = await orchestrator.run_query(request.query, context)

    response = schemas.AssistantQueryResponse(**result.model_dump())
    if request.include_trajectory:
        trajectory = orchestrator.get_trajectory()
        response.trajectory = trajectory.to_dict() if trajectory else None
    return response

@app.post("/integrate_medication", response_model=schemas.IntegrateMedicationResponse)
async def integrate_medication(
    request: schemas.IntegrateMedicationRequest,
    db: Session = Depends(database.get_db)
):
    """
    Append a medication entity to a clinical record's plan.

    Returns:
    - Updated plan text if successful
    - 404 if the record doesn't exist
    - 422 if the entity is not a valid medication
    """
    orchestrator = build_orchestrator(db)
    result = await orchestrator.integrate_medication(request.entity, request.record_id)

    if not result.success:
        reason = result.metadata.get("reason")
        if reason == "record_not_found":
            raise HTTPException(status_code=404, detail=result.error)
        if reason in ("unsupported_kind", "invalid_entity"):
            raise HTTPException(status_code=422, detail=result.error)
        raise HTTPException(status_code=500, detail=result.error)

    return schemas.IntegrateMedicationResponse(
        record_id=request.record_id,
        snippet=result.metadata["snippet"],
        plan=result.data,
    )
