"""EMR write path: medication entities become plan snippets in a clinical record"""
import logging

from sqlalchemy.orm import Session

from clinical_assistant.agent.models import MedicationEntity
from clinical_assistant.models import ClinicalRecord
from clinical_assistant.services.base import EMRWriter, RecordNotFoundError

logger = logging.getLogger(__name__)


def format_medication_snippet(entity: MedicationEntity) -> str:
    """
    Render a medication as one plan line.

    Example: "- Ibuprofeno 400 mg · vía oral · cada 8 horas · durante 7 días"
    """
    head = entity.name.capitalize()
    if entity.strength:
        head = f"{head} {entity.strength}"

    parts = [head]
    if entity.dose and entity.dose != entity.strength:
        parts.append(entity.dose)
    if entity.route:
        parts.append(f"vía {entity.route}")
    if entity.frequency:
        parts.append(entity.frequency)
    if entity.duration_days is not None:
        unit = "día" if entity.duration_days == 1 else "días"
        parts.append(f"durante {entity.duration_days} {unit}")

    return "- " + " · ".join(parts)


class DatabaseEMRWriter(EMRWriter):
    """Appends snippets to ClinicalRecord.plan, one per line."""

    def __init__(self, db: Session):
        self.db = db

    async def append_plan_snippet(self, record_id: str, snippet: str) -> str:
        """
        Append a snippet to the record's plan.

        Raises:
            RecordNotFoundError: If no record has this id
        """
        record = self.db.query(ClinicalRecord).filter(ClinicalRecord.id == record_id).first()
        if record is None:
            raise RecordNotFoundError(f"Clinical record not found: {record_id}")

        current = (record.plan or "").rstrip("\n")
        record.plan = f"{current}\n{snippet}" if current else snippet
        self.db.commit()
        self.db.refresh(record)

        logger.info("Appended plan snippet to record %s", record_id)
        return record.plan
