"""Database-backed structured lookups for the assistant's data intents"""
import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinical_assistant.agent.models import DataIntent, LookupResult
from clinical_assistant.models import Appointment, ClinicalRecord, ImagingStudy, Patient
from clinical_assistant.services.base import DataLookup, DataLookupError

logger = logging.getLogger(__name__)


def age_in_years(birth_date: date, today: date) -> int:
    """Completed years between birth_date and today."""
    before_birthday = (today.month, today.day) < (birth_date.month, birth_date.day)
    return today.year - birth_date.year - int(before_birthday)


class DatabaseDataLookup(DataLookup):
    """
    Resolves data intents with SQLAlchemy queries.

    Answers are short Spanish sentences ready to render as markdown.
    """

    def __init__(self, db: Session, today: Optional[date] = None):
        """
        Args:
            db: Database session
            today: Reference date for age and agenda queries (defaults to today)
        """
        self.db = db
        self._today = today

    @property
    def today(self) -> date:
        return self._today or date.today()

    async def lookup(self, data_intent: DataIntent, params: Optional[Dict[str, Any]] = None) -> LookupResult:
        """
        Look up the fact behind a data intent.

        Args:
            data_intent: One of age, mri, todayAppointments, pendingNotes
            params: Request context; age and mri need 'patient_id'

        Returns:
            LookupResult (ok=False for unsupported intents or missing patient)

        Raises:
            DataLookupError: If the database query fails
        """
        params = params or {}
        try:
            intent = DataIntent(data_intent)
        except ValueError:
            return LookupResult(ok=False, answer_markdown="Intención no soportada.")

        handlers = {
            DataIntent.AGE: self._patient_age,
            DataIntent.MRI: self._latest_mri,
            DataIntent.TODAY_APPOINTMENTS: self._today_appointments,
            DataIntent.PENDING_NOTES: self._pending_notes,
        }

        try:
            return handlers[intent](params)
        except SQLAlchemyError as e:
            logger.error("Data lookup '%s' failed: %s", intent.value, e)
            raise DataLookupError(f"Data lookup failed: {str(e)}") from e

    def _get_patient(self, params: Dict[str, Any]) -> Optional[Patient]:
        patient_id = params.get("patient_id")
        if not patient_id:
            return None
        return self.db.query(Patient).filter(Patient.id == patient_id).first()

    def _patient_age(self, params: Dict[str, Any]) -> LookupResult:
        patient = self._get_patient(params)
        if patient is None:
            return LookupResult(ok=False, answer_markdown="No se encontró el paciente.")
        if patient.birth_date is None:
            return LookupResult(ok=False, answer_markdown="La fecha de nacimiento del paciente no está registrada.")

        age = age_in_years(patient.birth_date, self.today)
        return LookupResult(
            ok=True,
            answer_markdown=f"El paciente tiene {age} años.",
            data={"age": age, "birth_date": patient.birth_date.isoformat()},
        )

    def _latest_mri(self, params: Dict[str, Any]) -> LookupResult:
        patient = self._get_patient(params)
        if patient is None:
            return LookupResult(ok=False, answer_markdown="No se encontró el paciente.")

        study = (
            self.db.query(ImagingStudy)
            .filter(ImagingStudy.patient_id == patient.id, ImagingStudy.modality == "MRI")
            .order_by(ImagingStudy.study_date.desc())
            .first()
        )
        if study is None:
            return LookupResult(ok=True, answer_markdown="No hay resonancias registradas para este paciente.", data=None)

        summary = study.summary or "Sin informe."
        return LookupResult(
            ok=True,
            answer_markdown=f"Última resonancia: {study.study_date:%d/%m/%Y} - {summary}",
            data={"date": study.study_date.isoformat(), "summary": study.summary},
        )

    def _today_appointments(self, params: Dict[str, Any]) -> LookupResult:
        start = datetime.combine(self.today, time.min)
        end = start + timedelta(days=1)
        count = (
            self.db.query(Appointment)
            .filter(
                Appointment.scheduled_at >= start,
                Appointment.scheduled_at < end,
                Appointment.status != "cancelled",
            )
            .count()
        )

        if count == 0:
            answer = "No tienes citas programadas para hoy."
        elif count == 1:
            answer = "Tienes 1 cita programada para hoy."
        else:
            answer = f"Tienes {count} citas programadas para hoy."
        return LookupResult(ok=True, answer_markdown=answer, data={"count": count})

    def _pending_notes(self, params: Dict[str, Any]) -> LookupResult:
        total = self.db.query(ClinicalRecord).filter(ClinicalRecord.status == "pending").count()

        if total == 0:
            answer = "No tienes notas clínicas pendientes."
        elif total == 1:
            answer = "Tienes 1 nota clínica pendiente de revisión."
        else:
            answer = f"Tienes {total} notas clínicas pendientes de revisión."
        return LookupResult(ok=True, answer_markdown=answer, data={"total": total})
