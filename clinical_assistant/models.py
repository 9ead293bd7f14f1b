from sqlalchemy import Column, Integer, String, Text, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import hashlib

from .database import Base


def utcnow():
    """Get current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


class Patient(Base):
    """Patient demographics used by the age lookup"""
    __tablename__ = "patients"

    id = Column(String(64), primary_key=True, index=True)
    full_name = Column(String(255), nullable=False)
    birth_date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    imaging_studies = relationship("ImagingStudy", back_populates="patient")
    appointments = relationship("Appointment", back_populates="patient")
    clinical_records = relationship("ClinicalRecord", back_populates="patient")


class ImagingStudy(Base):
    """Imaging report attached to a patient (MRI, X-ray, ultrasound)"""
    __tablename__ = "imaging_studies"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(String(64), ForeignKey("patients.id"), nullable=False, index=True)
    modality = Column(String(20), nullable=False, default="MRI")  # 'MRI', 'XR', 'US'
    study_date = Column(Date, nullable=False)
    summary = Column(Text, nullable=False, default="")

    patient = relationship("Patient", back_populates="imaging_studies")


class Appointment(Base):
    """Scheduled visit on the clinician's agenda"""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(String(64), ForeignKey("patients.id"), nullable=True, index=True)
    scheduled_at = Column(DateTime, nullable=False, index=True)
    status = Column(String(20), default="scheduled")  # 'scheduled', 'cancelled', 'completed'

    patient = relationship("Patient", back_populates="appointments")


class ClinicalRecord(Base):
    """
    Clinical note for one visit.

    The plan field receives medication snippets integrated from the
    assistant; status 'pending' marks notes awaiting review/signature.
    """
    __tablename__ = "clinical_records"

    id = Column(String(64), primary_key=True, index=True)
    patient_id = Column(String(64), ForeignKey("patients.id"), nullable=True, index=True)
    plan = Column(Text, nullable=False, default="")
    status = Column(String(20), default="pending", index=True)  # 'pending', 'signed'
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    patient = relationship("Patient", back_populates="clinical_records")


class LLMCache(Base):
    """Cache for knowledge gateway responses to reduce API costs"""
    __tablename__ = "llm_cache"

    id = Column(Integer, primary_key=True, index=True)
    prompt_hash = Column(String(64), unique=True, index=True)
    prompt = Column(Text, nullable=False)
    response = Column(Text, nullable=False)
    provider = Column(String(50), nullable=False)
    model = Column(String(100), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    @staticmethod
    def hash_prompt(prompt: str, provider: str, model: str) -> str:
        """Create unique hash for prompt + provider + model"""
        combined = f"{prompt}:{provider}:{model}"
        return hashlib.sha256(combined.encode()).hexdigest()
