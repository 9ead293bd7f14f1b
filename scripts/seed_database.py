#!/usr/bin/env python3
"""
Database seeding script for the assistant's demo data

Creates a demo patient with an MRI report, today's appointments and a
couple of pending clinical records so that every data intent
(age, mri, todayAppointments, pendingNotes) has something to answer.

Usage:
    python scripts/seed_database.py
"""
import sys
from datetime import date, datetime, time, timedelta
from pathlib import Path

# Add parent directory to path to import clinical_assistant modules
sys.path.append(str(Path(__file__).parent.parent))

from clinical_assistant.database import SessionLocal, init_db
from clinical_assistant.models import Patient, ImagingStudy, Appointment, ClinicalRecord

# Create all tables
init_db()

DEMO_PATIENT_ID = "patient-001"

def seed_demo_data():
    """Insert demo patient, imaging, agenda and records (idempotent)"""
    db = SessionLocal()
    today = date.today()

    try:
        if db.query(Patient).filter(Patient.id == DEMO_PATIENT_ID).first():
            print(f"⊘ Skipped (exists): {DEMO_PATIENT_ID}")
            return

        db.add(Patient(id=DEMO_PATIENT_ID, full_name="Lucía Fernández", birth_date=date(1989, 3, 12)))
        db.add(ImagingStudy(
            patient_id=DEMO_PATIENT_ID,
            modality="MRI",
            study_date=today - timedelta(days=60),
            summary="Protrusión discal L4-L5 sin compromiso radicular.",
        ))
        for hour in (9, 12):
            db.add(Appointment(
                patient_id=DEMO_PATIENT_ID,
                scheduled_at=datetime.combine(today, time(hour, 0)),
            ))
        db.add(ClinicalRecord(id="visit-001", patient_id=DEMO_PATIENT_ID, status="pending"))
        db.add(ClinicalRecord(id="visit-002", patient_id=DEMO_PATIENT_ID, status="pending"))
        db.commit()

        print(f"✓ Added patient {DEMO_PATIENT_ID} with 1 MRI, 2 appointments today, 2 pending records")
    finally:
        db.close()

if __name__ == "__main__":
    print("📋 Seeding database with demo data...\n")
    try:
        seed_demo_data()
    except Exception as e:
        print(f"\n❌ Error seeding database: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)
