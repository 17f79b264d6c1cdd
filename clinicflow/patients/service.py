"""
Patient Service - Lookup and registration of patients.
"""
from typing import Optional
from sqlalchemy.orm import Session
import logging

from ..exceptions import ResourceNotFoundException
from .models import Patient

# Set up logging
logger = logging.getLogger(__name__)

def get_patient(db: Session, patient_id: int) -> Patient:
    """
    Get a patient by ID.

    Raises:
        ResourceNotFoundException: If patient not found
    """
    patient = db.query(Patient).filter(Patient.id == patient_id).first()
    if not patient:
        raise ResourceNotFoundException("Patient not found", entity="patients", entity_id=patient_id)
    return patient

def find_patient_by_mobile(db: Session, mobile: str) -> Optional[Patient]:
    """
    Find a returning patient by mobile number.

    Mobile numbers are only softly unique, so the earliest registration wins.

    Args:
        db: Database session
        mobile: Mobile number as entered at reception

    Returns:
        Optional[Patient]: Matching patient or None
    """
    return (
        db.query(Patient)
        .filter(Patient.mobile == mobile.strip())
        .order_by(Patient.id.asc())
        .first()
    )

def upsert_patient(
    db: Session,
    name: str,
    mobile: str,
    age: Optional[int] = None,
    gender: Optional[str] = None,
    symptoms: Optional[str] = None
) -> Patient:
    """
    Refresh a returning patient's age and symptoms, or register a new patient.

    Does not commit; the caller owns the transaction.

    Returns:
        Patient: The existing or newly added patient (flushed, so it has an id)
    """
    patient = find_patient_by_mobile(db, mobile)
    if patient:
        if age is not None:
            patient.age = age
        patient.symptoms = symptoms
        logger.info(f"Returning patient {patient.id} found by mobile")
    else:
        patient = Patient(
            name=name.strip(),
            mobile=mobile.strip(),
            age=age,
            gender=gender,
            symptoms=symptoms
        )
        db.add(patient)
    db.flush()
    return patient
