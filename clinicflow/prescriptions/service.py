"""
Consultation Service - Recording diagnoses and prescribed medicines.

Saving a prescription closes the visit's queue entry in the same
transaction: the waiting -> completed transition is a conditional update,
so a visit can be prescribed for exactly once.
"""
from typing import List, Optional, Sequence, Tuple, Union, Dict, Any
from datetime import datetime, timezone
from pydantic import ValidationError
from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload
import logging

from ..core.audit_service import record_audit
from ..core.events import DomainEvent, EventBus, notifier
from ..core.transactions import transaction
from ..exceptions import InvalidInputException, ResourceNotFoundException
from ..identity.service import require_profile
from ..appointments.models import Visit, VisitStatus
from .models import Prescription, PrescriptionLine
from .schemas import PrescriptionLineIn

# Set up logging
logger = logging.getLogger(__name__)

LineInput = Union[PrescriptionLineIn, Dict[str, Any]]

def _clean(value: Optional[str]) -> str:
    return (value or "").strip()

def normalize_lines(lines: Sequence[LineInput]) -> List[Tuple[str, Optional[str], Optional[str]]]:
    """
    Validate prescription lines and drop the empty ones.

    Args:
        lines: Line schemas or plain dicts

    Returns:
        List of (medicine_name, dosage, duration) tuples

    Raises:
        InvalidInputException: If a line is malformed, or a non-empty line has no medicine name
    """
    cleaned = []
    for index, raw in enumerate(lines or []):
        try:
            line = raw if isinstance(raw, PrescriptionLineIn) else PrescriptionLineIn(**raw)
        except (TypeError, ValidationError) as e:
            detail = e.errors()[0]["msg"] if isinstance(e, ValidationError) else str(e)
            raise InvalidInputException(
                f"Prescription line {index + 1} is invalid: {detail}",
                entity="prescription_medicines",
                entity_id=index + 1
            )
        name, dosage, duration = _clean(line.medicine_name), _clean(line.dosage), _clean(line.duration)
        if not (name or dosage or duration):
            continue
        if not name:
            raise InvalidInputException(
                f"Prescription line {index + 1} has no medicine name",
                entity="prescription_medicines",
                entity_id=index + 1
            )
        cleaned.append((name, dosage or None, duration or None))
    return cleaned

def record_prescription(
    db: Session,
    visit_id: int,
    doctor_id: Optional[int],
    diagnosis: str,
    lines: Sequence[LineInput] = (),
    notes: Optional[str] = None,
    bus: EventBus = notifier
) -> Prescription:
    """
    Record a consultation for a waiting visit and complete the visit.

    Args:
        db: Database session
        visit_id: ID of the waiting visit
        doctor_id: Profile ID of the prescribing doctor
        diagnosis: Diagnosis text (required)
        lines: Prescribed medicines; may be empty
        notes: Optional advice
        bus: Event bus notified after commit

    Returns:
        Prescription: The saved prescription with its lines

    Raises:
        InvalidInputException: If diagnosis is blank or a line has no medicine name
        ResourceNotFoundException: If the visit is unknown or already completed, or
            doctor_id names no profile
    """
    diagnosis = _clean(diagnosis)
    if not diagnosis:
        raise InvalidInputException("Diagnosis is required", entity="prescriptions")
    medicine_lines = normalize_lines(lines)

    with transaction(db, "prescription recording"):
        require_profile(db, doctor_id)
        result = db.execute(
            update(Visit)
            .where(Visit.id == visit_id, Visit.status == VisitStatus.WAITING)
            .values(status=VisitStatus.COMPLETED, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ResourceNotFoundException(
                "Visit is not waiting in any queue (unknown or already completed)",
                entity="appointments",
                entity_id=visit_id
            )
        patient_id = db.execute(select(Visit.patient_id).where(Visit.id == visit_id)).scalar_one()

        prescription = Prescription(
            appointment_id=visit_id,
            patient_id=patient_id,
            doctor_id=doctor_id,
            diagnosis=diagnosis,
            notes=_clean(notes) or None
        )
        prescription.lines = [
            PrescriptionLine(medicine_name=name, dosage=dosage, duration=duration)
            for name, dosage, duration in medicine_lines
        ]
        db.add(prescription)
        db.flush()
        record_audit(
            db, "PRESCRIPTION_RECORDED", entity="prescriptions", entity_id=prescription.id,
            user_id=doctor_id, details={"appointment_id": visit_id, "lines": len(medicine_lines)}
        )

    db.refresh(prescription)
    logger.info(
        f"Prescription {prescription.id} recorded for visit {visit_id} "
        f"with {len(medicine_lines)} medicine line(s)"
    )
    bus.publish(DomainEvent.PRESCRIPTION_RECORDED, prescription.id)
    return prescription

def get_prescription(db: Session, prescription_id: int) -> Prescription:
    """
    Get a prescription with its lines.

    Raises:
        ResourceNotFoundException: If prescription not found
    """
    prescription = (
        db.query(Prescription)
        .options(selectinload(Prescription.lines))
        .filter(Prescription.id == prescription_id)
        .first()
    )
    if not prescription:
        raise ResourceNotFoundException("Prescription not found", entity="prescriptions", entity_id=prescription_id)
    return prescription

def patient_history(db: Session, patient_id: int, limit: int = 5) -> List[Prescription]:
    """A patient's most recent prescriptions, newest first."""
    return (
        db.query(Prescription)
        .options(selectinload(Prescription.lines))
        .filter(Prescription.patient_id == patient_id)
        .order_by(Prescription.created_at.desc(), Prescription.id.desc())
        .limit(limit)
        .all()
    )
