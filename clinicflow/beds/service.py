"""
Bed Service - Occupancy state machine for inpatient beds.

Beds move available -> occupied -> cleaning -> available and nothing else.
Every move is a conditional update on the bed's current status, taken in
the same transaction as the admission change that goes with it, so a failed
move leaves both the bed and its admissions untouched.
"""
from typing import List, Optional
from datetime import datetime, timezone
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import logging

from ..core.audit_service import record_audit
from ..core.events import DomainEvent, EventBus, notifier
from ..core.transactions import transaction
from ..exceptions import InvalidInputException, InvalidTransitionException, ResourceNotFoundException
from ..identity.service import require_profile
from ..patients.service import get_patient
from .models import Bed, BedStatus, Admission, AdmissionStatus

# Set up logging
logger = logging.getLogger(__name__)

def get_bed(db: Session, bed_id: int, lock: bool = False) -> Bed:
    """
    Get a bed by ID, optionally locking its row.

    Raises:
        ResourceNotFoundException: If bed not found
    """
    query = select(Bed).where(Bed.id == bed_id)
    if lock:
        query = query.with_for_update()
    bed = db.execute(query).scalars().first()
    if not bed:
        raise ResourceNotFoundException("Bed not found", entity="beds", entity_id=bed_id)
    return bed

def active_admission(db: Session, bed_id: int, lock: bool = False) -> Optional[Admission]:
    """The admission currently occupying a bed, if any."""
    query = select(Admission).where(
        Admission.bed_id == bed_id,
        Admission.status == AdmissionStatus.ADMITTED
    )
    if lock:
        query = query.with_for_update()
    return db.execute(query).scalars().first()

def _move_bed(db: Session, bed: Bed, target: BedStatus) -> None:
    """
    Apply one state machine edge to a bed.

    Raises:
        InvalidTransitionException: If the edge is not permitted from the bed's
            current state, or the state changed underneath us
    """
    current = BedStatus(bed.status)
    if not bed.can_transition_to(target):
        raise InvalidTransitionException(
            f"Bed {bed.bed_number} cannot go from {current.value} to {target.value}",
            entity="beds",
            entity_id=bed.id
        )
    result = db.execute(
        update(Bed)
        .where(Bed.id == bed.id, Bed.status == current)
        .values(status=target, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InvalidTransitionException(
            f"Bed {bed.bed_number} changed state concurrently",
            entity="beds",
            entity_id=bed.id
        )
    db.expire(bed)

def _bed_number_taken(db: Session, bed_number: str) -> bool:
    return db.query(Bed.id).filter(Bed.bed_number == bed_number).first() is not None

def add_bed(
    db: Session,
    bed_number: str,
    ward: Optional[str] = None,
    user_id: Optional[int] = None,
    bus: EventBus = notifier
) -> Bed:
    """
    Register a new bed in the available state.

    Raises:
        InvalidInputException: If the bed number is blank or already used
    """
    if not bed_number or not bed_number.strip():
        raise InvalidInputException("Bed number is required", entity="beds")
    bed_number = bed_number.strip()

    with transaction(db, "bed registration"):
        require_profile(db, user_id)
        if _bed_number_taken(db, bed_number):
            raise InvalidInputException(f"Bed number {bed_number} already exists", entity="beds")
        bed = Bed(bed_number=bed_number, ward=ward, status=BedStatus.AVAILABLE)
        db.add(bed)
        try:
            db.flush()
        except IntegrityError:
            raise InvalidInputException(f"Bed number {bed_number} already exists", entity="beds")
        record_audit(db, "BED_ADDED", entity="beds", entity_id=bed.id, user_id=user_id, details={"ward": ward})

    db.refresh(bed)
    logger.info(f"Bed {bed.id} ({bed.bed_number}) added to ward {ward}")
    bus.publish(DomainEvent.BED_ADDED, bed.id)
    return bed

def list_beds(db: Session, ward: Optional[str] = None) -> List[Bed]:
    """
    Beds ordered by bed number, optionally for one ward.

    Bed numbers are compared as text, so "B10" sorts before "B2".
    """
    query = db.query(Bed)
    if ward:
        query = query.filter(Bed.ward == ward)
    return query.order_by(Bed.bed_number.asc()).all()

def admit(
    db: Session,
    bed_id: int,
    patient_id: int,
    user_id: Optional[int] = None,
    bus: EventBus = notifier
) -> Admission:
    """
    Admit a patient into an available bed.

    Args:
        db: Database session
        bed_id: ID of the bed
        patient_id: ID of the patient
        user_id: Profile ID of the admitting staff member
        bus: Event bus notified after commit

    Returns:
        Admission: The new active admission

    Raises:
        ResourceNotFoundException: If the bed or patient does not exist
        InvalidTransitionException: If the bed is not available
    """
    with transaction(db, "admission"):
        require_profile(db, user_id)
        bed = get_bed(db, bed_id, lock=True)
        get_patient(db, patient_id)
        _move_bed(db, bed, BedStatus.OCCUPIED)

        admission = Admission(
            patient_id=patient_id,
            bed_id=bed_id,
            status=AdmissionStatus.ADMITTED,
            admitted_by=user_id
        )
        db.add(admission)
        try:
            db.flush()
        except IntegrityError:
            raise InvalidTransitionException(
                "Bed already has an active admission",
                entity="beds",
                entity_id=bed_id
            )
        record_audit(
            db, "PATIENT_ADMITTED", entity="admissions", entity_id=admission.id, user_id=user_id,
            details={"bed_id": bed_id, "patient_id": patient_id}
        )

    db.refresh(admission)
    logger.info(f"Patient {patient_id} admitted to bed {bed_id} (admission {admission.id})")
    bus.publish(DomainEvent.PATIENT_ADMITTED, admission.id)
    return admission

def discharge(
    db: Session,
    bed_id: int,
    user_id: Optional[int] = None,
    bus: EventBus = notifier
) -> Admission:
    """
    Discharge the patient occupying a bed and send the bed for cleaning.

    Returns:
        Admission: The closed admission

    Raises:
        ResourceNotFoundException: If the bed does not exist
        InvalidTransitionException: If the bed has no active admission or is not occupied
    """
    with transaction(db, "discharge"):
        require_profile(db, user_id)
        bed = get_bed(db, bed_id, lock=True)
        admission = active_admission(db, bed_id, lock=True)
        if admission is None:
            raise InvalidTransitionException(
                f"Bed {bed.bed_number} has no active admission",
                entity="beds",
                entity_id=bed_id
            )
        _move_bed(db, bed, BedStatus.CLEANING)

        admission.status = AdmissionStatus.DISCHARGED
        admission.discharge_date = datetime.now(timezone.utc)
        db.flush()
        record_audit(
            db, "PATIENT_DISCHARGED", entity="admissions", entity_id=admission.id, user_id=user_id,
            details={"bed_id": bed_id, "patient_id": admission.patient_id}
        )

    db.refresh(admission)
    logger.info(f"Admission {admission.id} discharged; bed {bed_id} sent for cleaning")
    bus.publish(DomainEvent.PATIENT_DISCHARGED, admission.id)
    return admission

def mark_clean(
    db: Session,
    bed_id: int,
    user_id: Optional[int] = None,
    bus: EventBus = notifier
) -> Bed:
    """
    Return a cleaned bed to the available pool.

    Raises:
        ResourceNotFoundException: If the bed does not exist
        InvalidTransitionException: If the bed is not being cleaned
    """
    with transaction(db, "bed cleaning"):
        require_profile(db, user_id)
        bed = get_bed(db, bed_id, lock=True)
        _move_bed(db, bed, BedStatus.AVAILABLE)
        record_audit(db, "BED_CLEANED", entity="beds", entity_id=bed_id, user_id=user_id)

    db.refresh(bed)
    logger.info(f"Bed {bed_id} cleaned and available")
    bus.publish(DomainEvent.BED_CLEANED, bed_id)
    return bed
