"""
Reception Service - Patient registration and daily token sequencing.

Token numbers are reserved from a per-(doctor, day) counter row that is
incremented in place, never derived by counting existing visits, so
concurrent registrations cannot receive the same number.
"""
from typing import List, Optional, Union
from datetime import date, datetime
from sqlalchemy.orm import Session, joinedload
import logging

from ..config import settings
from ..core.audit_service import record_audit
from ..core.events import DomainEvent, EventBus, notifier
from ..core.sequences import TOKEN_SCOPE, current_value, reserve_next
from ..core.transactions import run_with_retries
from ..exceptions import InvalidInputException, ResourceNotFoundException
from ..identity.service import get_doctor, require_profile
from ..patients.service import upsert_patient
from .models import Visit, VisitStatus
from .schemas import RegistrationRequest

# Set up logging
logger = logging.getLogger(__name__)

def parse_visit_date(visit_date: Union[date, datetime, str, None]) -> date:
    """
    Normalize a visit date, defaulting to today.

    Args:
        visit_date: A date, datetime, ISO-8601 date string or None

    Returns:
        date: Calendar day

    Raises:
        InvalidInputException: If the value is not a valid date
    """
    if visit_date is None:
        return date.today()
    if isinstance(visit_date, datetime):
        return visit_date.date()
    if isinstance(visit_date, date):
        return visit_date
    if isinstance(visit_date, str):
        try:
            return date.fromisoformat(visit_date.strip())
        except ValueError:
            raise InvalidInputException(f"Malformed visit date '{visit_date}'", entity="appointments")
    raise InvalidInputException(f"Unsupported visit date value {visit_date!r}", entity="appointments")

def _reserve_token(db: Session, doctor_id: Optional[int], day: date) -> int:
    return reserve_next(db, TOKEN_SCOPE, Visit.queue_key_for(doctor_id), day)

def tokens_issued(
    db: Session,
    doctor_id: Optional[int] = None,
    visit_date: Union[date, datetime, str, None] = None
) -> int:
    """Highest token issued so far in a doctor's queue for a day (0 if none)."""
    return current_value(db, TOKEN_SCOPE, Visit.queue_key_for(doctor_id), parse_visit_date(visit_date))

def assign_token(
    db: Session,
    doctor_id: Optional[int] = None,
    visit_date: Union[date, datetime, str, None] = None
) -> int:
    """
    Reserve the next queue token for a doctor on a day.

    Args:
        db: Database session
        doctor_id: Doctor profile ID, or None for the unassigned queue
        visit_date: Day of the visit (defaults to today)

    Returns:
        int: Token number, unique within (doctor, day)

    Raises:
        InvalidInputException: If visit_date is malformed
        ConflictException: If the reservation kept conflicting
    """
    day = parse_visit_date(visit_date)
    token = run_with_retries(
        db,
        "token assignment",
        lambda: _reserve_token(db, doctor_id, day),
        settings.sequence_max_retries
    )
    logger.info(f"Token #{token} reserved for queue {Visit.queue_key_for(doctor_id)} on {day}")
    return token

def register_visit(
    db: Session,
    registration: RegistrationRequest,
    user_id: Optional[int] = None,
    bus: EventBus = notifier
) -> Visit:
    """
    Register a walk-in patient and issue a queue token.

    A returning patient (matched by mobile) has age and symptoms refreshed;
    otherwise a new patient is created. The patient write, token reservation
    and visit insert commit together.

    Args:
        db: Database session
        registration: Registration details
        user_id: Profile ID of the receptionist (for the audit trail)
        bus: Event bus notified after commit

    Returns:
        Visit: The waiting visit with its token number

    Raises:
        InvalidInputException: If visit_date is malformed
        ResourceNotFoundException: If doctor_id is not a doctor
        ConflictException: If the token reservation kept conflicting
    """
    day = parse_visit_date(registration.visit_date)

    def work() -> Visit:
        require_profile(db, user_id)
        if registration.doctor_id is not None:
            get_doctor(db, registration.doctor_id)
        patient = upsert_patient(
            db,
            name=registration.name,
            mobile=registration.mobile,
            age=registration.age,
            gender=registration.gender,
            symptoms=registration.symptoms
        )
        token = _reserve_token(db, registration.doctor_id, day)
        visit = Visit(
            patient_id=patient.id,
            doctor_id=registration.doctor_id,
            queue_key=Visit.queue_key_for(registration.doctor_id),
            visit_date=day,
            token_number=token,
            status=VisitStatus.WAITING
        )
        db.add(visit)
        db.flush()
        record_audit(
            db, "VISIT_REGISTERED", entity="appointments", entity_id=visit.id, user_id=user_id,
            details={"patient_id": patient.id, "doctor_id": registration.doctor_id, "token_number": token}
        )
        return visit

    visit = run_with_retries(db, "visit registration", work, settings.sequence_max_retries)
    db.refresh(visit)
    logger.info(f"Visit {visit.id} registered: patient {visit.patient_id}, token #{visit.token_number}")
    bus.publish(DomainEvent.VISIT_REGISTERED, visit.id)
    return visit

def get_visit(db: Session, visit_id: int) -> Visit:
    """
    Get a visit by ID.

    Raises:
        ResourceNotFoundException: If visit not found
    """
    visit = db.query(Visit).filter(Visit.id == visit_id).first()
    if not visit:
        raise ResourceNotFoundException("Visit not found", entity="appointments", entity_id=visit_id)
    return visit

def doctor_queue(
    db: Session,
    doctor_id: Optional[int],
    day: Union[date, datetime, str, None] = None
) -> List[Visit]:
    """Waiting visits in a doctor's queue for a day, in token order."""
    day = parse_visit_date(day)
    return (
        db.query(Visit)
        .options(joinedload(Visit.patient))
        .filter(
            Visit.queue_key == Visit.queue_key_for(doctor_id),
            Visit.visit_date == day,
            Visit.status == VisitStatus.WAITING
        )
        .order_by(Visit.token_number.asc())
        .all()
    )

def list_visits(db: Session, day: Union[date, datetime, str, None] = None) -> List[Visit]:
    """All visits registered for a day, newest first."""
    day = parse_visit_date(day)
    return (
        db.query(Visit)
        .options(joinedload(Visit.patient))
        .filter(Visit.visit_date == day)
        .order_by(Visit.id.desc())
        .all()
    )
