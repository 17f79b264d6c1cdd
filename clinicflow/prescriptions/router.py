"""
Consultation Router - API endpoints for doctors.
"""
from typing import List, Optional
from datetime import date
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..identity.dependencies import get_current_user
from ..identity.schemas import CurrentUser
from ..appointments.schemas import VisitResponse
from ..appointments.service import doctor_queue
from .schemas import PrescriptionCreate, PrescriptionResponse
from .service import record_prescription, patient_history, get_prescription

router = APIRouter()

@router.get("/queue", response_model=List[VisitResponse])
async def get_my_queue(
    day: Optional[date] = Query(None, description="Day (defaults to today)"),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """
    The current doctor's waiting patients, in token order
    """
    return doctor_queue(db, current_user.id, day)

@router.post("/visits/{visit_id}/prescription", response_model=PrescriptionResponse, status_code=status.HTTP_201_CREATED)
async def create_prescription(
    visit_id: int,
    prescription: PrescriptionCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """
    Record the consultation for a waiting visit and close it
    """
    return record_prescription(
        db,
        visit_id=visit_id,
        doctor_id=current_user.id,
        diagnosis=prescription.diagnosis,
        lines=prescription.lines,
        notes=prescription.notes
    )

@router.get("/prescriptions/{prescription_id}", response_model=PrescriptionResponse)
async def read_prescription(
    prescription_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    return get_prescription(db, prescription_id)

@router.get("/patients/{patient_id}/history", response_model=List[PrescriptionResponse])
async def get_patient_history(
    patient_id: int,
    limit: int = Query(5, ge=1, le=50),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """
    A patient's most recent prescriptions
    """
    return patient_history(db, patient_id, limit)
