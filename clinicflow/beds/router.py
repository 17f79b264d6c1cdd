"""
Bed Router - API endpoints for IPD bed management.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..exceptions import ResourceNotFoundException
from ..identity.dependencies import get_current_user
from ..identity.schemas import CurrentUser
from .schemas import BedCreate, BedResponse, BedListResponse, AdmitRequest, AdmissionResponse
from .service import add_bed, list_beds, admit, discharge, mark_clean, active_admission, get_bed

router = APIRouter()

@router.post("/", response_model=BedResponse, status_code=status.HTTP_201_CREATED)
async def create_bed(
    bed: BedCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    return add_bed(db, bed.bed_number, bed.ward, user_id=current_user.id)

@router.get("/", response_model=BedListResponse)
async def get_beds(
    ward: Optional[str] = Query(None, description="Only beds in this ward"),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """
    Beds ordered by bed number
    """
    beds = list_beds(db, ward)
    return BedListResponse(beds=beds, total=len(beds))

@router.get("/{bed_id}/admission", response_model=AdmissionResponse)
async def get_active_admission(
    bed_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    get_bed(db, bed_id)
    admission = active_admission(db, bed_id)
    if not admission:
        raise ResourceNotFoundException("Bed has no active admission", entity="beds", entity_id=bed_id)
    return admission

@router.post("/{bed_id}/admit", response_model=AdmissionResponse, status_code=status.HTTP_201_CREATED)
async def admit_patient(
    bed_id: int,
    request: AdmitRequest,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """
    Admit a patient into an available bed
    """
    return admit(db, bed_id, request.patient_id, user_id=current_user.id)

@router.post("/{bed_id}/discharge", response_model=AdmissionResponse)
async def discharge_patient(
    bed_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """
    Discharge the bed's patient; the bed goes to cleaning
    """
    return discharge(db, bed_id, user_id=current_user.id)

@router.post("/{bed_id}/clean", response_model=BedResponse)
async def clean_bed(
    bed_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    return mark_clean(db, bed_id, user_id=current_user.id)
