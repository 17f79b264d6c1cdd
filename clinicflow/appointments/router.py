"""
Reception Router - API endpoints for registration and OPD queues.
"""
from typing import List, Optional
from datetime import date
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..exceptions import ResourceNotFoundException
from ..identity.dependencies import get_current_user
from ..identity.schemas import CurrentUser, ProfileResponse
from ..identity.service import list_doctors
from ..patients.schemas import PatientResponse
from ..patients.service import find_patient_by_mobile
from .schemas import RegistrationRequest, TokenRequest, TokenResponse, VisitResponse, QueueResponse
from .service import assign_token, register_visit, doctor_queue, get_visit, list_visits, parse_visit_date, tokens_issued

router = APIRouter()

@router.get("/doctors", response_model=List[ProfileResponse])
async def get_doctors(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """
    List doctors patients can be queued for
    """
    return list_doctors(db)

@router.get("/patients/search", response_model=PatientResponse)
async def search_patient(
    mobile: str = Query(..., min_length=1, description="Mobile number"),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """
    Find a returning patient by mobile number
    """
    patient = find_patient_by_mobile(db, mobile)
    if not patient:
        raise ResourceNotFoundException("No patient registered with this mobile", entity="patients")
    return patient

@router.post("/visits", response_model=VisitResponse, status_code=status.HTTP_201_CREATED)
async def create_visit(
    registration: RegistrationRequest,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """
    Register a patient and issue a queue token

    Returning patients are matched by mobile number.
    """
    return register_visit(db, registration, user_id=current_user.id)

@router.post("/tokens", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def create_token(
    request: TokenRequest,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """
    Reserve the next token in a doctor's queue without registering a visit
    """
    day = parse_visit_date(request.visit_date)
    token = assign_token(db, request.doctor_id, day)
    return TokenResponse(doctor_id=request.doctor_id, visit_date=day, token_number=token)

@router.get("/visits", response_model=List[VisitResponse])
async def get_visits(
    day: Optional[date] = Query(None, description="Day (defaults to today)"),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """
    All visits registered on a day, newest first
    """
    return list_visits(db, day)

@router.get("/visits/{visit_id}", response_model=VisitResponse)
async def read_visit(
    visit_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    return get_visit(db, visit_id)

@router.get("/queue", response_model=QueueResponse)
async def get_queue(
    doctor_id: Optional[int] = Query(None, description="Doctor profile ID (omit for the unassigned queue)"),
    day: Optional[date] = Query(None, description="Day (defaults to today)"),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """
    Waiting patients in a doctor's queue, in token order
    """
    day = parse_visit_date(day)
    return QueueResponse(
        doctor_id=doctor_id,
        visit_date=day,
        last_token=tokens_issued(db, doctor_id, day),
        visits=doctor_queue(db, doctor_id, day)
    )
