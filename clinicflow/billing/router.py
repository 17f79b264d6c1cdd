"""
Billing Router - API endpoints for the billing counter.
"""
from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..identity.dependencies import get_current_user
from ..identity.schemas import CurrentUser
from .schemas import PendingBill, PatientPendingSummary, FinalizeBillRequest, BillSummary, BillResponse
from .service import pending_for_patient, patients_pending_billing, finalize_bill, get_bill, bills_for_patient

router = APIRouter()

@router.get("/pending", response_model=List[PatientPendingSummary])
async def get_billing_queue(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """
    Patients with dispensed items awaiting billing, with their subtotals
    """
    return patients_pending_billing(db)

@router.get("/patients/{patient_id}/pending", response_model=PendingBill)
async def get_pending(
    patient_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """
    Dispensed items not yet billed for a patient
    """
    return pending_for_patient(db, patient_id)

@router.post("/patients/{patient_id}/bills", response_model=BillSummary, status_code=status.HTTP_201_CREATED)
async def create_bill(
    patient_id: int,
    request: FinalizeBillRequest,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """
    Bill all pending items plus extra charges and record full payment
    """
    return finalize_bill(
        db,
        patient_id,
        extra_lines=request.extra_lines,
        payment_mode=request.payment_mode,
        user_id=current_user.id
    )

@router.get("/patients/{patient_id}/bills", response_model=List[BillResponse])
async def get_patient_bills(
    patient_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """
    A patient's finalized bills, newest first
    """
    return bills_for_patient(db, patient_id)

@router.get("/bills/{bill_id}", response_model=BillResponse)
async def read_bill(
    bill_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    return get_bill(db, bill_id)
