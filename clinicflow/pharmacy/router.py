"""
Pharmacy Router - API endpoints for stock and dispensing.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..identity.dependencies import get_current_user
from ..identity.schemas import CurrentUser
from .schemas import StockCreate, BatchResponse, DispenseResult, MedicineResponse, PendingPrescriptionResponse
from .service import add_stock, list_inventory, list_medicines, dispense, pending_prescriptions

router = APIRouter()

@router.post("/stock", response_model=BatchResponse, status_code=status.HTTP_201_CREATED)
async def receive_stock(
    stock: StockCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """
    Receive a new batch; unknown medicines are added to the catalog
    """
    return add_stock(
        db,
        medicine_name=stock.medicine_name,
        batch_no=stock.batch_no,
        expiry=stock.expiry,
        quantity=stock.quantity,
        mrp=stock.mrp,
        strength=stock.strength,
        unit=stock.unit,
        user_id=current_user.id
    )

@router.get("/medicines", response_model=List[MedicineResponse])
async def get_medicines(
    q: Optional[str] = Query(None, description="Part of the medicine name"),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """
    Medicine catalog for prescription autocomplete
    """
    return list_medicines(db, q, limit)

@router.get("/inventory", response_model=List[BatchResponse])
async def get_inventory(
    medicine: Optional[str] = Query(None, description="Only batches of this medicine"),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """
    Stock batches, earliest expiry first
    """
    return list_inventory(db, medicine)

@router.get("/prescriptions/pending", response_model=List[PendingPrescriptionResponse])
async def get_pending_prescriptions(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    return pending_prescriptions(db)

@router.post("/prescriptions/{prescription_id}/dispense", response_model=DispenseResult)
async def dispense_prescription(
    prescription_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """
    Dispense a prescription; each line reports its own outcome
    """
    outcomes = dispense(db, prescription_id, user_id=current_user.id)
    return DispenseResult(prescription_id=prescription_id, outcomes=outcomes)
