"""
Pharmacy Schemas - Pydantic models for stock intake and dispensing.
"""
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
from pydantic import BaseModel, Field
from .models import DispenseStatus

class StockCreate(BaseModel):
    """
    Stock Intake Schema - Used when the pharmacy receives a batch

    Fields:
    - medicine_name: Name; matched case-insensitively, created if new
    - batch_no: Manufacturer batch number
    - expiry: Expiry date
    - quantity: Units received
    - mrp: Unit price
    - strength / unit: Catalog details for a new medicine
    """
    medicine_name: str = Field(..., min_length=1)
    batch_no: str = Field(..., min_length=1)
    expiry: date
    quantity: int = Field(..., gt=0)
    mrp: Decimal = Field(..., ge=0)
    strength: Optional[str] = None
    unit: Optional[str] = None

class MedicineResponse(BaseModel):
    id: int
    name: str
    strength: Optional[str] = None
    unit: Optional[str] = None

    class Config:
        from_attributes = True

class BatchResponse(BaseModel):
    id: int
    medicine_id: int
    batch_no: str
    expiry: date
    quantity: int
    mrp: Decimal
    medicine: Optional[MedicineResponse] = None

    class Config:
        from_attributes = True

class DispenseOutcome(BaseModel):
    """
    Result of dispensing one prescription line

    batch_id, quantity and unit_price are only set when status is dispensed.
    """
    prescription_line_id: int
    medicine_name: str
    status: DispenseStatus
    batch_id: Optional[int] = None
    quantity: int = 0
    unit_price: Optional[Decimal] = None

class DispenseResult(BaseModel):
    prescription_id: int
    outcomes: List[DispenseOutcome]

class PendingPrescriptionResponse(BaseModel):
    id: int
    patient_id: int
    diagnosis: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
