"""
Billing Schemas - Pydantic models for pending charges and finalized bills.
"""
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field, validator
from .models import BillItemType, BillStatus, PaymentMode

class ExtraCharge(BaseModel):
    """
    Ad hoc charge added at the billing counter

    Fields:
    - name: What is charged for, e.g. Consultation Fee
    - item_type: Line type (consultation by default)
    - quantity: Units charged
    - unit_price: Price per unit
    """
    name: str = Field(..., min_length=1)
    item_type: BillItemType = BillItemType.CONSULTATION
    quantity: int = Field(1, ge=1)
    unit_price: Decimal = Field(..., ge=0)

    @validator("name")
    def name_not_blank(cls, v):
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()

class PendingLine(BaseModel):
    """A dispensed item not yet charged on any bill, priced at dispense time"""
    dispense_record_id: int
    name: str
    item_type: BillItemType = BillItemType.MEDICINE
    quantity: int
    unit_price: Decimal
    amount: Decimal

class PendingBill(BaseModel):
    patient_id: int
    lines: List[PendingLine]
    subtotal: Decimal

class PatientPendingSummary(BaseModel):
    """A patient waiting at the billing counter"""
    patient_id: int
    name: str
    items: int
    subtotal: Decimal

class FinalizeBillRequest(BaseModel):
    extra_lines: List[ExtraCharge] = Field(default_factory=list)
    payment_mode: PaymentMode = PaymentMode.CASH

class BillSummary(BaseModel):
    bill_id: int
    invoice_no: str
    total: Decimal

class BillLineResponse(BaseModel):
    id: int
    item_name: str
    item_type: BillItemType
    quantity: int
    unit_price: Decimal
    dispense_record_id: Optional[int] = None

    class Config:
        from_attributes = True

class PaymentResponse(BaseModel):
    amount: Decimal
    payment_mode: PaymentMode
    paid_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class BillResponse(BaseModel):
    id: int
    invoice_no: str
    patient_id: int
    total_amount: Decimal
    status: BillStatus
    created_at: Optional[datetime] = None
    items: List[BillLineResponse]
    payment: Optional[PaymentResponse] = None

    class Config:
        from_attributes = True
