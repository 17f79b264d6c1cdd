"""
Consultation Schemas - Pydantic models for recording prescriptions.
"""
from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field

class PrescriptionLineIn(BaseModel):
    """
    Schema for one prescribed medicine

    A line with every field blank is ignored; a line with a dosage or
    duration must name the medicine.
    """
    medicine_name: str = Field("", description="Medicine name as written by the doctor")
    dosage: Optional[str] = Field(None, description="e.g. 1-0-1")
    duration: Optional[str] = Field(None, description="e.g. 5 days")

class PrescriptionCreate(BaseModel):
    diagnosis: str = Field(..., description="Diagnosis (required)")
    notes: Optional[str] = None
    lines: List[PrescriptionLineIn] = Field(default_factory=list)

class PrescriptionLineResponse(BaseModel):
    id: int
    medicine_name: str
    dosage: Optional[str] = None
    duration: Optional[str] = None

    class Config:
        from_attributes = True

class PrescriptionResponse(BaseModel):
    """
    Prescription Response Schema - Used when returning prescriptions
    """
    id: int
    appointment_id: int
    patient_id: int
    doctor_id: Optional[int] = None
    diagnosis: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    lines: List[PrescriptionLineResponse] = []

    class Config:
        from_attributes = True
