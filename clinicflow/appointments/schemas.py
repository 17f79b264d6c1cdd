"""
Reception Schemas - Pydantic models for registration and queue data.
"""
from typing import Optional, List
from datetime import date, datetime
from pydantic import BaseModel, Field, validator
from .models import VisitStatus
from ..patients.schemas import PatientResponse

class RegistrationRequest(BaseModel):
    """
    Registration Schema - Used when reception registers a walk-in patient

    Fields:
    - name: Patient's full name
    - age: Age in years (optional)
    - gender: Patient's gender (optional)
    - mobile: Contact number; identifies returning patients
    - symptoms: Presenting symptoms (optional)
    - doctor_id: Doctor whose queue the token belongs to (optional)
    - visit_date: Day of the visit; defaults to today
    """
    name: str = Field(..., min_length=1, description="Patient's full name")
    age: Optional[int] = Field(None, ge=0, le=150, description="Age in years")
    gender: Optional[str] = Field(None, description="Patient's gender")
    mobile: str = Field(..., min_length=1, description="Contact number")
    symptoms: Optional[str] = Field(None, description="Presenting symptoms")
    doctor_id: Optional[int] = Field(None, description="Profile ID of the consulting doctor")
    visit_date: Optional[date] = Field(None, description="Day of the visit (defaults to today)")

    @validator("name", "mobile")
    def not_blank(cls, v):
        """Reject whitespace-only names and numbers"""
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()

class TokenRequest(BaseModel):
    doctor_id: Optional[int] = None
    visit_date: Optional[str] = None

class TokenResponse(BaseModel):
    doctor_id: Optional[int] = None
    visit_date: date
    token_number: int

class VisitResponse(BaseModel):
    """
    Visit Response Schema - Used when returning queue entries
    """
    id: int
    patient_id: int
    doctor_id: Optional[int] = None
    visit_date: date
    token_number: int
    status: VisitStatus
    created_at: Optional[datetime] = None
    patient: Optional[PatientResponse] = None

    class Config:
        from_attributes = True

class QueueResponse(BaseModel):
    doctor_id: Optional[int] = None
    visit_date: date
    last_token: int = 0
    visits: List[VisitResponse]
