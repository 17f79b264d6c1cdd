from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field
from .models import BedStatus, AdmissionStatus

class BedCreate(BaseModel):
    bed_number: str = Field(..., min_length=1)
    ward: Optional[str] = None

class AdmitRequest(BaseModel):
    patient_id: int

class AdmissionResponse(BaseModel):
    id: int
    patient_id: int
    bed_id: int
    status: AdmissionStatus
    admit_date: Optional[datetime] = None
    discharge_date: Optional[datetime] = None

    class Config:
        from_attributes = True

class BedResponse(BaseModel):
    id: int
    bed_number: str
    ward: Optional[str] = None
    status: BedStatus

    class Config:
        from_attributes = True

class BedListResponse(BaseModel):
    beds: List[BedResponse]
    total: int
