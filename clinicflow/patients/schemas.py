from typing import Optional
from datetime import datetime
from pydantic import BaseModel

class PatientResponse(BaseModel):
    id: int
    name: str
    age: Optional[int] = None
    gender: Optional[str] = None
    mobile: str
    symptoms: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
