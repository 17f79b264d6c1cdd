from pydantic import BaseModel
from .models import UserRole

class CurrentUser(BaseModel):
    """Identity of the caller as returned by currentUser()"""
    id: int
    role: UserRole

class ProfileResponse(BaseModel):
    id: int
    full_name: str
    role: UserRole

    class Config:
        from_attributes = True
