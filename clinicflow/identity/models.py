"""
Profile Model - Maps an identity-provider user id to a display name and role.
"""
from sqlalchemy import Column, Integer, String, DateTime, func
import enum
from ..database import Base, value_enum

class UserRole(str, enum.Enum):
    """Enum for staff roles"""
    ADMIN = "admin"
    RECEPTIONIST = "receptionist"
    DOCTOR = "doctor"
    PHARMACIST = "pharmacist"
    BILLING = "billing"
    NURSE = "nurse"

class Profile(Base):
    """
    Profile Model - Staff member known to the identity provider

    Fields:
    - id: Identity-provider user id
    - full_name: Display name
    - role: Staff role
    - created_at: When the profile was created
    """
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String, nullable=False)
    role = Column(value_enum(UserRole, "user_role"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        """String representation of the Profile model"""
        return f"<Profile(id={self.id}, role='{self.role}')>"

    @property
    def is_doctor(self) -> bool:
        return self.role == UserRole.DOCTOR
