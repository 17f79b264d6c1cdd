"""
Profile lookups used by the workflow services.
"""
from typing import List, Optional
from sqlalchemy.orm import Session

from ..exceptions import ResourceNotFoundException
from .models import Profile, UserRole

def get_profile(db: Session, profile_id: int) -> Optional[Profile]:
    """Return the profile with this id, or None."""
    return db.query(Profile).filter(Profile.id == profile_id).first()

def get_doctor(db: Session, doctor_id: int) -> Profile:
    """
    Get a doctor profile by ID.

    Args:
        db: Database session
        doctor_id: Profile ID of the doctor

    Returns:
        Profile: Doctor profile

    Raises:
        ResourceNotFoundException: If no profile exists or it is not a doctor
    """
    profile = get_profile(db, doctor_id)
    if not profile or not profile.is_doctor:
        raise ResourceNotFoundException("Doctor not found", entity="profiles", entity_id=doctor_id)
    return profile

def list_doctors(db: Session) -> List[Profile]:
    """All doctor profiles ordered by name."""
    return (
        db.query(Profile)
        .filter(Profile.role == UserRole.DOCTOR)
        .order_by(Profile.full_name.asc(), Profile.id.asc())
        .all()
    )

def require_profile(db: Session, profile_id: Optional[int]) -> Optional[Profile]:
    """
    Check that an acting user id refers to a known profile.

    Args:
        db: Database session
        profile_id: Profile ID recorded against a change, or None for system actions

    Returns:
        Optional[Profile]: The profile, or None when no id was given

    Raises:
        ResourceNotFoundException: If an id was given but no profile exists
    """
    if profile_id is None:
        return None
    profile = get_profile(db, profile_id)
    if not profile:
        raise ResourceNotFoundException("User profile not found", entity="profiles", entity_id=profile_id)
    return profile
