"""
FastAPI dependencies implementing currentUser() on top of the profiles table.
"""
from typing import Optional
from fastapi import Depends, Header
from sqlalchemy.orm import Session

from ..database import get_db
from ..exceptions import UnauthenticatedException
from .models import Profile
from .schemas import CurrentUser
from .service import get_profile

def get_current_user(
    x_user_id: Optional[int] = Header(None, alias="X-User-Id"),
    db: Session = Depends(get_db)
) -> CurrentUser:
    """
    Resolve the upstream-authenticated user id to {id, role}.

    Raises:
        UnauthenticatedException: If the header is missing or names no profile
    """
    if x_user_id is None:
        raise UnauthenticatedException("Missing X-User-Id header")
    profile: Optional[Profile] = get_profile(db, x_user_id)
    if not profile:
        raise UnauthenticatedException(f"Unknown user {x_user_id}")
    return CurrentUser(id=profile.id, role=profile.role)
