from sqlalchemy.orm import Session
from typing import Optional, Dict, Any

from .audit_models import AuditLog

def record_audit(
    db: Session,
    action: str,
    entity: Optional[str] = None,
    entity_id: Optional[int] = None,
    user_id: Optional[int] = None,
    details: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Adds an audit log entry to the current transaction.

    The entry is not committed here; it becomes durable together with the
    state change it describes.

    Args:
        db: The database session.
        action: A string describing the action performed (e.g., 'TOKEN_ASSIGNED', 'BED_DISCHARGED').
        entity: Table name of the entity acted on.
        entity_id: ID of the entity acted on.
        user_id: The profile ID of the user who performed the action (if known).
        details: A dictionary containing additional context.

    Returns:
        The pending AuditLog object.
    """
    audit_entry = AuditLog(
        user_id=user_id,
        action=action,
        entity=entity,
        entity_id=entity_id,
        details=details
    )
    db.add(audit_entry)
    return audit_entry
