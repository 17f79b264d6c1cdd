"""
Transaction helpers for the ledger store.

All state-changing workflow operations run inside `transaction`, so either
every write of the operation is committed or none is.
"""
import logging
from contextlib import contextmanager
from typing import Callable, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import AppException, ConflictException, InvalidInputException, StoreUnavailableException

logger = logging.getLogger(__name__)

T = TypeVar("T")

# SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"


def is_unique_violation(error: IntegrityError) -> bool:
    """True when an IntegrityError came from a unique constraint or index."""
    if getattr(error.orig, "pgcode", None) == UNIQUE_VIOLATION:
        return True
    return "UNIQUE constraint failed" in str(error.orig)


@contextmanager
def transaction(db: Session, action: str):
    """
    Commit the enclosed work, or roll all of it back.

    Args:
        db: Database session
        action: Short description used in logs and error details

    Raises:
        ConflictException: If the store rejected a write on a uniqueness constraint
        InvalidInputException: If the store rejected a write on any other constraint
        StoreUnavailableException: On any other store failure
    """
    try:
        yield db
        db.commit()
    except AppException:
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        if is_unique_violation(e):
            logger.warning(f"Integrity conflict during {action}: {e.orig}")
            raise ConflictException(f"Concurrent update conflict during {action}") from e
        logger.info(f"Integrity violation during {action}: {e.orig}")
        raise InvalidInputException(
            f"Rejected by the store during {action}: missing reference or disallowed value"
        ) from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Store failure during {action}: {str(e)}")
        raise StoreUnavailableException(f"Ledger store failure during {action}") from e
    except Exception:
        db.rollback()
        raise


def run_with_retries(db: Session, action: str, work: Callable[[], T], attempts: int) -> T:
    """
    Run `work` in a transaction, re-running it when it conflicts.

    Args:
        db: Database session
        action: Short description used in logs and error details
        work: Callable performing the writes; it must be safe to re-run
        attempts: Maximum number of attempts

    Returns:
        Whatever `work` returned on the attempt that committed

    Raises:
        ConflictException: If every attempt conflicted
    """
    last_error = None
    for attempt in range(1, attempts + 1):
        try:
            with transaction(db, action):
                return work()
        except ConflictException as e:
            last_error = e
            logger.warning(f"{action} conflicted (attempt {attempt}/{attempts})")
    raise ConflictException(
        f"{action} could not be completed after {attempts} attempts"
    ) from last_error
