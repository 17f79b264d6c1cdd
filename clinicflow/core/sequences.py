"""
Daily sequence counters.

Each (scope, partition_key, day) triple owns one counter row. Reserving the
next value is a single in-place increment followed by a read of the same
row inside the caller's transaction, so two transactions can never observe
the same value. The first reservation of a day inserts the row; a racing
insert fails on the unique constraint and surfaces as a conflict that the
caller retries.
"""
from datetime import date
from sqlalchemy import Column, Integer, String, Date, UniqueConstraint, select, update
from sqlalchemy.orm import Session

from ..database import Base

TOKEN_SCOPE = "opd_token"
INVOICE_SCOPE = "invoice"


class SequenceCounter(Base):
    """
    Sequence Counter Model - Last value issued per scope, partition and day

    Fields:
    - id: Primary key
    - scope: What the sequence numbers (OPD tokens, invoices)
    - partition_key: Sub-sequence within the scope (e.g. doctor id)
    - day: Calendar day the sequence restarts on
    - last_value: Highest value issued so far
    """
    __tablename__ = "sequence_counters"
    __table_args__ = (
        UniqueConstraint("scope", "partition_key", "day", name="uq_sequence_counter"),
    )

    id = Column(Integer, primary_key=True, index=True)
    scope = Column(String(32), nullable=False)
    partition_key = Column(String(64), nullable=False)
    day = Column(Date, nullable=False)
    last_value = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<SequenceCounter(scope='{self.scope}', partition='{self.partition_key}', day='{self.day}', last={self.last_value})>"


def _counter_filter(scope: str, partition_key: str, day: date):
    return (
        SequenceCounter.scope == scope,
        SequenceCounter.partition_key == partition_key,
        SequenceCounter.day == day,
    )


def reserve_next(db: Session, scope: str, partition_key: str, day: date) -> int:
    """
    Reserve the next value of a daily sequence.

    Must run inside a transaction; the value is only durable once that
    transaction commits.

    Args:
        db: Database session
        scope: Sequence scope
        partition_key: Partition within the scope
        day: Calendar day

    Returns:
        int: The reserved value, starting at 1 for each new day

    Raises:
        IntegrityError: When another transaction created the day's row first
    """
    result = db.execute(
        update(SequenceCounter)
        .where(*_counter_filter(scope, partition_key, day))
        .values(last_value=SequenceCounter.last_value + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.add(SequenceCounter(scope=scope, partition_key=partition_key, day=day, last_value=1))
        db.flush()
        return 1

    return db.execute(
        select(SequenceCounter.last_value).where(*_counter_filter(scope, partition_key, day))
    ).scalar_one()


def current_value(db: Session, scope: str, partition_key: str, day: date) -> int:
    """Highest value issued so far for a sequence (0 if none)."""
    value = db.execute(
        select(SequenceCounter.last_value).where(*_counter_filter(scope, partition_key, day))
    ).scalar_one_or_none()
    return value or 0
