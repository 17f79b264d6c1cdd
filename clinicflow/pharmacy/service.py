"""
Pharmacy Service - Stock intake and FIFO-by-expiry dispensing.

Each prescription line draws from the earliest-expiring batch that still has
stock (insertion order breaks ties). The decrement is a conditional update
on the batch's quantity, so two dispensers racing for the last unit cannot
both succeed and a batch never goes negative. Per-line results are returned
as data: an unknown medicine or an empty shelf does not abort the other
lines.
"""
from typing import List, Optional, Union
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from sqlalchemy import select, update
from sqlalchemy.orm import Session, joinedload
import logging

from ..config import settings
from ..core.audit_service import record_audit
from ..core.events import DomainEvent, EventBus, notifier
from ..core.transactions import run_with_retries, transaction
from ..exceptions import ConflictException, InvalidInputException
from ..identity.service import require_profile
from ..prescriptions.models import Prescription, PrescriptionLine
from ..prescriptions.service import get_prescription
from .models import Medicine, InventoryBatch, DispenseRecord, DispenseStatus
from .schemas import DispenseOutcome

# Set up logging
logger = logging.getLogger(__name__)

PRICE_QUANT = Decimal("0.01")

def find_medicine(db: Session, name: str) -> Optional[Medicine]:
    """
    Resolve a free-text medicine name to a catalog entry.

    Matching is exact after trimming, ignoring case.
    """
    if not name or not name.strip():
        return None
    return db.query(Medicine).filter(Medicine.name_key == Medicine.key_for(name)).first()

def _parse_expiry(expiry: Union[date, datetime, str]) -> date:
    if isinstance(expiry, datetime):
        return expiry.date()
    if isinstance(expiry, date):
        return expiry
    try:
        return date.fromisoformat(str(expiry).strip())
    except ValueError:
        raise InvalidInputException(f"Malformed expiry date '{expiry}'", entity="inventory")

def _parse_price(mrp) -> Decimal:
    try:
        price = Decimal(str(mrp))
    except (InvalidOperation, ValueError):
        raise InvalidInputException(f"Malformed unit price '{mrp}'", entity="inventory")
    if not price.is_finite() or price < 0:
        raise InvalidInputException("Unit price must be zero or more", entity="inventory")
    return price.quantize(PRICE_QUANT)

def add_stock(
    db: Session,
    medicine_name: str,
    batch_no: str,
    expiry: Union[date, datetime, str],
    quantity: int,
    mrp,
    strength: Optional[str] = None,
    unit: Optional[str] = None,
    user_id: Optional[int] = None,
    bus: EventBus = notifier
) -> InventoryBatch:
    """
    Receive a new batch of a medicine.

    The catalog entry is looked up case-insensitively and created if absent.
    A new batch row is always inserted; existing batches are never modified.

    Args:
        db: Database session
        medicine_name: Medicine name
        batch_no: Manufacturer batch number
        expiry: Expiry date
        quantity: Units received (must be positive)
        mrp: Unit price (zero or more)
        strength: Strength for a newly created catalog entry
        unit: Unit for a newly created catalog entry
        user_id: Profile ID of the pharmacist (for the audit trail)
        bus: Event bus notified after commit

    Returns:
        InventoryBatch: The new batch

    Raises:
        InvalidInputException: If any field is missing or malformed
        ConflictException: If the catalog upsert kept conflicting
    """
    if not medicine_name or not medicine_name.strip():
        raise InvalidInputException("Medicine name is required", entity="medicines")
    if not batch_no or not batch_no.strip():
        raise InvalidInputException("Batch number is required", entity="inventory")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidInputException("Quantity must be a positive whole number", entity="inventory")
    expiry_date = _parse_expiry(expiry)
    price = _parse_price(mrp)

    def work() -> InventoryBatch:
        require_profile(db, user_id)
        medicine = find_medicine(db, medicine_name)
        if not medicine:
            medicine = Medicine(
                name=medicine_name.strip(),
                name_key=Medicine.key_for(medicine_name),
                strength=strength,
                unit=unit
            )
            db.add(medicine)
            db.flush()
            logger.info(f"Catalog entry {medicine.id} created for '{medicine.name}'")
        batch = InventoryBatch(
            medicine_id=medicine.id,
            batch_no=batch_no.strip(),
            expiry=expiry_date,
            quantity=quantity,
            mrp=price
        )
        db.add(batch)
        db.flush()
        record_audit(
            db, "STOCK_ADDED", entity="inventory", entity_id=batch.id, user_id=user_id,
            details={"medicine_id": medicine.id, "batch_no": batch.batch_no, "quantity": quantity}
        )
        return batch

    batch = run_with_retries(db, "stock intake", work, settings.sequence_max_retries)
    db.refresh(batch)
    logger.info(f"Batch {batch.id} ({batch.batch_no}) stocked with {batch.quantity} unit(s)")
    bus.publish(DomainEvent.STOCK_ADDED, batch.id)
    return batch

def _next_batch(db: Session, medicine_id: int, quantity: int) -> Optional[InventoryBatch]:
    return db.execute(
        select(InventoryBatch)
        .where(InventoryBatch.medicine_id == medicine_id, InventoryBatch.quantity >= quantity)
        .order_by(InventoryBatch.expiry.asc(), InventoryBatch.id.asc())
        .limit(1)
        .with_for_update()
    ).scalars().first()

def _has_stock(db: Session, medicine_id: int, quantity: int) -> bool:
    return db.execute(
        select(InventoryBatch.id)
        .where(InventoryBatch.medicine_id == medicine_id, InventoryBatch.quantity >= quantity)
        .limit(1)
    ).first() is not None

def _allocate_line(
    db: Session,
    prescription: Prescription,
    line: PrescriptionLine,
    medicine: Medicine,
    quantity: int
) -> DispenseOutcome:
    for attempt in range(1, settings.dispense_max_retries + 1):
        batch = _next_batch(db, medicine.id, quantity)
        if batch is None:
            # the locked candidate can drop out after its lock is released
            # while a later-expiring batch still holds stock
            if not _has_stock(db, medicine.id, quantity):
                return DispenseOutcome(
                    prescription_line_id=line.id,
                    medicine_name=line.medicine_name,
                    status=DispenseStatus.OUT_OF_STOCK
                )
            logger.warning(
                f"Batch for line {line.id} was drained while waiting for its lock "
                f"(attempt {attempt}/{settings.dispense_max_retries})"
            )
            continue

        result = db.execute(
            update(InventoryBatch)
            .where(InventoryBatch.id == batch.id, InventoryBatch.quantity >= quantity)
            .values(quantity=InventoryBatch.quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            unit_price = Decimal(batch.mrp).quantize(PRICE_QUANT)
            db.add(DispenseRecord(
                prescription_id=prescription.id,
                prescription_line_id=line.id,
                medicine_id=medicine.id,
                batch_id=batch.id,
                quantity=quantity,
                unit_price=unit_price
            ))
            db.flush()
            # the conditional update bypassed the identity map
            db.expire(batch, ["quantity"])
            return DispenseOutcome(
                prescription_line_id=line.id,
                medicine_name=line.medicine_name,
                status=DispenseStatus.DISPENSED,
                batch_id=batch.id,
                quantity=quantity,
                unit_price=unit_price
            )

        logger.warning(
            f"Batch {batch.id} drained before decrement for line {line.id} "
            f"(attempt {attempt}/{settings.dispense_max_retries})"
        )
        db.expire(batch)

    raise ConflictException(
        f"Could not allocate stock for '{line.medicine_name}' after {settings.dispense_max_retries} attempts",
        entity="prescription_medicines",
        entity_id=line.id
    )

def dispense(
    db: Session,
    prescription_id: int,
    user_id: Optional[int] = None,
    bus: EventBus = notifier
) -> List[DispenseOutcome]:
    """
    Dispense every prescription line against stock.

    Lines already served by an earlier call are reported as already
    dispensed and left untouched, so repeating a dispense is harmless.

    Args:
        db: Database session
        prescription_id: ID of the prescription
        user_id: Profile ID of the pharmacist (for the audit trail)
        bus: Event bus notified after commit

    Returns:
        List[DispenseOutcome]: One outcome per prescription line, in line order

    Raises:
        ResourceNotFoundException: If the prescription does not exist
        ConflictException: If a line's batch kept being drained concurrently
    """
    quantity = settings.dispense_unit_quantity
    with transaction(db, "dispensing"):
        require_profile(db, user_id)
        prescription = get_prescription(db, prescription_id)
        served = set(db.execute(
            select(DispenseRecord.prescription_line_id)
            .where(DispenseRecord.prescription_id == prescription_id)
        ).scalars().all())

        outcomes: List[DispenseOutcome] = []
        for line in prescription.lines:
            if line.id in served:
                outcomes.append(DispenseOutcome(
                    prescription_line_id=line.id,
                    medicine_name=line.medicine_name,
                    status=DispenseStatus.ALREADY_DISPENSED
                ))
                continue

            medicine = find_medicine(db, line.medicine_name)
            if not medicine:
                outcomes.append(DispenseOutcome(
                    prescription_line_id=line.id,
                    medicine_name=line.medicine_name,
                    status=DispenseStatus.MEDICINE_UNKNOWN
                ))
                continue

            outcomes.append(_allocate_line(db, prescription, line, medicine, quantity))

        dispensed = [o for o in outcomes if o.status == DispenseStatus.DISPENSED]
        if dispensed:
            record_audit(
                db, "MEDICINES_DISPENSED", entity="prescriptions", entity_id=prescription_id, user_id=user_id,
                details={"batches": [o.batch_id for o in dispensed]}
            )

    summary = ", ".join(f"{o.medicine_name}={o.status.value}" for o in outcomes) or "no lines"
    logger.info(f"Prescription {prescription_id} dispensed: {summary}")
    if dispensed:
        bus.publish(DomainEvent.MEDICINES_DISPENSED, prescription_id)
    return outcomes

def get_batch(db: Session, batch_id: int) -> Optional[InventoryBatch]:
    return db.query(InventoryBatch).filter(InventoryBatch.id == batch_id).first()

def list_inventory(db: Session, medicine_name: Optional[str] = None) -> List[InventoryBatch]:
    """Stock batches, earliest expiry first, optionally for one medicine."""
    query = db.query(InventoryBatch).options(joinedload(InventoryBatch.medicine))
    if medicine_name:
        query = query.join(Medicine).filter(Medicine.name_key == Medicine.key_for(medicine_name))
    return query.order_by(InventoryBatch.expiry.asc(), InventoryBatch.id.asc()).all()

def pending_prescriptions(db: Session) -> List[Prescription]:
    """Prescriptions with at least one line not yet dispensed, newest first."""
    undispensed = (
        select(PrescriptionLine.prescription_id)
        .outerjoin(DispenseRecord, DispenseRecord.prescription_line_id == PrescriptionLine.id)
        .where(DispenseRecord.id.is_(None))
    )
    return (
        db.query(Prescription)
        .filter(Prescription.id.in_(undispensed))
        .order_by(Prescription.created_at.desc(), Prescription.id.desc())
        .all()
    )

def list_medicines(db: Session, search: Optional[str] = None, limit: int = 50) -> List[Medicine]:
    """
    Catalog entries ordered by name, for prescription autocomplete.

    Args:
        db: Database session
        search: Case-insensitive fragment of the name
        limit: Maximum number of entries

    Returns:
        List[Medicine]: Matching catalog entries
    """
    query = db.query(Medicine)
    if search and search.strip():
        query = query.filter(Medicine.name_key.contains(Medicine.key_for(search), autoescape=True))
    return query.order_by(Medicine.name_key.asc(), Medicine.id.asc()).limit(limit).all()
