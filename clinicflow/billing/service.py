"""
Billing Service - Aggregating unbilled dispenses and finalizing bills.

Pending charges are computed by one query over unbilled dispense records,
priced at the unit price frozen when each record was dispensed. Finalizing
a bill writes the header, lines and payment and claims the dispense records
in one transaction; the claim only succeeds for records that are still
unbilled, so a dispense record can end up on at most one bill.
"""
from typing import List, Optional, Sequence, Union, Dict, Any
from datetime import date
from decimal import Decimal
from pydantic import ValidationError
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload
import logging

from ..config import settings
from ..core.audit_service import record_audit
from ..core.events import DomainEvent, EventBus, notifier
from ..core.sequences import INVOICE_SCOPE, reserve_next
from ..core.transactions import run_with_retries
from ..exceptions import (
    ConflictException,
    EmptyBillException,
    InvalidInputException,
    ResourceNotFoundException
)
from ..identity.service import require_profile
from ..patients.models import Patient
from ..patients.service import get_patient
from ..pharmacy.models import DispenseRecord, Medicine
from ..prescriptions.models import Prescription
from .models import Bill, BillLine, BillItemType, Payment, PaymentMode
from .schemas import BillSummary, ExtraCharge, PatientPendingSummary, PendingBill, PendingLine

# Set up logging
logger = logging.getLogger(__name__)

AMOUNT_QUANT = Decimal("0.01")

ChargeInput = Union[ExtraCharge, Dict[str, Any]]

def _money(value) -> Decimal:
    return Decimal(value).quantize(AMOUNT_QUANT)

def _pending_lines(db: Session, patient_id: int, lock: bool = False) -> List[PendingLine]:
    query = (
        select(
            DispenseRecord.id,
            Medicine.name,
            DispenseRecord.quantity,
            DispenseRecord.unit_price
        )
        .join(Prescription, DispenseRecord.prescription_id == Prescription.id)
        .join(Medicine, DispenseRecord.medicine_id == Medicine.id)
        .where(Prescription.patient_id == patient_id, DispenseRecord.bill_id.is_(None))
        .order_by(DispenseRecord.id.asc())
    )
    if lock:
        query = query.with_for_update(of=DispenseRecord)

    lines = []
    for record_id, name, quantity, unit_price in db.execute(query).all():
        price = _money(unit_price)
        lines.append(PendingLine(
            dispense_record_id=record_id,
            name=name,
            item_type=BillItemType.MEDICINE,
            quantity=quantity,
            unit_price=price,
            amount=_money(quantity * price)
        ))
    return lines

def patients_pending_billing(db: Session) -> List[PatientPendingSummary]:
    """
    Every patient with unbilled dispenses, aggregated in one query.

    Returns:
        List[PatientPendingSummary]: Patient id, name, item count and subtotal,
            ordered by patient id
    """
    query = (
        select(
            Patient.id,
            Patient.name,
            func.count(DispenseRecord.id),
            func.sum(DispenseRecord.quantity * DispenseRecord.unit_price)
        )
        .join(Prescription, DispenseRecord.prescription_id == Prescription.id)
        .join(Patient, Prescription.patient_id == Patient.id)
        .where(DispenseRecord.bill_id.is_(None))
        .group_by(Patient.id, Patient.name)
        .order_by(Patient.id.asc())
    )
    return [
        PatientPendingSummary(patient_id=patient_id, name=name, items=items, subtotal=_money(subtotal))
        for patient_id, name, items, subtotal in db.execute(query).all()
    ]

def pending_for_patient(db: Session, patient_id: int) -> PendingBill:
    """
    Dispensed items not yet charged on any bill for a patient.

    Args:
        db: Database session
        patient_id: ID of the patient

    Returns:
        PendingBill: Lines priced at dispense time and their subtotal

    Raises:
        ResourceNotFoundException: If the patient does not exist
    """
    get_patient(db, patient_id)
    lines = _pending_lines(db, patient_id)
    subtotal = _money(sum((line.amount for line in lines), Decimal("0")))
    return PendingBill(patient_id=patient_id, lines=lines, subtotal=subtotal)

def _normalize_extras(extra_lines: Sequence[ChargeInput]) -> List[ExtraCharge]:
    charges = []
    for index, raw in enumerate(extra_lines or []):
        try:
            charge = raw if isinstance(raw, ExtraCharge) else ExtraCharge(**raw)
        except ValidationError as e:
            raise InvalidInputException(
                f"Extra charge {index + 1} is invalid: {e.errors()[0]['msg']}",
                entity="bill_items",
                entity_id=index + 1
            )
        charges.append(charge)
    return charges

def _parse_payment_mode(payment_mode: Union[PaymentMode, str]) -> PaymentMode:
    try:
        return PaymentMode(payment_mode)
    except ValueError:
        raise InvalidInputException(f"Unsupported payment mode '{payment_mode}'", entity="payments")

def _next_invoice_no(db: Session, day: date) -> str:
    seq = reserve_next(db, INVOICE_SCOPE, "all", day)
    return f"{settings.invoice_prefix}-{day.strftime('%Y%m%d')}-{seq:04d}"

def finalize_bill(
    db: Session,
    patient_id: int,
    extra_lines: Sequence[ChargeInput] = (),
    payment_mode: Union[PaymentMode, str] = PaymentMode.CASH,
    user_id: Optional[int] = None,
    bus: EventBus = notifier
) -> BillSummary:
    """
    Bill every pending dispense for a patient plus any extra charges.

    Creates the bill, one line per pending dispense and per extra charge,
    marks the dispenses billed and records one payment for the full total,
    all in a single transaction.

    Args:
        db: Database session
        patient_id: ID of the patient
        extra_lines: Ad hoc charges (e.g. consultation fee)
        payment_mode: cash, upi or card
        user_id: Profile ID of the biller
        bus: Event bus notified after commit

    Returns:
        BillSummary: Bill id, invoice number and total

    Raises:
        InvalidInputException: If an extra charge or the payment mode is invalid
        ResourceNotFoundException: If the patient does not exist
        EmptyBillException: If there is nothing pending and no extra charge
        ConflictException: If the pending dispenses kept being claimed concurrently
    """
    mode = _parse_payment_mode(payment_mode)
    charges = _normalize_extras(extra_lines)

    def work() -> BillSummary:
        require_profile(db, user_id)
        get_patient(db, patient_id)
        pending = _pending_lines(db, patient_id, lock=True)
        if not pending and not charges:
            raise EmptyBillException(
                "No unbilled dispenses and no extra charges for this patient",
                entity="patients",
                entity_id=patient_id
            )

        items = [
            BillLine(
                item_name=line.name,
                item_type=BillItemType.MEDICINE,
                quantity=line.quantity,
                unit_price=line.unit_price,
                dispense_record_id=line.dispense_record_id
            )
            for line in pending
        ]
        items.extend(
            BillLine(
                item_name=charge.name,
                item_type=charge.item_type,
                quantity=charge.quantity,
                unit_price=_money(charge.unit_price)
            )
            for charge in charges
        )
        total = _money(sum((item.amount for item in items), Decimal("0")))

        bill = Bill(
            invoice_no=_next_invoice_no(db, date.today()),
            patient_id=patient_id,
            total_amount=total,
            created_by=user_id
        )
        bill.items = items
        bill.payment = Payment(amount=total, payment_mode=mode)
        db.add(bill)
        db.flush()

        record_ids = [line.dispense_record_id for line in pending]
        if record_ids:
            claimed = db.execute(
                update(DispenseRecord)
                .where(DispenseRecord.id.in_(record_ids), DispenseRecord.bill_id.is_(None))
                .values(bill_id=bill.id)
                .execution_options(synchronize_session=False)
            ).rowcount
            if claimed != len(record_ids):
                raise ConflictException(
                    f"{len(record_ids) - claimed} dispense record(s) were billed concurrently",
                    entity="patients",
                    entity_id=patient_id
                )

        record_audit(
            db, "BILL_FINALIZED", entity="bills", entity_id=bill.id, user_id=user_id,
            details={"patient_id": patient_id, "total": str(total), "dispense_records": record_ids}
        )
        return BillSummary(bill_id=bill.id, invoice_no=bill.invoice_no, total=total)

    summary = run_with_retries(db, "bill finalization", work, settings.sequence_max_retries)
    logger.info(
        f"Bill {summary.bill_id} ({summary.invoice_no}) finalized for patient {patient_id}: "
        f"total {summary.total} paid by {mode.value}"
    )
    bus.publish(DomainEvent.BILL_FINALIZED, summary.bill_id)
    return summary

def get_bill(db: Session, bill_id: int) -> Bill:
    """
    Get a bill with its lines and payment.

    Raises:
        ResourceNotFoundException: If bill not found
    """
    bill = (
        db.query(Bill)
        .options(selectinload(Bill.items), selectinload(Bill.payment))
        .filter(Bill.id == bill_id)
        .first()
    )
    if not bill:
        raise ResourceNotFoundException("Bill not found", entity="bills", entity_id=bill_id)
    return bill

def bills_for_patient(db: Session, patient_id: int) -> List[Bill]:
    """
    A patient's bills, newest first.

    Raises:
        ResourceNotFoundException: If the patient does not exist
    """
    get_patient(db, patient_id)
    return (
        db.query(Bill)
        .options(selectinload(Bill.items), selectinload(Bill.payment))
        .filter(Bill.patient_id == patient_id)
        .order_by(Bill.id.desc())
        .all()
    )
