"""
Tests for stock intake and FIFO-by-expiry dispensing.
"""
import pytest
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal
from sqlalchemy.orm import sessionmaker

from clinicflow.database import build_engine
from clinicflow.models import Base, DispenseRecord, InventoryBatch, Medicine
from clinicflow.exceptions import InvalidInputException, ResourceNotFoundException
from clinicflow.core.events import DomainEvent
from clinicflow.appointments.schemas import RegistrationRequest
from clinicflow.appointments.service import register_visit
from clinicflow.pharmacy.models import DispenseStatus
from clinicflow.pharmacy import service as pharmacy_service
from clinicflow.pharmacy.service import (
    add_stock, dispense, get_batch, list_inventory, list_medicines, pending_prescriptions
)
from clinicflow.prescriptions.service import record_prescription


def test_dispense_draws_from_earliest_expiry(db, stock, make_prescription):
    """
    Batch X (5, Jan) and Y (10, Jun): one unit comes from X.
    """
    batch_y = stock("Metformin", "Y", date(2024, 6, 1), 10)
    batch_x = stock("Metformin", "X", date(2024, 1, 10), 5)
    prescription = make_prescription(["Metformin"])

    outcomes = dispense(db, prescription.id)

    assert len(outcomes) == 1
    assert outcomes[0].status == DispenseStatus.DISPENSED
    assert outcomes[0].batch_id == batch_x.id
    assert get_batch(db, batch_x.id).quantity == 4
    assert get_batch(db, batch_y.id).quantity == 10


def test_equal_expiry_uses_insertion_order(db, stock, make_prescription):
    first = stock("Cetirizine", "C1", date(2025, 3, 1), 2)
    stock("Cetirizine", "C2", date(2025, 3, 1), 2)

    outcomes = dispense(db, make_prescription(["Cetirizine"]).id)

    assert outcomes[0].batch_id == first.id


def test_empty_batch_is_skipped(db, stock, make_prescription):
    early = stock("Ibuprofen", "I1", date(2024, 2, 1), 1)
    late = stock("Ibuprofen", "I2", date(2024, 9, 1), 3)

    dispense(db, make_prescription(["Ibuprofen"]).id)
    outcomes = dispense(db, make_prescription(["Ibuprofen"]).id)

    assert outcomes[0].batch_id == late.id
    assert get_batch(db, early.id).quantity == 0
    assert get_batch(db, late.id).quantity == 2


def test_out_of_stock_never_goes_negative(db, stock, make_prescription):
    batch = stock("Azithromycin", "A1", date(2025, 1, 1), 1)
    dispense(db, make_prescription(["Azithromycin"]).id)

    outcomes = dispense(db, make_prescription(["Azithromycin"]).id)

    assert outcomes[0].status == DispenseStatus.OUT_OF_STOCK
    assert outcomes[0].batch_id is None
    assert get_batch(db, batch.id).quantity == 0
    assert db.query(DispenseRecord).count() == 1


def test_unknown_medicine_does_not_block_other_lines(db, stock, make_prescription):
    stock("Paracetamol", "P1", date(2025, 1, 1), 10)
    prescription = make_prescription(["Unobtainium", "paracetamol "])

    outcomes = dispense(db, prescription.id)

    assert [o.status for o in outcomes] == [DispenseStatus.MEDICINE_UNKNOWN, DispenseStatus.DISPENSED]


def test_repeat_dispense_is_harmless(db, stock, make_prescription, bus, events):
    batch = stock("Pantoprazole", "PP1", date(2025, 1, 1), 5)
    prescription = make_prescription(["Pantoprazole"])
    dispense(db, prescription.id, bus=bus)

    outcomes = dispense(db, prescription.id, bus=bus)

    assert outcomes[0].status == DispenseStatus.ALREADY_DISPENSED
    assert get_batch(db, batch.id).quantity == 4
    assert events == [(DomainEvent.MEDICINES_DISPENSED, prescription.id)]


def test_dispense_freezes_batch_price(db, stock, make_prescription):
    stock("Amlodipine", "AM1", date(2024, 1, 1), 1, mrp="4.50")
    stock("Amlodipine", "AM2", date(2026, 1, 1), 5, mrp="6.00")

    first = dispense(db, make_prescription(["Amlodipine"]).id)
    second = dispense(db, make_prescription(["Amlodipine"]).id)

    assert first[0].unit_price == Decimal("4.50")
    assert second[0].unit_price == Decimal("6.00")
    prices = sorted(Decimal(r.unit_price) for r in db.query(DispenseRecord).all())
    assert prices == [Decimal("4.50"), Decimal("6.00")]


def test_dispense_unknown_prescription(db):
    with pytest.raises(ResourceNotFoundException):
        dispense(db, 999)


def test_add_stock_reuses_catalog_entry(db, stock):
    first = stock("Amoxicillin", "AX1", date(2025, 1, 1), 10)
    second = stock(" amoxicillin", "AX2", "2025-04-01", 20)

    assert first.medicine_id == second.medicine_id
    assert db.query(Medicine).count() == 1
    assert db.query(InventoryBatch).count() == 2
    assert [b.batch_no for b in list_inventory(db, "AMOXICILLIN")] == ["AX1", "AX2"]


@pytest.mark.parametrize("kwargs", [
    {"quantity": 0},
    {"quantity": -3},
    {"mrp": "-1"},
    {"mrp": "abc"},
    {"expiry": "31-12-2025"},
    {"batch_no": " "},
    {"medicine_name": ""},
])
def test_add_stock_rejects_bad_input(db, kwargs):
    values = {
        "medicine_name": "Dolo",
        "batch_no": "D1",
        "expiry": date(2025, 12, 31),
        "quantity": 10,
        "mrp": "2.00",
    }
    values.update(kwargs)

    with pytest.raises(InvalidInputException):
        add_stock(db, **values)

    assert db.query(InventoryBatch).count() == 0


def test_pending_prescriptions_excludes_fully_dispensed(db, stock, make_prescription):
    stock("Paracetamol", "P1", date(2025, 1, 1), 10)
    served = make_prescription(["Paracetamol"])
    waiting = make_prescription(["Paracetamol", "Vitamin C"])
    dispense(db, served.id)

    pending_ids = [p.id for p in pending_prescriptions(db)]

    assert served.id not in pending_ids
    assert waiting.id in pending_ids


def test_concurrent_dispensing_respects_stock(tmp_path):
    """
    Six pharmacists race for three units; exactly three succeed.
    """
    race_engine = build_engine(f"sqlite:///{tmp_path / 'pharmacy.db'}")
    Base.metadata.create_all(bind=race_engine)
    RaceSession = sessionmaker(bind=race_engine, autoflush=False, autocommit=False)

    setup = RaceSession()
    batch_id = add_stock(setup, "Paracetamol", "RACE1", date(2025, 1, 1), 3, "1.00").id
    prescription_ids = []
    for n in range(6):
        visit = register_visit(setup, RegistrationRequest(name=f"Patient {n}", mobile=f"70000000{n:02d}"))
        prescription = record_prescription(setup, visit.id, None, "Fever", [{"medicine_name": "Paracetamol"}])
        prescription_ids.append(prescription.id)
    setup.close()

    def serve(prescription_id):
        session = RaceSession()
        try:
            return dispense(session, prescription_id)[0].status
        finally:
            session.close()

    try:
        with ThreadPoolExecutor(max_workers=6) as pool:
            statuses = list(pool.map(serve, prescription_ids))
        check = RaceSession()
        remaining = get_batch(check, batch_id).quantity
        check.close()
    finally:
        race_engine.dispose()

    assert statuses.count(DispenseStatus.DISPENSED) == 3
    assert statuses.count(DispenseStatus.OUT_OF_STOCK) == 3
    assert remaining == 0


def test_empty_lock_result_is_retried_while_stock_remains(db, stock, make_prescription, monkeypatch):
    """
    An empty lock result while stock remains is retried rather than
    reported as out of stock.
    """
    earliest = stock("Metformin", "X", date(2024, 1, 10), 1)
    stock("Metformin", "Y", date(2024, 6, 1), 10)
    prescription = make_prescription(["Metformin"])

    real_next_batch = pharmacy_service._next_batch
    calls = []

    def next_batch_after_lock_wait(session, medicine_id, quantity):
        calls.append(medicine_id)
        if len(calls) == 1:
            return None
        return real_next_batch(session, medicine_id, quantity)

    monkeypatch.setattr(pharmacy_service, "_next_batch", next_batch_after_lock_wait)

    outcomes = dispense(db, prescription.id)

    assert outcomes[0].status == DispenseStatus.DISPENSED
    assert outcomes[0].batch_id == earliest.id
    assert len(calls) == 2


def test_concurrent_dispensing_moves_on_to_later_batch(tmp_path):
    """
    One unit in the early batch and plenty in the later one: every racer is served.
    """
    race_engine = build_engine(f"sqlite:///{tmp_path / 'fifo.db'}")
    Base.metadata.create_all(bind=race_engine)
    RaceSession = sessionmaker(bind=race_engine, autoflush=False, autocommit=False)

    setup = RaceSession()
    early_id = add_stock(setup, "Paracetamol", "EARLY", date(2024, 1, 1), 1, "1.00").id
    late_id = add_stock(setup, "Paracetamol", "LATE", date(2024, 12, 1), 10, "1.00").id
    prescription_ids = []
    for n in range(6):
        visit = register_visit(setup, RegistrationRequest(name=f"Patient {n}", mobile=f"71000000{n:02d}"))
        prescription = record_prescription(setup, visit.id, None, "Fever", [{"medicine_name": "Paracetamol"}])
        prescription_ids.append(prescription.id)
    setup.close()

    def serve(prescription_id):
        session = RaceSession()
        try:
            return dispense(session, prescription_id)[0]
        finally:
            session.close()

    try:
        with ThreadPoolExecutor(max_workers=6) as pool:
            outcomes = list(pool.map(serve, prescription_ids))
        check = RaceSession()
        early_left = get_batch(check, early_id).quantity
        late_left = get_batch(check, late_id).quantity
        check.close()
    finally:
        race_engine.dispose()

    assert all(o.status == DispenseStatus.DISPENSED for o in outcomes)
    assert [o.batch_id for o in outcomes].count(early_id) == 1
    assert early_left == 0
    assert late_left == 5


def test_list_medicines_for_autocomplete(db, stock):
    stock("Paracetamol", "P1", date(2025, 1, 1), 10)
    stock("Pantoprazole", "PP1", date(2025, 1, 1), 10)
    stock("Amoxicillin", "AX1", date(2025, 1, 1), 10)

    assert [m.name for m in list_medicines(db)] == ["Amoxicillin", "Pantoprazole", "Paracetamol"]
    assert [m.name for m in list_medicines(db, "PA")] == ["Pantoprazole", "Paracetamol"]
    assert [m.name for m in list_medicines(db, "cet")] == ["Paracetamol"]
    assert len(list_medicines(db, limit=1)) == 1
    assert list_medicines(db, "50%") == []
