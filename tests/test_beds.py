"""
Tests for the bed occupancy state machine.
"""
import pytest

from clinicflow.models import Admission, Bed
from clinicflow.exceptions import InvalidInputException, InvalidTransitionException, ResourceNotFoundException
from clinicflow.core.events import DomainEvent
from clinicflow.beds.models import AdmissionStatus, BedStatus
from clinicflow.beds import service as beds_service
from clinicflow.beds.service import active_admission, add_bed, admit, discharge, get_bed, list_beds, mark_clean


@pytest.fixture
def bed(db):
    return add_bed(db, "B1", "General")


def test_admit_into_occupied_bed_fails(db, bed, make_patient):
    """
    B1 available: the first admit succeeds, a second one is an invalid transition.
    """
    first, second = make_patient(), make_patient()

    admission = admit(db, bed.id, first.id)

    assert admission.status == AdmissionStatus.ADMITTED
    assert get_bed(db, bed.id).status == BedStatus.OCCUPIED

    with pytest.raises(InvalidTransitionException):
        admit(db, bed.id, second.id)

    assert get_bed(db, bed.id).status == BedStatus.OCCUPIED
    assert active_admission(db, bed.id).patient_id == first.id
    assert db.query(Admission).count() == 1


def test_full_cycle(db, bed, make_patient, bus, events):
    patient = make_patient()

    admission = admit(db, bed.id, patient.id, bus=bus)
    closed = discharge(db, bed.id, bus=bus)

    assert closed.id == admission.id
    assert closed.status == AdmissionStatus.DISCHARGED
    assert closed.discharge_date is not None
    assert get_bed(db, bed.id).status == BedStatus.CLEANING
    assert active_admission(db, bed.id) is None

    with pytest.raises(InvalidTransitionException):
        admit(db, bed.id, patient.id, bus=bus)
    assert get_bed(db, bed.id).status == BedStatus.CLEANING

    cleaned = mark_clean(db, bed.id, bus=bus)
    assert cleaned.status == BedStatus.AVAILABLE

    admit(db, bed.id, patient.id, bus=bus)
    assert get_bed(db, bed.id).status == BedStatus.OCCUPIED
    assert [event for event, _ in events] == [
        DomainEvent.PATIENT_ADMITTED,
        DomainEvent.PATIENT_DISCHARGED,
        DomainEvent.BED_CLEANED,
        DomainEvent.PATIENT_ADMITTED,
    ]


def test_discharge_requires_an_occupied_bed(db, bed):
    with pytest.raises(InvalidTransitionException):
        discharge(db, bed.id)
    assert get_bed(db, bed.id).status == BedStatus.AVAILABLE


@pytest.mark.parametrize("occupy", [False, True])
def test_clean_requires_a_bed_in_cleaning(db, bed, make_patient, occupy):
    if occupy:
        admit(db, bed.id, make_patient().id)
    expected = BedStatus.OCCUPIED if occupy else BedStatus.AVAILABLE

    with pytest.raises(InvalidTransitionException):
        mark_clean(db, bed.id)
    assert get_bed(db, bed.id).status == expected


def test_admit_unknown_patient_keeps_bed_available(db, bed):
    with pytest.raises(ResourceNotFoundException):
        admit(db, bed.id, 777)
    assert get_bed(db, bed.id).status == BedStatus.AVAILABLE


def test_unknown_bed(db, make_patient):
    with pytest.raises(ResourceNotFoundException):
        admit(db, 42, make_patient().id)


def test_transition_table():
    bed = Bed(bed_number="X", status=BedStatus.AVAILABLE)
    assert bed.can_transition_to(BedStatus.OCCUPIED)
    assert not bed.can_transition_to(BedStatus.CLEANING)
    bed.status = BedStatus.OCCUPIED
    assert bed.can_transition_to(BedStatus.CLEANING)
    assert not bed.can_transition_to(BedStatus.AVAILABLE)
    bed.status = BedStatus.CLEANING
    assert bed.can_transition_to(BedStatus.AVAILABLE)
    assert not bed.can_transition_to(BedStatus.OCCUPIED)


def test_bed_numbers_are_unique(db, bed):
    with pytest.raises(InvalidInputException):
        add_bed(db, " B1 ")
    with pytest.raises(InvalidInputException):
        add_bed(db, "")


def test_list_beds_by_ward(db, bed):
    add_bed(db, "B2", "General")
    add_bed(db, "ICU-1", "ICU")

    assert [b.bed_number for b in list_beds(db)] == ["B1", "B2", "ICU-1"]
    assert [b.bed_number for b in list_beds(db, "ICU")] == ["ICU-1"]


def test_duplicate_bed_number_past_the_lookup_is_invalid_input(db, bed, monkeypatch):
    """
    Two registrations of the same number can both pass the lookup; the
    loser still gets an input error.
    """
    monkeypatch.setattr(beds_service, "_bed_number_taken", lambda session, bed_number: False)

    with pytest.raises(InvalidInputException):
        add_bed(db, "B1", "General")

    assert db.query(Bed).count() == 1


def test_list_beds_orders_numbers_as_text(db, bed):
    add_bed(db, "B10", "General")
    add_bed(db, "B2", "General")

    assert [b.bed_number for b in list_beds(db)] == ["B1", "B10", "B2"]
