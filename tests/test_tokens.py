"""
Tests for registration and daily queue tokens.
"""
import pytest
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta
from sqlalchemy.orm import sessionmaker

from clinicflow.database import build_engine
from clinicflow.models import Base, Patient, UserRole, Visit, VisitStatus
from clinicflow.exceptions import InvalidInputException, ResourceNotFoundException
from clinicflow.appointments.schemas import RegistrationRequest
from clinicflow.appointments.service import assign_token, doctor_queue, register_visit, list_visits, tokens_issued
from clinicflow.core.events import DomainEvent


def test_new_registration_follows_existing_tokens(db, doctor, make_visit):
    """
    Doctor with two tokens today issues #3 to the next registration.
    """
    make_visit(doctor_id=doctor.id)
    make_visit(doctor_id=doctor.id)

    visit = make_visit(doctor_id=doctor.id)

    assert visit.token_number == 3
    assert visit.status == VisitStatus.WAITING


def test_queues_are_numbered_independently(db, make_profile, make_visit):
    first = make_profile("Dr. A")
    second = make_profile("Dr. B")
    make_visit(doctor_id=first.id)
    make_visit(doctor_id=first.id)

    assert make_visit(doctor_id=second.id).token_number == 1
    assert make_visit().token_number == 1
    assert make_visit().token_number == 2


def test_tokens_restart_each_day(db, doctor, make_visit):
    yesterday = date.today() - timedelta(days=1)
    make_visit(doctor_id=doctor.id, visit_date=yesterday)
    make_visit(doctor_id=doctor.id, visit_date=yesterday)

    assert make_visit(doctor_id=doctor.id).token_number == 1


def test_assign_token_without_visit(db, doctor):
    day = date(2024, 5, 2)
    assert assign_token(db, doctor.id, day) == 1
    assert assign_token(db, doctor.id, "2024-05-02") == 2
    assert assign_token(db, None, day) == 1


def test_assign_token_rejects_malformed_date(db, doctor):
    with pytest.raises(InvalidInputException):
        assign_token(db, doctor.id, "02/05/2024")


def test_registration_for_unknown_doctor_writes_nothing(db):
    registration = RegistrationRequest(name="Ravi", mobile="9845012345", doctor_id=999)

    with pytest.raises(ResourceNotFoundException):
        register_visit(db, registration)

    assert db.query(Patient).count() == 0
    assert db.query(Visit).count() == 0


def test_registration_for_non_doctor_profile_is_rejected(db, make_profile):
    nurse = make_profile("Sister Latha", role=UserRole.NURSE)
    registration = RegistrationRequest(name="Ravi", mobile="9845012345", doctor_id=nurse.id)

    with pytest.raises(ResourceNotFoundException):
        register_visit(db, registration)


def test_returning_patient_is_matched_by_mobile(db, make_visit):
    first = make_visit(mobile="9845000001", age=30, symptoms="cough")
    second = make_visit(mobile=" 9845000001 ", name="Ravi K", age=31, symptoms="fever")

    assert first.patient_id == second.patient_id
    patient = db.query(Patient).filter(Patient.id == first.patient_id).one()
    assert patient.age == 31
    assert patient.symptoms == "fever"
    assert patient.name == "Ravi Kumar"
    assert db.query(Patient).count() == 1


def test_registration_publishes_event(db, bus, events):
    visit = register_visit(db, RegistrationRequest(name="Ravi", mobile="9845012345"), bus=bus)

    assert events == [(DomainEvent.VISIT_REGISTERED, visit.id)]


def test_doctor_queue_lists_waiting_visits_in_token_order(db, doctor, make_visit):
    visits = [make_visit(doctor_id=doctor.id) for _ in range(3)]
    make_visit()

    queue = doctor_queue(db, doctor.id)

    assert [v.token_number for v in queue] == [1, 2, 3]
    assert [v.id for v in queue] == [v.id for v in visits]
    assert len(list_visits(db)) == 4


def test_concurrent_token_assignment_never_repeats(tmp_path):
    """
    Parallel reservations against a shared file-backed store get distinct,
    gap-free tokens.
    """
    race_engine = build_engine(f"sqlite:///{tmp_path / 'race.db'}")
    Base.metadata.create_all(bind=race_engine)
    RaceSession = sessionmaker(bind=race_engine, autoflush=False, autocommit=False)
    day = date(2024, 3, 1)

    def take_token(_):
        session = RaceSession()
        try:
            return assign_token(session, 7, day)
        finally:
            session.close()

    try:
        with ThreadPoolExecutor(max_workers=8) as pool:
            tokens = list(pool.map(take_token, range(20)))
    finally:
        race_engine.dispose()

    assert sorted(tokens) == list(range(1, 21))


def test_registration_by_unknown_user_is_not_found(db):
    with pytest.raises(ResourceNotFoundException):
        register_visit(db, RegistrationRequest(name="Ravi", mobile="9845012345"), user_id=999)

    assert db.query(Visit).count() == 0
    assert db.query(Patient).count() == 0


def test_tokens_issued_tracks_the_counter(db, doctor, make_visit):
    assert tokens_issued(db, doctor.id) == 0
    make_visit(doctor_id=doctor.id)
    make_visit(doctor_id=doctor.id)

    assert tokens_issued(db, doctor.id) == 2
    assert tokens_issued(db, None) == 0
