"""
Test configuration for the clinic workflow core.
"""
import os

# Point the application at a throwaway database before it is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from datetime import date
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clinicflow.database import build_engine, get_db
from clinicflow.models import Base, Patient, Profile, UserRole
from clinicflow.main import app
from clinicflow.core.events import DomainEvent, EventBus
from clinicflow.appointments.schemas import RegistrationRequest
from clinicflow.appointments.service import register_visit
from clinicflow.prescriptions.service import record_prescription
from clinicflow.pharmacy.service import add_stock

# Test database URL
TEST_DATABASE_URL = "sqlite://"

# Create test database engine
engine = build_engine(TEST_DATABASE_URL, poolclass=StaticPool)

# Create test session factory
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db():
    """
    Create a fresh database for each test.
    """
    # Create tables
    Base.metadata.create_all(bind=engine)

    # Create session
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

    # Drop tables after test
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db):
    """
    Create a test client with a test database session.
    """
    def override_get_db():
        try:
            yield db
        finally:
            pass

    # Override the get_db dependency
    app.dependency_overrides[get_db] = override_get_db

    # Create test client
    with TestClient(app) as client:
        yield client

    # Remove dependency override
    app.dependency_overrides = {}


@pytest.fixture
def bus():
    """A private event bus so tests can observe published events."""
    return EventBus()


@pytest.fixture
def events(bus):
    """Every (event_type, entity_id) published on the test bus, in order."""
    received = []
    for event_type in DomainEvent:
        bus.subscribe(event_type, lambda event, entity_id: received.append((event, entity_id)))
    return received


@pytest.fixture
def make_profile(db):
    """Factory for staff profiles."""
    def _make(full_name="Dr. Asha Rao", role=UserRole.DOCTOR):
        profile = Profile(full_name=full_name, role=role)
        db.add(profile)
        db.commit()
        db.refresh(profile)
        return profile
    return _make


@pytest.fixture
def doctor(make_profile):
    return make_profile()


@pytest.fixture
def make_patient(db):
    """Factory for patients created outside the registration flow."""
    counter = {"n": 0}

    def _make(name="Meena Iyer", mobile=None):
        counter["n"] += 1
        patient = Patient(name=name, mobile=mobile or f"90000{counter['n']:05d}")
        db.add(patient)
        db.commit()
        db.refresh(patient)
        return patient
    return _make


@pytest.fixture
def make_visit(db):
    """Factory registering a walk-in visit."""
    counter = {"n": 0}

    def _make(doctor_id=None, mobile=None, name="Ravi Kumar", visit_date=None, **kwargs):
        counter["n"] += 1
        registration = RegistrationRequest(
            name=name,
            mobile=mobile or f"98450{counter['n']:05d}",
            doctor_id=doctor_id,
            visit_date=visit_date or date.today(),
            **kwargs
        )
        return register_visit(db, registration)
    return _make


@pytest.fixture
def make_prescription(db, make_visit):
    """Factory recording a prescription on a fresh visit."""
    def _make(medicines=(), diagnosis="Viral fever", mobile=None):
        visit = make_visit(mobile=mobile)
        lines = [{"medicine_name": name, "dosage": "1-0-1", "duration": "3 days"} for name in medicines]
        return record_prescription(db, visit.id, None, diagnosis, lines)
    return _make


@pytest.fixture
def stock(db):
    """Factory receiving a stock batch."""
    def _make(medicine_name, batch_no, expiry, quantity, mrp="10.00"):
        return add_stock(db, medicine_name, batch_no, expiry, quantity, mrp)
    return _make
