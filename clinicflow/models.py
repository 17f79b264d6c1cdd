"""
Imports every model module so the declarative registry knows all tables
before create_all runs or string relationships are resolved.
"""
from .database import Base
from .identity.models import Profile, UserRole
from .patients.models import Patient
from .appointments.models import Visit, VisitStatus
from .prescriptions.models import Prescription, PrescriptionLine
from .pharmacy.models import Medicine, InventoryBatch, DispenseRecord
from .billing.models import Bill, BillLine, Payment
from .beds.models import Bed, Admission
from .core.audit_models import AuditLog
from .core.sequences import SequenceCounter

__all__ = [
    "Base",
    "Profile", "UserRole",
    "Patient",
    "Visit", "VisitStatus",
    "Prescription", "PrescriptionLine",
    "Medicine", "InventoryBatch", "DispenseRecord",
    "Bill", "BillLine", "Payment",
    "Bed", "Admission",
    "AuditLog",
    "SequenceCounter",
]
