"""
Prescription Models - Consultation outcome and the medicines prescribed.

This model maintains a record of the diagnosis and medicine lines written
for one completed visit.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, func
from sqlalchemy.orm import relationship
from ..database import Base

class Prescription(Base):
    """
    Prescription Model - Stores the doctor's findings for a visit

    Fields:
    - id: Primary key for prescription
    - appointment_id: Foreign key to the visit (one prescription per visit)
    - patient_id: Foreign key to Patient model
    - doctor_id: Foreign key to the doctor's profile
    - diagnosis: Medical diagnosis
    - notes: Additional advice or notes
    - created_at: When the prescription was written
    """
    __tablename__ = "prescriptions"

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id", ondelete="CASCADE"), unique=True, nullable=False)
    patient_id = Column(Integer, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    diagnosis = Column(Text, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    # Relationships
    visit = relationship("Visit", back_populates="prescription")
    patient = relationship("Patient", back_populates="prescriptions")
    lines = relationship(
        "PrescriptionLine",
        back_populates="prescription",
        cascade="all, delete-orphan",
        order_by="PrescriptionLine.id"
    )

    def __repr__(self):
        """String representation of the Prescription model"""
        return f"<Prescription(id={self.id}, appointment_id={self.appointment_id}, patient_id={self.patient_id})>"


class PrescriptionLine(Base):
    """
    Prescription Line Model - One prescribed medicine, as free text

    The medicine name is resolved against the catalog only when dispensing.
    """
    __tablename__ = "prescription_medicines"

    id = Column(Integer, primary_key=True, index=True)
    prescription_id = Column(Integer, ForeignKey("prescriptions.id", ondelete="CASCADE"), nullable=False, index=True)
    medicine_name = Column(String, nullable=False)
    dosage = Column(String, nullable=True)
    duration = Column(String, nullable=True)

    # Relationships
    prescription = relationship("Prescription", back_populates="lines")
    dispense_records = relationship("DispenseRecord", back_populates="prescription_line")

    def __repr__(self):
        return f"<PrescriptionLine(id={self.id}, medicine='{self.medicine_name}')>"
