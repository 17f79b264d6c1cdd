"""
Visit Model - One OPD registration with its daily queue token.
"""
from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import relationship
import enum
from ..database import Base, value_enum

UNASSIGNED_QUEUE = "unassigned"

class VisitStatus(str, enum.Enum):
    """Enum for visit status"""
    WAITING = "waiting"
    COMPLETED = "completed"

class Visit(Base):
    """
    Visit Model - Stores a patient's place in a doctor's daily queue

    Fields:
    - id: Primary key for visit
    - patient_id: Foreign key to Patient model
    - doctor_id: Foreign key to the doctor's profile (nullable: unassigned queue)
    - queue_key: Doctor id as text, or "unassigned"; partitions token numbers
    - visit_date: Calendar day the token belongs to
    - token_number: Position in the doctor's queue for that day
    - status: waiting until the consultation is recorded, then completed
    - created_at: When the visit was registered
    - updated_at: When the visit was last updated
    """
    __tablename__ = "appointments"
    __table_args__ = (
        UniqueConstraint("queue_key", "visit_date", "token_number", name="uq_appointment_token"),
    )

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True)
    queue_key = Column(String(64), nullable=False)
    visit_date = Column(Date, nullable=False, index=True)
    token_number = Column(Integer, nullable=False)
    status = Column(value_enum(VisitStatus, "appointment_status"), nullable=False, default=VisitStatus.WAITING)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    patient = relationship("Patient", back_populates="visits")
    doctor = relationship("Profile")
    prescription = relationship("Prescription", back_populates="visit", uselist=False)

    def __repr__(self):
        """String representation of the Visit model"""
        return f"<Visit(id={self.id}, queue='{self.queue_key}', date='{self.visit_date}', token={self.token_number})>"

    @staticmethod
    def queue_key_for(doctor_id) -> str:
        """Token partition for a doctor id (None means the unassigned queue)"""
        return str(doctor_id) if doctor_id is not None else UNASSIGNED_QUEUE
