"""
Bed Models - Inpatient beds and the admissions occupying them.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, func, text
from sqlalchemy.orm import relationship
import enum
from ..database import Base, value_enum

class BedStatus(str, enum.Enum):
    """Enum for bed occupancy states"""
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    CLEANING = "cleaning"

class AdmissionStatus(str, enum.Enum):
    """Enum for admission status"""
    ADMITTED = "admitted"
    DISCHARGED = "discharged"

# The only permitted edges; beds cycle indefinitely
BED_TRANSITIONS = {
    BedStatus.AVAILABLE: BedStatus.OCCUPIED,
    BedStatus.OCCUPIED: BedStatus.CLEANING,
    BedStatus.CLEANING: BedStatus.AVAILABLE,
}

class Bed(Base):
    """
    Bed Model - A physical bed and its occupancy state

    Fields:
    - id: Primary key
    - bed_number: Label, unique across the hospital
    - ward: Ward the bed belongs to
    - status: available, occupied or cleaning
    """
    __tablename__ = "beds"

    id = Column(Integer, primary_key=True, index=True)
    bed_number = Column(String, unique=True, nullable=False)
    ward = Column(String, nullable=True, index=True)
    status = Column(value_enum(BedStatus, "bed_status"), nullable=False, default=BedStatus.AVAILABLE)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    admissions = relationship("Admission", back_populates="bed", order_by="Admission.id")

    def __repr__(self):
        return f"<Bed(id={self.id}, number='{self.bed_number}', status='{self.status}')>"

    def can_transition_to(self, target: BedStatus) -> bool:
        return BED_TRANSITIONS.get(BedStatus(self.status)) == target


class Admission(Base):
    """
    Admission Model - A patient's stay in a bed

    At most one admission per bed may be in the admitted state; a partial
    unique index enforces this in the store.
    """
    __tablename__ = "admissions"
    __table_args__ = (
        Index(
            "uq_admissions_active_bed",
            "bed_id",
            unique=True,
            postgresql_where=text("status = 'admitted'"),
            sqlite_where=text("status = 'admitted'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    bed_id = Column(Integer, ForeignKey("beds.id", ondelete="CASCADE"), nullable=False)
    status = Column(value_enum(AdmissionStatus, "admission_status"), nullable=False, default=AdmissionStatus.ADMITTED)
    admit_date = Column(DateTime(timezone=True), server_default=func.now())
    discharge_date = Column(DateTime(timezone=True), nullable=True)
    admitted_by = Column(Integer, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)

    bed = relationship("Bed", back_populates="admissions")
    patient = relationship("Patient", back_populates="admissions")

    def __repr__(self):
        return f"<Admission(id={self.id}, bed_id={self.bed_id}, patient_id={self.patient_id}, status='{self.status}')>"
