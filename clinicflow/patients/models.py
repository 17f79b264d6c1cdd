"""
Patient Model - Stores patient demographics captured at registration.
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, func
from sqlalchemy.orm import relationship
from ..database import Base

class Patient(Base):
    """
    Patient Model - Stores patient-specific information

    Fields:
    - id: Primary key for patient
    - name: Patient's full name
    - age: Age in years, refreshed on repeat visits
    - gender: Patient's gender
    - mobile: Contact number, used to find returning patients (not enforced unique)
    - symptoms: Presenting symptoms from the latest registration
    - created_at: When the patient was first registered
    - updated_at: When the patient was last updated
    """
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    age = Column(Integer, nullable=True)
    gender = Column(String, nullable=True)
    mobile = Column(String, nullable=False, index=True)
    symptoms = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    visits = relationship("Visit", back_populates="patient")
    prescriptions = relationship("Prescription", back_populates="patient")
    admissions = relationship("Admission", back_populates="patient")

    def __repr__(self):
        """String representation of the Patient model"""
        return f"<Patient(id={self.id}, mobile='{self.mobile}')>"
