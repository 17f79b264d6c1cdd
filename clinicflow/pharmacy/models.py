"""
Pharmacy Models - Medicine catalog, stock batches and the dispense ledger.
"""
from sqlalchemy import (
    Column, Integer, String, Date, DateTime, ForeignKey, Numeric,
    CheckConstraint, func
)
from sqlalchemy.orm import relationship
import enum
from ..database import Base, value_enum

class Medicine(Base):
    """
    Medicine Model - Catalog entry, matched case-insensitively by name

    Fields:
    - id: Primary key
    - name: Canonical display name
    - name_key: Lower-cased name; unique, so concurrent upserts cannot duplicate an entry
    - strength: e.g. 500mg
    - unit: e.g. tab, ml
    """
    __tablename__ = "medicines"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    name_key = Column(String, nullable=False, unique=True, index=True)
    strength = Column(String, nullable=True)
    unit = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    batches = relationship("InventoryBatch", back_populates="medicine")

    def __repr__(self):
        return f"<Medicine(id={self.id}, name='{self.name}')>"

    @staticmethod
    def key_for(name: str) -> str:
        return name.strip().lower()


class InventoryBatch(Base):
    """
    Inventory Batch Model - A stocked quantity sharing one expiry and price

    Fields:
    - id: Primary key (insertion order breaks expiry ties)
    - medicine_id: Foreign key to Medicine
    - batch_no: Manufacturer batch number
    - expiry: Expiry date
    - quantity: Units on hand, never negative
    - mrp: Unit price charged when dispensed
    """
    __tablename__ = "inventory"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    medicine_id = Column(Integer, ForeignKey("medicines.id", ondelete="CASCADE"), nullable=False, index=True)
    batch_no = Column(String, nullable=False)
    expiry = Column(Date, nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=0)
    mrp = Column(Numeric(10, 2), nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    medicine = relationship("Medicine", back_populates="batches")

    def __repr__(self):
        return f"<InventoryBatch(id={self.id}, batch='{self.batch_no}', expiry='{self.expiry}', qty={self.quantity})>"


class DispenseStatus(str, enum.Enum):
    """Enum for per-line dispense outcomes"""
    DISPENSED = "dispensed"
    MEDICINE_UNKNOWN = "medicine_unknown"
    OUT_OF_STOCK = "out_of_stock"
    ALREADY_DISPENSED = "already_dispensed"


class DispenseRecordStatus(str, enum.Enum):
    DISPENSED = "dispensed"


class DispenseRecord(Base):
    """
    Dispense Record Model - Append-only audit of stock leaving a batch

    Fields:
    - prescription_id / prescription_line_id: What was served (one record per line)
    - medicine_id / batch_id: What was drawn
    - quantity: Units drawn
    - unit_price: Batch MRP frozen at dispense time
    - bill_id: Bill the record was charged on; NULL while unbilled
    """
    __tablename__ = "pharmacy_dispense"

    id = Column(Integer, primary_key=True, index=True)
    prescription_id = Column(Integer, ForeignKey("prescriptions.id", ondelete="CASCADE"), nullable=False, index=True)
    prescription_line_id = Column(
        Integer, ForeignKey("prescription_medicines.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    medicine_id = Column(Integer, ForeignKey("medicines.id"), nullable=False)
    batch_id = Column(Integer, ForeignKey("inventory.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    status = Column(
        value_enum(DispenseRecordStatus, "dispense_status"), nullable=False, default=DispenseRecordStatus.DISPENSED
    )
    # bills and pharmacy_dispense reference each other
    bill_id = Column(
        Integer, ForeignKey("bills.id", ondelete="SET NULL", use_alter=True, name="fk_dispense_bill"),
        nullable=True, index=True
    )
    dispensed_at = Column(DateTime(timezone=True), server_default=func.now())

    prescription = relationship("Prescription")
    prescription_line = relationship("PrescriptionLine", back_populates="dispense_records")
    medicine = relationship("Medicine")
    batch = relationship("InventoryBatch")

    def __repr__(self):
        return f"<DispenseRecord(id={self.id}, batch_id={self.batch_id}, qty={self.quantity}, bill_id={self.bill_id})>"

    @property
    def is_billed(self) -> bool:
        return self.bill_id is not None
