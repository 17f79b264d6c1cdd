"""
Billing Models - Immutable bills, their line items and the payment taken.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric, func
from sqlalchemy.orm import relationship
import enum
from ..database import Base, value_enum

class BillStatus(str, enum.Enum):
    """Enum for bill status (full payment only)"""
    PAID = "paid"

class BillItemType(str, enum.Enum):
    """Enum for bill line types"""
    MEDICINE = "medicine"
    CONSULTATION = "consultation"

class PaymentMode(str, enum.Enum):
    """Enum for payment modes"""
    CASH = "cash"
    UPI = "upi"
    CARD = "card"

class Bill(Base):
    """
    Bill Model - Header of a finalized bill

    Fields:
    - id: Primary key
    - invoice_no: Human-readable number, e.g. INV-20240110-0001
    - patient_id: Foreign key to Patient model
    - total_amount: Sum of quantity * unit_price over the bill's lines
    - status: Always paid; bills are created together with their payment
    - created_by: Profile ID of the biller
    - created_at: When the bill was finalized
    """
    __tablename__ = "bills"

    id = Column(Integer, primary_key=True, index=True)
    invoice_no = Column(String, unique=True, nullable=False)
    patient_id = Column(Integer, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    total_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(value_enum(BillStatus, "bill_status"), nullable=False, default=BillStatus.PAID)
    created_by = Column(Integer, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    items = relationship("BillLine", back_populates="bill", cascade="all, delete-orphan", order_by="BillLine.id")
    payment = relationship("Payment", back_populates="bill", uselist=False, cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Bill(id={self.id}, invoice_no='{self.invoice_no}', total={self.total_amount})>"


class BillLine(Base):
    """
    Bill Line Model - One charged item

    dispense_record_id links medicine lines back to the dispense they charge for.
    """
    __tablename__ = "bill_items"

    id = Column(Integer, primary_key=True, index=True)
    bill_id = Column(Integer, ForeignKey("bills.id", ondelete="CASCADE"), nullable=False, index=True)
    item_name = Column(String, nullable=False)
    item_type = Column(value_enum(BillItemType, "bill_item_type"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(10, 2), nullable=False)
    dispense_record_id = Column(Integer, ForeignKey("pharmacy_dispense.id"), nullable=True, unique=True)

    bill = relationship("Bill", back_populates="items")

    def __repr__(self):
        return f"<BillLine(id={self.id}, name='{self.item_name}', qty={self.quantity}, price={self.unit_price})>"

    @property
    def amount(self):
        return self.quantity * self.unit_price


class Payment(Base):
    """
    Payment Model - The single full payment settling a bill
    """
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    bill_id = Column(Integer, ForeignKey("bills.id", ondelete="CASCADE"), unique=True, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_mode = Column(value_enum(PaymentMode, "payment_mode"), nullable=False)
    paid_at = Column(DateTime(timezone=True), server_default=func.now())

    bill = relationship("Bill", back_populates="payment")

    def __repr__(self):
        return f"<Payment(id={self.id}, bill_id={self.bill_id}, amount={self.amount}, mode='{self.payment_mode}')>"
