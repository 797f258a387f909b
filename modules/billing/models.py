"""
Billing Module - Models
========================
Bill with a full price snapshot per line item for audit trail.

Bill: header, totals, GST split, exchange settlement, payment state
BillItem: one priced line (new item, or surrendered old item as a credit)
BillPaymentLog: append-only trail of payment status changes
"""

import enum

from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, Text, Date,
    ForeignKey, DateTime, Index, text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from config.database import Base

MONEY = Numeric(14, 2)
RATE = Numeric(18, 6)
WEIGHT = Numeric(12, 3)
PERCENT = Numeric(6, 2)


class RecordStatus(str, enum.Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"     # soft-deleted, excluded from lists and reports


class CustomerSnapshotMixin:
    """Customer details copied onto the record at creation time."""
    customer_name = Column(String(100), nullable=False)
    customer_mobile = Column(String(10), nullable=False, index=True)
    customer_address = Column(Text, nullable=True)
    customer_dob = Column(Date, nullable=True)
    customer_pan = Column(String(10), nullable=True)
    customer_aadhaar = Column(String(12), nullable=True)

    @property
    def customer(self) -> dict:
        return {
            "name": self.customer_name,
            "mobile": self.customer_mobile,
            "address": self.customer_address,
            "dob": self.customer_dob.isoformat() if self.customer_dob else None,
            "pan": self.customer_pan,
            "aadhaar": self.customer_aadhaar,
        }


class Bill(CustomerSnapshotMixin, Base):
    __tablename__ = "bills"

    id = Column(Integer, primary_key=True, index=True)
    bill_number = Column(String(40), unique=True, nullable=False)
    bill_date = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    is_number_canonical = Column(Boolean, default=True, server_default=text("true"), nullable=False)

    # Tax regime
    is_intra_state = Column(Boolean, default=True, nullable=False)
    gst_on_metal_percent = Column(PERCENT, nullable=True)
    gst_on_making_percent = Column(PERCENT, nullable=True)

    # Totals
    total_metal_amount = Column(MONEY, nullable=False, default=0)
    total_making_charges = Column(MONEY, nullable=False, default=0)
    sub_total = Column(MONEY, nullable=False, default=0)
    discount = Column(MONEY, nullable=False, default=0)
    discount_type = Column(String(20), nullable=False, default="amount")
    discount_amount = Column(MONEY, nullable=False, default=0)
    huid_charges_total = Column(MONEY, nullable=False, default=0)
    total_before_gst = Column(MONEY, nullable=False, default=0)
    cgst_amount = Column(MONEY, nullable=False, default=0)
    sgst_amount = Column(MONEY, nullable=False, default=0)
    igst_amount = Column(MONEY, nullable=False, default=0)
    gst_on_metal_amount = Column(MONEY, nullable=False, default=0)
    gst_on_making_amount = Column(MONEY, nullable=False, default=0)
    gst_on_huid_amount = Column(MONEY, nullable=False, default=0)
    gst_total = Column(MONEY, nullable=False, default=0)
    grand_total = Column(MONEY, nullable=False, default=0)
    amount_in_words = Column(String, nullable=False, default="")

    # Exchange settlement
    has_exchange = Column(Boolean, default=False, server_default=text("false"), nullable=False)
    exchange_id = Column(Integer, ForeignKey("exchanges.id", ondelete="SET NULL"), nullable=True)
    old_items_total = Column(MONEY, nullable=False, default=0)
    new_items_total = Column(MONEY, nullable=False, default=0)
    balance_payable = Column(MONEY, nullable=False, default=0)
    balance_refundable = Column(MONEY, nullable=False, default=0)

    # Payment
    net_payable = Column(MONEY, nullable=False, default=0)
    payment_mode = Column(String(20), nullable=False, default="cash")
    payment_status = Column(String(20), nullable=False, default="paid")
    paid_amount = Column(MONEY, nullable=False, default=0)
    due_amount = Column(MONEY, nullable=False, default=0)

    notes = Column(Text, nullable=True)

    # Lifecycle
    record_status = Column(String(20), default=RecordStatus.ACTIVE, nullable=False)
    archived_at = Column(DateTime(timezone=True), nullable=True)
    archived_by = Column(String, nullable=True)

    created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    created_by = relationship("User", foreign_keys=[created_by_id])
    exchange = relationship("Exchange", foreign_keys=[exchange_id])
    items = relationship(
        "BillItem", back_populates="bill",
        cascade="all, delete-orphan", order_by="BillItem.line_no",
    )
    payment_logs = relationship(
        "BillPaymentLog", back_populates="bill",
        cascade="all, delete-orphan", order_by="BillPaymentLog.id",
    )

    __table_args__ = (
        Index("ix_bills_status_date", "record_status", "bill_date"),
    )

    @property
    def is_active(self) -> bool:
        return self.record_status == RecordStatus.ACTIVE

    @property
    def gst_type(self) -> str:
        return "CGST+SGST" if self.is_intra_state else "IGST"

    @property
    def new_items(self) -> list:
        return [i for i in self.items if not i.is_exchange_item]

    @property
    def exchange_items(self) -> list:
        return [i for i in self.items if i.is_exchange_item]

    def __repr__(self):
        return f"<Bill {self.bill_number} total={self.grand_total}>"


class BillItem(Base):
    __tablename__ = "bill_items"

    id = Column(Integer, primary_key=True)
    bill_id = Column(Integer, ForeignKey("bills.id", ondelete="CASCADE"), nullable=False, index=True)
    line_no = Column(Integer, nullable=False, default=1)
    is_exchange_item = Column(Boolean, default=False, nullable=False)

    description = Column(String, nullable=True)
    metal_type = Column(String(30), nullable=False)
    purity = Column(String(20), nullable=True)
    unit = Column(String(5), nullable=False, default="GM")
    quantity = Column(Integer, nullable=False, default=1)
    huid = Column(String(20), nullable=True)
    tunch = Column(String(20), nullable=True)

    # Rate snapshot at time of billing
    gross_weight = Column(WEIGHT, nullable=True)
    less_weight = Column(WEIGHT, nullable=True)
    net_weight = Column(WEIGHT, nullable=False)
    rate_per_base_unit = Column(RATE, nullable=False)
    purity_multiplier = Column(Numeric(8, 4), nullable=False, default=1)
    effective_rate = Column(RATE, nullable=False)

    # Making charge
    making_charge_type = Column(String(20), nullable=True)
    making_charge_value = Column(MONEY, nullable=False, default=0)
    making_charge_discount = Column(PERCENT, nullable=False, default=0)

    # Calculated amounts
    metal_amount = Column(MONEY, nullable=False, default=0)
    making_charge_amount = Column(MONEY, nullable=False, default=0)
    gst_on_metal_percent = Column(PERCENT, nullable=False, default=0)
    gst_on_making_percent = Column(PERCENT, nullable=False, default=0)
    metal_cgst = Column(MONEY, nullable=False, default=0)
    metal_sgst = Column(MONEY, nullable=False, default=0)
    metal_igst = Column(MONEY, nullable=False, default=0)
    making_cgst = Column(MONEY, nullable=False, default=0)
    making_sgst = Column(MONEY, nullable=False, default=0)
    making_igst = Column(MONEY, nullable=False, default=0)
    huid_charge = Column(MONEY, nullable=False, default=0)

    # Old-item deductions (exchange lines only)
    wastage_deduction_percent = Column(PERCENT, nullable=True)
    melting_charge = Column(MONEY, nullable=True)
    shop_deduction_percent = Column(PERCENT, nullable=True)

    # Negative for exchange lines (credit)
    line_total = Column(MONEY, nullable=False)

    bill = relationship("Bill", back_populates="items")


class BillPaymentLog(Base):
    __tablename__ = "bill_payment_logs"

    id = Column(Integer, primary_key=True)
    bill_id = Column(Integer, ForeignKey("bills.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    previous_status = Column(String(20), nullable=True)
    new_status = Column(String(20), nullable=False)
    payment_mode = Column(String(20), nullable=True)
    paid_amount = Column(MONEY, nullable=False, default=0)
    remarks = Column(Text, nullable=True)
    updated_by = Column(String, nullable=True)

    bill = relationship("Bill", back_populates="payment_logs")
