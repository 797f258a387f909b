"""
Exchange Module - Models
=========================
Standalone old-gold exchange record, created before (and independent of) a bill.

Old and new item valuations are stored as JSON snapshots, including the rates
used, so the record never changes when live rates move.
"""

import enum

from sqlalchemy import Column, Integer, String, Numeric, Boolean, Text, ForeignKey, DateTime, JSON, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from config.database import Base
from modules.billing.models import CustomerSnapshotMixin, RecordStatus, MONEY, PERCENT


class ExchangeStatus(str, enum.Enum):
    CALCULATED = "calculated"
    CONVERTED_TO_BILL = "converted_to_bill"
    CANCELLED = "cancelled"


class Exchange(CustomerSnapshotMixin, Base):
    __tablename__ = "exchanges"

    id = Column(Integer, primary_key=True, index=True)
    exchange_number = Column(String(40), unique=True, nullable=False)
    exchange_date = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    is_number_canonical = Column(Boolean, default=True, nullable=False)

    # Snapshots
    old_items = Column(JSON, nullable=False, default=list)
    new_items = Column(JSON, nullable=False, default=list)
    rates_snapshot = Column(JSON, nullable=False, default=dict)

    shop_deduction_percent = Column(PERCENT, nullable=False, default=0)
    is_intra_state = Column(Boolean, default=True, nullable=False)

    # Totals
    old_items_total = Column(MONEY, nullable=False, default=0)
    new_items_total = Column(MONEY, nullable=False, default=0)
    balance_payable = Column(MONEY, nullable=False, default=0)
    balance_refundable = Column(MONEY, nullable=False, default=0)

    status = Column(String(30), default=ExchangeStatus.CALCULATED, nullable=False)
    linked_bill_number = Column(String(40), nullable=True)
    converted_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)

    record_status = Column(String(20), default=RecordStatus.ACTIVE, nullable=False)
    archived_at = Column(DateTime(timezone=True), nullable=True)

    created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    created_by = relationship("User", foreign_keys=[created_by_id])

    __table_args__ = (
        Index("ix_exchanges_status", "record_status", "status"),
    )

    @property
    def is_active(self) -> bool:
        return self.record_status == RecordStatus.ACTIVE

    @property
    def is_convertible(self) -> bool:
        return self.is_active and self.status == ExchangeStatus.CALCULATED

    def __repr__(self):
        return f"<Exchange {self.exchange_number} status={self.status}>"
