"""
Production batches recorded per shift.

batch_in_shift is a per (product, shift, batch_date) ordinal starting at 1.
It is derived as MAX + 1 at insert time; uq_batches_product_shift_date_seq
turns a concurrent duplicate into an IntegrityError instead of a silent
repeat. The human-readable batch number is never stored, see
services.batch_service.format_batch_number.
"""

import enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from mfg_inventory.core.database import Base


class Shift(str, enum.Enum):
    morning = "morning"
    afternoon = "afternoon"
    night = "night"


SHIFT_ORDER = (Shift.morning, Shift.afternoon, Shift.night)


class BatchStatus(str, enum.Enum):
    planned = "planned"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


class Batch(Base):
    __tablename__ = "batches"
    __table_args__ = (
        UniqueConstraint(
            "product_id", "shift", "batch_date", "batch_in_shift",
            name="uq_batches_product_shift_date_seq",
        ),
        UniqueConstraint(
            "product_id", "shift", "batch_date", "start_time", "end_time",
            name="uq_batches_product_shift_date_slot",
        ),
        CheckConstraint("quantity_produced > 0", name="ck_batches_quantity_positive"),
        CheckConstraint("batch_in_shift >= 1", name="ck_batches_batch_in_shift"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    unit_id = Column(Integer, ForeignKey("units.id", ondelete="CASCADE"), nullable=False, index=True)
    quantity_produced = Column(Integer, nullable=False)

    shift = Column(Enum(Shift), nullable=False)
    batch_in_shift = Column(Integer, nullable=False)
    batch_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    status = Column(Enum(BatchStatus), nullable=False, default=BatchStatus.completed)
    notes = Column(Text, nullable=True)
    had_delay = Column(Boolean, nullable=False, default=False)
    delay_reason = Column(Text, nullable=True)

    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    product = relationship("Product", back_populates="batches")
    unit = relationship("Unit")
    creator = relationship("User", foreign_keys=[created_by])
