"""
Pydantic schemas for production batches.
"""

from datetime import date, datetime, time
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from mfg_inventory.models.batch import BatchStatus


class BatchCreate(BaseModel):
    product_id: int
    # Plain string so an unknown shift reaches the allocator and is reported as invalid input
    shift: str
    quantity_produced: int = Field(..., gt=0)
    batch_date: Optional[date] = None
    batch_in_shift: Optional[int] = Field(None, ge=1)
    start_time: time
    end_time: time
    status: Optional[BatchStatus] = None
    notes: Optional[str] = None
    had_delay: bool = False
    delay_reason: Optional[str] = None

    @model_validator(mode="after")
    def delay_reason_required(self):
        if self.had_delay and not (self.delay_reason or "").strip():
            raise ValueError("delay_reason is required when had_delay is true")
        return self


class BatchUpdate(BaseModel):
    """Descriptive fields only; the (product, shift, date, sequence) identity is fixed."""

    quantity_produced: Optional[int] = Field(None, gt=0)
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    status: Optional[BatchStatus] = None
    notes: Optional[str] = None
    had_delay: Optional[bool] = None
    delay_reason: Optional[str] = None


class BatchResponse(BaseModel):
    id: int
    batch_number: str
    product_id: int
    product_name: Optional[str] = None
    unit_id: int
    unit_code: Optional[str] = None
    quantity_produced: int
    shift: str
    batch_in_shift: int
    batch_date: date
    start_time: time
    end_time: time
    status: BatchStatus
    notes: Optional[str] = None
    had_delay: bool
    delay_reason: Optional[str] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class NextBatchResponse(BaseModel):
    next_batch_in_shift: int


class TimeSlot(BaseModel):
    start_time: time
    end_time: time


class ShiftBreakdown(BaseModel):
    shift: str
    total_batches: int
    total_quantity: int


class BatchStatisticsResponse(BaseModel):
    total_batches: int
    total_quantity: int
    avg_quantity: float
    unique_products: int
    shift_breakdown: List[ShiftBreakdown]
