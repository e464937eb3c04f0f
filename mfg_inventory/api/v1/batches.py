"""
Batch API: sequence lookup, used time slots, statistics and batch CRUD.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from mfg_inventory.common.exceptions import AppError
from mfg_inventory.common.response import SuccessResponse
from mfg_inventory.core.dependencies import get_current_principal, get_db, require_permission
from mfg_inventory.logger_config import logger
from mfg_inventory.models.batch import BatchStatus
from mfg_inventory.schemas.auth import Principal
from mfg_inventory.schemas.batch import (
    BatchCreate,
    BatchResponse,
    BatchStatisticsResponse,
    BatchUpdate,
    NextBatchResponse,
    TimeSlot,
)
from mfg_inventory.services.batch_service import (
    batch_statistics,
    create_batch,
    delete_batch,
    format_batch_number,
    get_batch_for,
    get_batches_by_unit,
    list_batches,
    next_batch_in_shift,
    update_batch,
    used_time_slots,
)
from mfg_inventory.services.product_service import get_product_for

router = APIRouter()


def _build_batch_response(batch) -> BatchResponse:
    unit_code = batch.unit.code if batch.unit else None
    return BatchResponse(
        id=batch.id,
        batch_number=format_batch_number(unit_code, batch.batch_date, batch.shift, batch.batch_in_shift),
        product_id=batch.product_id,
        product_name=batch.product.name if batch.product else None,
        unit_id=batch.unit_id,
        unit_code=unit_code,
        quantity_produced=batch.quantity_produced,
        shift=batch.shift.value,
        batch_in_shift=batch.batch_in_shift,
        batch_date=batch.batch_date,
        start_time=batch.start_time,
        end_time=batch.end_time,
        status=batch.status,
        notes=batch.notes,
        had_delay=bool(batch.had_delay),
        delay_reason=batch.delay_reason,
        created_by=batch.created_by,
        created_at=batch.created_at,
        updated_at=batch.updated_at,
    )


def _internal_error(action: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    )


@router.get("/product/{product_id}/shift/{shift}/next-batch")
def get_next_batch(
    product_id: int,
    shift: str,
    batch_date: Optional[date] = Query(None, alias="date"),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Next batch_in_shift for (product, shift, date); date defaults to today."""
    get_product_for(db, principal, product_id)
    next_seq = next_batch_in_shift(db, product_id, shift, batch_date)
    return SuccessResponse.send(
        data=NextBatchResponse(next_batch_in_shift=next_seq),
        message="Next batch number fetched successfully",
    )


@router.get("/product/{product_id}/shift/{shift}/used-slots")
def get_used_slots(
    product_id: int,
    shift: str,
    batch_date: Optional[date] = Query(None, alias="date"),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    get_product_for(db, principal, product_id)
    slots = sorted(used_time_slots(db, product_id, shift, batch_date))
    return SuccessResponse.send(
        data=[TimeSlot(start_time=start, end_time=end) for start, end in slots],
        message="Used time slots fetched successfully",
    )


@router.get("/unit/{unit_id}/statistics")
def get_unit_statistics(
    unit_id: int,
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    try:
        stats = batch_statistics(db, principal, unit_id, date_from=date_from, date_to=date_to)
        return SuccessResponse.send(
            data=BatchStatisticsResponse(**stats),
            message="Batch statistics fetched successfully",
        )
    except AppError:
        raise
    except Exception:
        logger.exception(f"Error computing batch statistics for unit {unit_id}")
        raise _internal_error("compute batch statistics")


@router.get("/unit/{unit_id}")
def list_unit_batches(
    unit_id: int,
    limit: int = Query(50, ge=1, le=500),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Latest batches of one unit."""
    batches = get_batches_by_unit(db, principal, unit_id, limit=limit)
    return SuccessResponse.send(
        data=[_build_batch_response(b) for b in batches],
        message="Batches fetched successfully",
    )


@router.get("")
def list_batches_route(
    unit_id: Optional[int] = Query(None),
    product_id: Optional[int] = Query(None),
    shift: Optional[str] = Query(None),
    status_filter: Optional[BatchStatus] = Query(None, alias="status"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    try:
        batches = list_batches(
            db,
            principal,
            unit_id=unit_id,
            product_id=product_id,
            shift=shift,
            status=status_filter,
            date_from=date_from,
            date_to=date_to,
            limit=limit,
        )
        return SuccessResponse.send(
            data=[_build_batch_response(b) for b in batches],
            message="Batches fetched successfully",
        )
    except AppError:
        raise
    except Exception:
        logger.exception("Error listing batches")
        raise _internal_error("list batches")


@router.get("/{batch_id}")
def get_batch_route(
    batch_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    batch = get_batch_for(db, principal, batch_id)
    return SuccessResponse.send(data=_build_batch_response(batch), message="Batch fetched successfully")


@router.post("", status_code=status.HTTP_201_CREATED)
def create_batch_route(
    data: BatchCreate,
    principal: Principal = Depends(require_permission("create")),
    db: Session = Depends(get_db),
):
    """
    Record a batch. The unit comes from the product; batch_in_shift is
    computed when omitted; an already booked (start, end) slot is a 409.
    """
    try:
        batch = create_batch(db, principal, data.model_dump())
        return SuccessResponse.send(data=_build_batch_response(batch), message="Batch created successfully")
    except AppError:
        raise
    except Exception:
        logger.exception("Error creating batch")
        raise _internal_error("create batch")


@router.put("/{batch_id}")
def update_batch_route(
    batch_id: int,
    data: BatchUpdate,
    principal: Principal = Depends(require_permission("update")),
    db: Session = Depends(get_db),
):
    try:
        fields = {key: getattr(data, key) for key in data.model_fields_set}
        batch = update_batch(db, principal, batch_id, fields)
        return SuccessResponse.send(data=_build_batch_response(batch), message="Batch updated successfully")
    except AppError:
        raise
    except Exception:
        logger.exception(f"Error updating batch {batch_id}")
        raise _internal_error("update batch")


@router.delete("/{batch_id}")
def delete_batch_route(
    batch_id: int,
    principal: Principal = Depends(require_permission("delete")),
    db: Session = Depends(get_db),
):
    try:
        deleted_id = delete_batch(db, principal, batch_id)
        return SuccessResponse.send(data={"id": deleted_id}, message="Batch deleted successfully")
    except AppError:
        raise
    except Exception:
        logger.exception(f"Error deleting batch {batch_id}")
        raise _internal_error("delete batch")
