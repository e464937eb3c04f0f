"""
Batch allocator: per-shift sequence numbers, time-slot collisions and the
batch rows themselves.

The sequence is a MAX + 1 read in the same transaction as the insert. Two
concurrent creations can still compute the same value; the unique
constraint on (product, shift, date, sequence) rejects the second one and a
server-computed sequence is recomputed up to BATCH_SEQUENCE_RETRIES times.
"""

from datetime import date, time
from typing import Any, Dict, List, Optional, Set, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from mfg_inventory.common.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    InvalidReferenceError,
    NoOpError,
    NotFoundError,
)
from mfg_inventory.core.config import settings
from mfg_inventory.logger_config import logger
from mfg_inventory.models.batch import SHIFT_ORDER, Batch, BatchStatus, Shift
from mfg_inventory.models.product import Product
from mfg_inventory.schemas.auth import Principal
from mfg_inventory.utils.integrity import FOREIGN_KEY_VIOLATION, violated_constraint

SEQUENCE_CONSTRAINT = "uq_batches_product_shift_date_seq"
SLOT_CONSTRAINT = "uq_batches_product_shift_date_slot"

DESCRIPTIVE_FIELDS = (
    "quantity_produced",
    "start_time",
    "end_time",
    "status",
    "notes",
    "had_delay",
    "delay_reason",
)


def parse_shift(value: Any) -> Shift:
    """Shift from its string value; anything else is InvalidInput."""
    if isinstance(value, Shift):
        return value
    try:
        return Shift(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(s.value for s in SHIFT_ORDER)
        raise InvalidInputError(f"Invalid shift '{value}'. Must be one of: {allowed}")


def format_batch_number(unit_code: Optional[str], batch_date: date, shift: Shift, batch_in_shift: int) -> str:
    """UNITCODE-YYYY-MM-DD-SHIFT-001. Derived on every read, never stored."""
    shift_value = shift.value if isinstance(shift, Shift) else str(shift)
    return f"{unit_code or 'UNIT'}-{batch_date:%Y-%m-%d}-{shift_value.upper()}-{batch_in_shift:03d}"


def next_batch_in_shift(db: Session, product_id: int, shift: Any, batch_date: Optional[date] = None) -> int:
    """MAX(batch_in_shift) + 1 for (product, shift, date); 1 when the scope is empty."""
    shift = parse_shift(shift)
    batch_date = batch_date or date.today()
    current = (
        db.query(func.max(Batch.batch_in_shift))
        .filter(
            Batch.product_id == product_id,
            Batch.shift == shift,
            Batch.batch_date == batch_date,
        )
        .scalar()
    )
    return (current or 0) + 1


def used_time_slots(
    db: Session, product_id: int, shift: Any, batch_date: Optional[date] = None
) -> Set[Tuple[time, time]]:
    shift = parse_shift(shift)
    batch_date = batch_date or date.today()
    rows = (
        db.query(Batch.start_time, Batch.end_time)
        .filter(
            Batch.product_id == product_id,
            Batch.shift == shift,
            Batch.batch_date == batch_date,
        )
        .all()
    )
    return {(row.start_time, row.end_time) for row in rows}


def _slot_taken(
    db: Session,
    product_id: int,
    shift: Shift,
    batch_date: date,
    start_time: time,
    end_time: time,
    exclude_id: Optional[int] = None,
) -> bool:
    query = db.query(Batch.id).filter(
        Batch.product_id == product_id,
        Batch.shift == shift,
        Batch.batch_date == batch_date,
        Batch.start_time == start_time,
        Batch.end_time == end_time,
    )
    if exclude_id is not None:
        query = query.filter(Batch.id != exclude_id)
    return query.first() is not None


def _slot_conflict(shift: Shift) -> ConflictError:
    return ConflictError(
        f"Time slot already used for this product in the {shift.value} shift",
        constraint=SLOT_CONSTRAINT,
    )


def _check_times(start_time: Optional[time], end_time: Optional[time]) -> None:
    if start_time is None or end_time is None:
        raise InvalidInputError("Start time and end time are required")


def _check_delay(had_delay: bool, delay_reason: Optional[str]) -> None:
    if had_delay and not (delay_reason or "").strip():
        raise InvalidInputError("Delay reason is required when the batch had a delay")


def get_batch_by_id(db: Session, batch_id: int) -> Optional[Batch]:
    return (
        db.query(Batch)
        .options(joinedload(Batch.product), joinedload(Batch.unit))
        .filter(Batch.id == batch_id)
        .first()
    )


def get_batch_for(db: Session, principal: Principal, batch_id: int) -> Batch:
    batch = get_batch_by_id(db, batch_id)
    if not batch:
        raise NotFoundError("Batch not found")
    if not principal.can_access_unit(batch.unit_id):
        raise ForbiddenError("Access denied to this batch")
    return batch


def create_batch(db: Session, principal: Principal, data: Dict[str, Any]) -> Batch:
    """
    Record a production batch.

    data keys: product_id, shift, quantity_produced, start_time, end_time and
    optionally batch_date (today), batch_in_shift (computed), status, notes,
    had_delay, delay_reason.
    """
    shift = parse_shift(data.get("shift"))

    quantity = data.get("quantity_produced")
    if quantity is None or quantity <= 0:
        raise InvalidInputError("Quantity produced must be greater than 0")
    start_time, end_time = data.get("start_time"), data.get("end_time")
    _check_times(start_time, end_time)
    had_delay = bool(data.get("had_delay"))
    _check_delay(had_delay, data.get("delay_reason"))

    product_id = data.get("product_id")
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFoundError(f"Product not found: {product_id}")
    if not principal.can_access_unit(product.unit_id):
        raise ForbiddenError("You can only create batches for products in your unit")

    batch_date = data.get("batch_date") or date.today()
    requested_seq = data.get("batch_in_shift")
    if requested_seq is not None and requested_seq < 1:
        raise InvalidInputError("batch_in_shift must be at least 1")

    if _slot_taken(db, product.id, shift, batch_date, start_time, end_time):
        raise _slot_conflict(shift)

    attempts = 1 if requested_seq is not None else max(1, settings.BATCH_SEQUENCE_RETRIES)
    for attempt in range(1, attempts + 1):
        seq = requested_seq or next_batch_in_shift(db, product.id, shift, batch_date)
        batch = Batch(
            product_id=product.id,
            unit_id=product.unit_id,
            quantity_produced=quantity,
            shift=shift,
            batch_in_shift=seq,
            batch_date=batch_date,
            start_time=start_time,
            end_time=end_time,
            status=data.get("status") or BatchStatus.completed,
            notes=data.get("notes"),
            had_delay=had_delay,
            delay_reason=data.get("delay_reason") if had_delay else None,
            created_by=principal.id,
        )
        db.add(batch)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            constraint = violated_constraint(e)
            if constraint == SEQUENCE_CONSTRAINT and attempt < attempts:
                logger.warning(
                    f"Batch sequence {seq} taken for product {product.id} "
                    f"({shift.value}, {batch_date}); retrying ({attempt}/{attempts})"
                )
                continue
            logger.error(f"Batch create integrity error for product {product.id}: {e}")
            if constraint == SEQUENCE_CONSTRAINT:
                raise ConflictError(
                    f"Batch {seq} already exists for this product in the {shift.value} shift",
                    constraint=SEQUENCE_CONSTRAINT,
                )
            if constraint == SLOT_CONSTRAINT:
                raise _slot_conflict(shift)
            if constraint == FOREIGN_KEY_VIOLATION:
                raise InvalidReferenceError("Invalid reference. Related record not found.")
            raise InvalidInputError("Failed to create batch (constraint violation).")

        logger.info(
            f"Batch created: {batch.id} product {product.id} "
            f"{format_batch_number(product.unit.code if product.unit else None, batch_date, shift, seq)}"
        )
        return get_batch_by_id(db, batch.id)


def list_batches(
    db: Session,
    principal: Principal,
    unit_id: Optional[int] = None,
    product_id: Optional[int] = None,
    shift: Optional[str] = None,
    status: Optional[BatchStatus] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    limit: Optional[int] = None,
) -> List[Batch]:
    query = db.query(Batch).options(joinedload(Batch.product), joinedload(Batch.unit))

    if not principal.is_admin:
        query = query.filter(Batch.unit_id == principal.unit_id)
    elif unit_id is not None:
        query = query.filter(Batch.unit_id == unit_id)

    if product_id is not None:
        query = query.filter(Batch.product_id == product_id)
    if shift:
        query = query.filter(Batch.shift == parse_shift(shift))
    if status:
        query = query.filter(Batch.status == status)
    if date_from:
        query = query.filter(Batch.batch_date >= date_from)
    if date_to:
        query = query.filter(Batch.batch_date <= date_to)

    query = query.order_by(
        Batch.batch_date.desc(), Batch.start_time.desc(), Batch.id.desc()
    )
    if limit:
        query = query.limit(limit)
    return query.all()


def get_batches_by_unit(db: Session, principal: Principal, unit_id: int, limit: int = 50) -> List[Batch]:
    if not principal.can_access_unit(unit_id):
        raise ForbiddenError("Access denied to this unit")
    return (
        db.query(Batch)
        .options(joinedload(Batch.product), joinedload(Batch.unit))
        .filter(Batch.unit_id == unit_id)
        .order_by(Batch.created_at.desc(), Batch.id.desc())
        .limit(limit)
        .all()
    )


def update_batch(db: Session, principal: Principal, batch_id: int, fields: Dict[str, Any]) -> Batch:
    """
    Update descriptive fields only. product, shift, date and batch_in_shift
    identify the batch and are left alone; changed times are re-checked
    against the other batches of the same scope.
    """
    fields = {k: v for k, v in fields.items() if k in DESCRIPTIVE_FIELDS}
    if not fields:
        raise NoOpError("No fields to update")

    batch = get_batch_for(db, principal, batch_id)

    if "quantity_produced" in fields:
        if fields["quantity_produced"] is None or fields["quantity_produced"] <= 0:
            raise InvalidInputError("Quantity produced must be greater than 0")

    start_time = fields.get("start_time") or batch.start_time
    end_time = fields.get("end_time") or batch.end_time
    if "start_time" in fields or "end_time" in fields:
        if _slot_taken(
            db, batch.product_id, batch.shift, batch.batch_date, start_time, end_time, exclude_id=batch.id
        ):
            raise _slot_conflict(batch.shift)

    had_delay = fields.get("had_delay", batch.had_delay)
    delay_reason = fields.get("delay_reason", batch.delay_reason)
    _check_delay(bool(had_delay), delay_reason)

    for key, value in fields.items():
        if key in ("start_time", "end_time") and value is None:
            continue
        if key == "status" and value is None:
            continue
        setattr(batch, key, value)
    if not had_delay:
        batch.had_delay = False
        batch.delay_reason = None

    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Batch update integrity error ({batch_id}): {e}")
        if violated_constraint(e) == SLOT_CONSTRAINT:
            raise _slot_conflict(batch.shift)
        raise InvalidInputError("Failed to update batch (constraint violation).")

    logger.info(f"Batch updated: {batch_id}")
    return get_batch_by_id(db, batch_id)


def delete_batch(db: Session, principal: Principal, batch_id: int) -> int:
    """Delete one batch. Later batches keep their numbers; nothing is compacted."""
    batch = get_batch_for(db, principal, batch_id)
    db.delete(batch)
    db.commit()
    logger.info(f"Batch deleted: {batch_id}")
    return batch_id


def batch_statistics(
    db: Session,
    principal: Principal,
    unit_id: int,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> Dict[str, Any]:
    """Aggregates over a unit's batches, with a morning/afternoon/night breakdown."""
    if not principal.can_access_unit(unit_id):
        raise ForbiddenError("Access denied to this unit")

    filters = [Batch.unit_id == unit_id]
    if date_from:
        filters.append(Batch.batch_date >= date_from)
    if date_to:
        filters.append(Batch.batch_date <= date_to)

    total_batches, total_quantity, avg_quantity, unique_products = (
        db.query(
            func.count(Batch.id),
            func.coalesce(func.sum(Batch.quantity_produced), 0),
            func.avg(Batch.quantity_produced),
            func.count(func.distinct(Batch.product_id)),
        )
        .filter(*filters)
        .one()
    )

    per_shift = {
        row.shift: row
        for row in db.query(
            Batch.shift,
            func.count(Batch.id).label("total_batches"),
            func.coalesce(func.sum(Batch.quantity_produced), 0).label("total_quantity"),
        )
        .filter(*filters)
        .group_by(Batch.shift)
        .all()
    }

    shift_breakdown = []
    for shift in SHIFT_ORDER:
        row = per_shift.get(shift)
        shift_breakdown.append(
            {
                "shift": shift.value,
                "total_batches": int(row.total_batches) if row else 0,
                "total_quantity": int(row.total_quantity) if row else 0,
            }
        )

    return {
        "total_batches": int(total_batches or 0),
        "total_quantity": int(total_quantity or 0),
        "avg_quantity": round(float(avg_quantity), 2) if avg_quantity is not None else 0.0,
        "unique_products": int(unique_products or 0),
        "shift_breakdown": shift_breakdown,
    }
