"""
Product service: products and their per-product fractile/cell/tier rows.

A product created from a tier template gets exactly one ProductTier, one
ProductCell linked to it and one ProductFractile linked to that cell, all
copied from the resolved template chain in the same transaction as the
product row. Without a template the caller's flat component lists are
inserted unlinked. Component edits through update are a full replace.
"""

from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload, selectinload

from mfg_inventory.common.exceptions import (
    AppError,
    ForbiddenError,
    InvalidInputError,
    InvalidReferenceError,
    NoOpError,
    NotFoundError,
)
from mfg_inventory.logger_config import logger
from mfg_inventory.models.product import (
    ComponentKind,
    Product,
    ProductCell,
    ProductFractile,
    ProductTier,
    ProductType,
)
from mfg_inventory.schemas.auth import Principal
from mfg_inventory.services.hierarchy_service import resolve_tier_template
from mfg_inventory.services.unit_service import get_unit_by_id
from mfg_inventory.utils.integrity import FOREIGN_KEY_VIOLATION, violated_constraint
from mfg_inventory.utils.specifications import serialize_specifications


def get_product_types() -> List[str]:
    return [t.value for t in ProductType]


def get_product_by_id(db: Session, product_id: int) -> Optional[Product]:
    """Product with unit and all three component lists loaded, or None."""
    return (
        db.query(Product)
        .options(
            joinedload(Product.unit),
            selectinload(Product.fractiles),
            selectinload(Product.cells),
            selectinload(Product.tiers),
        )
        .filter(Product.id == product_id)
        .first()
    )


def get_product_for(db: Session, principal: Principal, product_id: int) -> Product:
    """Load a product the principal is allowed to see, or raise NotFound/Forbidden."""
    product = get_product_by_id(db, product_id)
    if not product:
        raise NotFoundError("Product not found")
    if not principal.can_access_unit(product.unit_id):
        raise ForbiddenError("Access denied to this product")
    return product


def list_products(
    db: Session,
    principal: Principal,
    unit_id: Optional[int] = None,
    product_type: Optional[ProductType] = None,
    search: Optional[str] = None,
    with_components: bool = False,
) -> List[Product]:
    """Unit-scoped users only ever see their own unit; admins may filter by unit_id."""
    query = db.query(Product).options(joinedload(Product.unit))
    if with_components:
        query = query.options(
            selectinload(Product.fractiles),
            selectinload(Product.cells),
            selectinload(Product.tiers),
        )

    if not principal.is_admin:
        query = query.filter(Product.unit_id == principal.unit_id)
    elif unit_id is not None:
        query = query.filter(Product.unit_id == unit_id)

    if product_type:
        query = query.filter(Product.type == product_type)

    if search:
        term = f"%{search}%"
        query = query.filter(or_(Product.name.ilike(term), Product.description.ilike(term)))

    return query.order_by(Product.created_at.desc(), Product.id.desc()).all()


def _clean_component(kind: ComponentKind, data: dict, allow_links: bool = False) -> dict:
    name = (data.get("name") or "").strip()
    if not name:
        raise InvalidInputError(f"{kind.name.capitalize()} name is required")
    count = data.get("count")
    if count is None:
        count = 0
    if count < 0:
        raise InvalidInputError(f"{kind.name.capitalize()} count cannot be negative")

    fields = {"name": name, "count": count, "description": data.get("description")}
    if allow_links and kind == ComponentKind.cell and data.get("tier_id") is not None:
        fields["tier_id"] = data["tier_id"]
    if allow_links and kind == ComponentKind.fractile and data.get("cell_id") is not None:
        fields["cell_id"] = data["cell_id"]
    return fields


def _clean_flat_components(
    fractiles: Optional[List[dict]],
    cells: Optional[List[dict]],
    tiers: Optional[List[dict]],
) -> List[Tuple[ComponentKind, dict]]:
    """Validate every entry up front so nothing is deleted or written for a bad payload."""
    cleaned = []
    for kind, entries in (
        (ComponentKind.tier, tiers),
        (ComponentKind.cell, cells),
        (ComponentKind.fractile, fractiles),
    ):
        for entry in entries or []:
            cleaned.append((kind, _clean_component(kind, entry)))
    return cleaned


def _insert_flat_components(db: Session, product_id: int, cleaned: List[Tuple[ComponentKind, dict]]) -> None:
    for kind, fields in cleaned:
        db.add(kind.model(product_id=product_id, **fields))
    db.flush()


def _instantiate_chain(db: Session, product_id: int, chain: Dict[str, Any]) -> None:
    """Copy a resolved tier -> cell -> fractile template chain into product rows."""
    tier = ProductTier(
        product_id=product_id,
        name=chain["tier"].name,
        count=0,
        description=chain["tier"].description,
    )
    db.add(tier)
    db.flush()

    cell = ProductCell(
        product_id=product_id,
        tier_id=tier.id,
        name=chain["cell"].name,
        count=0,
        description=chain["cell"].description,
    )
    db.add(cell)
    db.flush()

    db.add(
        ProductFractile(
            product_id=product_id,
            cell_id=cell.id,
            name=chain["fractile"].name,
            count=0,
            description=chain["fractile"].description,
        )
    )
    db.flush()


def _delete_all_components(db: Session, product: Product) -> None:
    db.flush()
    for model in (ProductFractile, ProductCell, ProductTier):
        db.query(model).filter(model.product_id == product.id).delete(synchronize_session="fetch")
    db.expire(product, ["fractiles", "cells", "tiers"])


def _integrity_error(db: Session, action: str, product_id: Optional[int], error: IntegrityError) -> AppError:
    """Roll back and translate a storage-level failure raised by flush or commit."""
    db.rollback()
    logger.error(f"Product {action} integrity error ({product_id}): {error}")
    if violated_constraint(error) == FOREIGN_KEY_VIOLATION:
        return InvalidReferenceError("Invalid reference. Related record not found.")
    return InvalidInputError(f"Failed to {action} product (constraint violation).")


def _commit_product(db: Session, action: str, product_id: Optional[int]) -> None:
    try:
        db.commit()
    except IntegrityError as e:
        raise _integrity_error(db, action, product_id, e)


def _resolve_unit_id(principal: Principal, unit_id: Optional[int]) -> int:
    resolved = unit_id if principal.is_admin else principal.unit_id
    if not resolved:
        raise InvalidInputError("Unit ID is required")
    return resolved


def create_product(
    db: Session,
    principal: Principal,
    name: str,
    product_type: ProductType,
    unit_id: Optional[int] = None,
    description: Optional[str] = None,
    specifications: Any = None,
    tier_template_id: Optional[int] = None,
    fractiles: Optional[List[dict]] = None,
    cells: Optional[List[dict]] = None,
    tiers: Optional[List[dict]] = None,
) -> Product:
    """
    Create a product and its components in one transaction.

    With tier_template_id the template chain is resolved first; NotFound or
    IncompleteHierarchy aborts before anything is written. Otherwise the flat
    lists (legacy path) are inserted with count defaulting to 0.
    """
    name = (name or "").strip()
    if not name:
        raise InvalidInputError("Product name and type are required")

    resolved_unit_id = _resolve_unit_id(principal, unit_id)
    if not get_unit_by_id(db, resolved_unit_id):
        raise InvalidReferenceError(f"Unit not found: {resolved_unit_id}")

    chain = resolve_tier_template(db, tier_template_id) if tier_template_id is not None else None
    cleaned = [] if chain else _clean_flat_components(fractiles, cells, tiers)

    product = Product(
        name=name,
        type=product_type,
        unit_id=resolved_unit_id,
        description=description,
        specifications=serialize_specifications(specifications),
        tier_template_id=tier_template_id,
        created_by=principal.id,
    )
    try:
        db.add(product)
        db.flush()
        if chain:
            _instantiate_chain(db, product.id, chain)
        else:
            _insert_flat_components(db, product.id, cleaned)
    except IntegrityError as e:
        raise _integrity_error(db, "create", product.id, e)
    except Exception:
        db.rollback()
        raise

    _commit_product(db, "create", product.id)
    logger.info(
        f"Product created: {product.id} ({name}) in unit {resolved_unit_id}"
        + (f" from tier template {tier_template_id}" if chain else "")
    )
    return get_product_by_id(db, product.id)


def update_components(
    db: Session,
    principal: Principal,
    product_id: int,
    fractiles: Optional[List[dict]] = None,
    cells: Optional[List[dict]] = None,
    tiers: Optional[List[dict]] = None,
) -> Product:
    """Delete every component row of the product and insert the given lists. Not a merge."""
    product = get_product_for(db, principal, product_id)
    cleaned = _clean_flat_components(fractiles, cells, tiers)
    try:
        _delete_all_components(db, product)
        _insert_flat_components(db, product.id, cleaned)
        product.tier_template_id = None
    except IntegrityError as e:
        raise _integrity_error(db, "update", product_id, e)
    except Exception:
        db.rollback()
        raise

    _commit_product(db, "update", product_id)
    logger.info(f"Product components replaced: {product_id}")
    return get_product_by_id(db, product_id)


def update_product(
    db: Session,
    principal: Principal,
    product_id: int,
    fields: Dict[str, Any],
) -> Product:
    """
    Update product fields. `fields` holds only what the caller sent.

    tier_template_id re-derives the components from that template chain;
    otherwise any of fractiles/cells/tiers triggers a full replace with the
    missing kinds treated as empty.
    """
    if not fields:
        raise NoOpError("No fields to update")

    product = get_product_for(db, principal, product_id)

    tier_template_id = fields.get("tier_template_id")
    chain = resolve_tier_template(db, tier_template_id) if tier_template_id is not None else None
    replaces_components = any(key in fields for key in ("fractiles", "cells", "tiers"))
    cleaned = []
    if replaces_components and not chain:
        cleaned = _clean_flat_components(
            fields.get("fractiles"), fields.get("cells"), fields.get("tiers")
        )

    if "name" in fields:
        name = (fields["name"] or "").strip()
        if not name:
            raise InvalidInputError("Product name cannot be blank")
        product.name = name
    if fields.get("type") is not None:
        product.type = fields["type"]
    if "description" in fields:
        product.description = fields["description"]
    if "specifications" in fields:
        product.specifications = serialize_specifications(fields["specifications"])

    try:
        if chain:
            _delete_all_components(db, product)
            _instantiate_chain(db, product.id, chain)
            product.tier_template_id = tier_template_id
        elif replaces_components:
            _delete_all_components(db, product)
            _insert_flat_components(db, product.id, cleaned)
            product.tier_template_id = None
    except IntegrityError as e:
        raise _integrity_error(db, "update", product_id, e)
    except Exception:
        db.rollback()
        raise

    _commit_product(db, "update", product_id)
    logger.info(f"Product updated: {product_id}")
    return get_product_by_id(db, product_id)


def delete_product(db: Session, principal: Principal, product_id: int) -> int:
    """Delete a product; components and batches go with it through ON DELETE CASCADE."""
    product = get_product_for(db, principal, product_id)
    db.delete(product)
    db.commit()
    logger.info(f"Product deleted: {product_id}")
    return product_id


# ---------------------------------------------------------------------------
# Single component rows
# ---------------------------------------------------------------------------


def _check_component_link(db: Session, product_id: int, kind: ComponentKind, data: dict) -> None:
    """Links must point at a component of the same product."""
    if kind == ComponentKind.cell and data.get("tier_id") is not None:
        linked = db.query(ProductTier.id).filter(
            ProductTier.id == data["tier_id"], ProductTier.product_id == product_id
        ).first()
        if linked is None:
            raise InvalidReferenceError(f"Tier {data['tier_id']} does not belong to product {product_id}")
    if kind == ComponentKind.fractile and data.get("cell_id") is not None:
        linked = db.query(ProductCell.id).filter(
            ProductCell.id == data["cell_id"], ProductCell.product_id == product_id
        ).first()
        if linked is None:
            raise InvalidReferenceError(f"Cell {data['cell_id']} does not belong to product {product_id}")


def add_component(db: Session, principal: Principal, product_id: int, kind: ComponentKind, data: dict):
    get_product_for(db, principal, product_id)
    _check_component_link(db, product_id, kind, data)

    row = kind.model(product_id=product_id, **_clean_component(kind, data, allow_links=True))
    db.add(row)
    _commit_product(db, "update", product_id)
    db.refresh(row)
    logger.info(f"Product {product_id}: {kind.name} {row.id} added")
    return row


def _get_component(db: Session, product_id: int, kind: ComponentKind, component_id: int):
    model = kind.model
    row = db.query(model).filter(model.id == component_id, model.product_id == product_id).first()
    if not row:
        raise NotFoundError(f"{kind.name.capitalize()} not found")
    return row


def update_component(
    db: Session,
    principal: Principal,
    product_id: int,
    kind: ComponentKind,
    component_id: int,
    fields: Dict[str, Any],
):
    if not fields:
        raise NoOpError("No fields to update")

    get_product_for(db, principal, product_id)
    row = _get_component(db, product_id, kind, component_id)

    if "name" in fields:
        name = (fields["name"] or "").strip()
        if not name:
            raise InvalidInputError(f"{kind.name.capitalize()} name cannot be blank")
        row.name = name
    if fields.get("count") is not None:
        if fields["count"] < 0:
            raise InvalidInputError(f"{kind.name.capitalize()} count cannot be negative")
        row.count = fields["count"]
    if "description" in fields:
        row.description = fields["description"]

    _commit_product(db, "update", product_id)
    db.refresh(row)
    return row


def delete_component(
    db: Session,
    principal: Principal,
    product_id: int,
    kind: ComponentKind,
    component_id: int,
) -> int:
    get_product_for(db, principal, product_id)
    row = _get_component(db, product_id, kind, component_id)
    db.delete(row)
    db.commit()
    logger.info(f"Product {product_id}: {kind.name} {component_id} deleted")
    return component_id
