"""
Hierarchy builder and tier resolvers.

create_hierarchy writes a fractile with all its cells and tiers in one
transaction: either the whole tree is committed or nothing is. The two
resolvers walk a tier up to its cell and fractile, on the template tables
and on the product-scoped instance tables respectively.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from mfg_inventory.common.exceptions import (
    ConflictError,
    ForbiddenError,
    IncompleteHierarchyError,
    InvalidInputError,
    NotFoundError,
)
from mfg_inventory.logger_config import logger
from mfg_inventory.models.product import Product, ProductCell, ProductFractile, ProductTier
from mfg_inventory.models.template import CellTemplate, FractileTemplate, TemplateKind, TierTemplate
from mfg_inventory.services.template_service import (
    UNIQUE_CONSTRAINTS,
    clean_name,
    conflict_for,
    integrity_error_for,
    name_taken,
)


def _non_blank(entries: Optional[List[dict]]) -> List[dict]:
    """Drop entries whose trimmed name is empty; partially filled forms are allowed."""
    kept = []
    for entry in entries or []:
        name = clean_name(entry.get("name"))
        if name:
            kept.append({**entry, "name": name})
    return kept


def _check_duplicates(names: List[str], constraint: str, scope: str) -> None:
    seen = set()
    for name in names:
        if name in seen:
            raise ConflictError(f"Duplicate name '{name}' in {scope}", constraint=constraint)
        seen.add(name)


def create_hierarchy(
    db: Session,
    fractile: dict,
    cells: Optional[List[dict]] = None,
    created_by: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Create fractile -> cells -> tiers atomically.

    fractile: {"name", "description"}
    cells: [{"name", "description", "tiers": [{"name", "description"}]}]

    Blank cells and tiers are skipped. Any name collision, whether against
    stored templates or inside the payload itself, aborts the whole tree and
    raises ConflictError naming the uniqueness rule that was hit.
    """
    fractile_name = clean_name((fractile or {}).get("name"))
    if not fractile_name:
        raise InvalidInputError("Fractile name is required")

    cell_entries = _non_blank(cells)
    for cell in cell_entries:
        cell["tiers"] = _non_blank(cell.get("tiers"))

    # Reject collisions before the first insert
    if name_taken(db, TemplateKind.fractile, fractile_name):
        raise conflict_for(UNIQUE_CONSTRAINTS[TemplateKind.fractile])
    _check_duplicates(
        [c["name"] for c in cell_entries],
        UNIQUE_CONSTRAINTS[TemplateKind.cell],
        f"fractile '{fractile_name}'",
    )
    for cell in cell_entries:
        _check_duplicates(
            [t["name"] for t in cell["tiers"]],
            UNIQUE_CONSTRAINTS[TemplateKind.tier],
            f"cell '{cell['name']}'",
        )

    created_cells = []
    created_tiers = []
    try:
        fractile_row = FractileTemplate(
            name=fractile_name,
            description=fractile.get("description"),
            created_by=created_by,
        )
        db.add(fractile_row)
        db.flush()

        for cell in cell_entries:
            cell_row = CellTemplate(
                fractile_id=fractile_row.id,
                name=cell["name"],
                description=cell.get("description"),
                created_by=created_by,
            )
            db.add(cell_row)
            db.flush()
            created_cells.append(cell_row)

            for tier in cell["tiers"]:
                tier_row = TierTemplate(
                    cell_id=cell_row.id,
                    name=tier["name"],
                    description=tier.get("description"),
                    created_by=created_by,
                )
                db.add(tier_row)
                created_tiers.append(tier_row)
            db.flush()

        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Hierarchy create rolled back for fractile '{fractile_name}': {e}")
        raise integrity_error_for(e, UNIQUE_CONSTRAINTS[TemplateKind.fractile])
    except Exception:
        db.rollback()
        raise

    for row in [fractile_row, *created_cells, *created_tiers]:
        db.refresh(row)

    logger.info(
        f"Hierarchy created: fractile {fractile_row.id} ({fractile_name}) with "
        f"{len(created_cells)} cell(s) and {len(created_tiers)} tier(s)"
    )
    return {"fractile": fractile_row, "cells": created_cells, "tiers": created_tiers}


def resolve_tier_template(db: Session, tier_id: int) -> Dict[str, Any]:
    """Return {"tier", "cell", "fractile"} template rows for a tier template id."""
    tier = (
        db.query(TierTemplate)
        .options(joinedload(TierTemplate.cell).joinedload(CellTemplate.fractile))
        .filter(TierTemplate.id == tier_id)
        .first()
    )
    if not tier:
        raise NotFoundError(f"Tier template not found: {tier_id}")

    cell = tier.cell
    fractile = cell.fractile if cell else None
    if cell is None or fractile is None:
        raise IncompleteHierarchyError(f"Tier template {tier_id} hierarchy is incomplete")

    return {"tier": tier, "cell": cell, "fractile": fractile}


def resolve_product_tier(db: Session, product_tier_id: int, principal=None) -> Dict[str, Any]:
    """
    Return {"tier", "cell", "fractile"} product component rows for a product tier.

    The cell is the earliest product cell linked to the tier and the fractile
    the earliest product fractile linked to that cell.
    When a principal is given, access to the owning unit is checked before
    the chain is walked.
    """
    tier = (
        db.query(ProductTier)
        .options(joinedload(ProductTier.product).joinedload(Product.unit))
        .filter(ProductTier.id == product_tier_id)
        .first()
    )
    if not tier:
        raise NotFoundError("Tier not found")
    if principal is not None and not principal.can_access_unit(tier.product.unit_id):
        raise ForbiddenError("Access denied to this tier")

    cell = (
        db.query(ProductCell)
        .filter(ProductCell.tier_id == tier.id)
        .order_by(ProductCell.created_at, ProductCell.id)
        .first()
    )
    fractile = None
    if cell is not None:
        fractile = (
            db.query(ProductFractile)
            .filter(ProductFractile.cell_id == cell.id)
            .order_by(ProductFractile.created_at, ProductFractile.id)
            .first()
        )

    if cell is None or fractile is None:
        raise IncompleteHierarchyError("Tier hierarchy is incomplete")

    return {"tier": tier, "cell": cell, "fractile": fractile}
