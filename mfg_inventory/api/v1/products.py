"""
Product API: products, component instantiation from tier templates and the
per-product fractile / cell / tier rows.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from mfg_inventory.common.exceptions import AppError, ForbiddenError
from mfg_inventory.common.response import SuccessResponse
from mfg_inventory.core.dependencies import get_current_principal, get_db, require_permission
from mfg_inventory.logger_config import logger
from mfg_inventory.models.product import ComponentKind, ProductType
from mfg_inventory.schemas.auth import Principal
from mfg_inventory.schemas.product import (
    ComponentCreate,
    ComponentResponse,
    ComponentUpdate,
    ProductCreate,
    ProductResponse,
    ProductUpdate,
)
from mfg_inventory.services.product_service import (
    add_component,
    create_product,
    delete_component,
    delete_product,
    get_product_for,
    get_product_types,
    list_products,
    update_component,
    update_product,
)

router = APIRouter()


def _internal_error(action: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    )


@router.get("/types")
def list_product_types(principal: Principal = Depends(get_current_principal)):
    return SuccessResponse.send(data=get_product_types(), message="Product types fetched successfully")


@router.get("")
def list_products_route(
    unit_id: Optional[int] = Query(None),
    type: Optional[ProductType] = Query(None),
    search: Optional[str] = Query(None),
    with_components: bool = Query(False),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """List products. Unit users only see their own unit; unit_id is an admin filter."""
    try:
        products = list_products(
            db,
            principal,
            unit_id=unit_id,
            product_type=type,
            search=search,
            with_components=with_components,
        )
        return SuccessResponse.send(
            data=[ProductResponse.from_product(p, with_components=with_components) for p in products],
            message="Products fetched successfully",
        )
    except AppError:
        raise
    except Exception:
        logger.exception("Error listing products")
        raise _internal_error("list products")


@router.get("/unit/{unit_id}")
def list_unit_products(
    unit_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    if not principal.can_access_unit(unit_id):
        raise ForbiddenError("Access denied to this unit")
    products = list_products(db, principal, unit_id=unit_id)
    return SuccessResponse.send(
        data=[ProductResponse.from_product(p, with_components=False) for p in products],
        message="Products fetched successfully",
    )


@router.get("/{product_id}")
def get_product_route(
    product_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    product = get_product_for(db, principal, product_id)
    return SuccessResponse.send(data=ProductResponse.from_product(product), message="Product fetched successfully")


@router.post("", status_code=status.HTTP_201_CREATED)
def create_product_route(
    data: ProductCreate,
    principal: Principal = Depends(require_permission("create")),
    db: Session = Depends(get_db),
):
    """
    Create a product. With tier_template_id one tier, cell and fractile are
    copied from the template chain; otherwise the flat lists are stored.
    """
    try:
        product = create_product(
            db,
            principal,
            name=data.name,
            product_type=data.type,
            unit_id=data.unit_id,
            description=data.description,
            specifications=data.specifications,
            tier_template_id=data.tier_template_id,
            fractiles=[c.model_dump() for c in data.fractiles],
            cells=[c.model_dump() for c in data.cells],
            tiers=[c.model_dump() for c in data.tiers],
        )
        return SuccessResponse.send(data=ProductResponse.from_product(product), message="Product created successfully")
    except AppError:
        raise
    except Exception:
        logger.exception("Error creating product")
        raise _internal_error("create product")


@router.put("/{product_id}")
def update_product_route(
    product_id: int,
    data: ProductUpdate,
    principal: Principal = Depends(require_permission("update")),
    db: Session = Depends(get_db),
):
    """Update a product. Component lists, when sent, replace every existing row."""
    try:
        product = update_product(db, principal, product_id, data.sent_fields())
        return SuccessResponse.send(data=ProductResponse.from_product(product), message="Product updated successfully")
    except AppError:
        raise
    except Exception:
        logger.exception(f"Error updating product {product_id}")
        raise _internal_error("update product")


@router.delete("/{product_id}")
def delete_product_route(
    product_id: int,
    principal: Principal = Depends(require_permission("delete")),
    db: Session = Depends(get_db),
):
    try:
        deleted_id = delete_product(db, principal, product_id)
        return SuccessResponse.send(data={"id": deleted_id}, message="Product deleted successfully")
    except AppError:
        raise
    except Exception:
        logger.exception(f"Error deleting product {product_id}")
        raise _internal_error("delete product")


# ============================================================================
# Single component rows
# ============================================================================


@router.post("/{product_id}/{kind}", status_code=status.HTTP_201_CREATED)
def add_component_route(
    product_id: int,
    kind: ComponentKind,
    data: ComponentCreate,
    principal: Principal = Depends(require_permission("create")),
    db: Session = Depends(get_db),
):
    try:
        row = add_component(db, principal, product_id, kind, data.model_dump())
        return SuccessResponse.send(
            data=ComponentResponse.model_validate(row),
            message=f"{kind.name.capitalize()} added successfully",
        )
    except AppError:
        raise
    except Exception:
        logger.exception(f"Error adding {kind.name} to product {product_id}")
        raise _internal_error(f"add {kind.name}")


@router.put("/{product_id}/{kind}/{component_id}")
def update_component_route(
    product_id: int,
    kind: ComponentKind,
    component_id: int,
    data: ComponentUpdate,
    principal: Principal = Depends(require_permission("update")),
    db: Session = Depends(get_db),
):
    try:
        fields = {key: getattr(data, key) for key in data.model_fields_set}
        row = update_component(db, principal, product_id, kind, component_id, fields)
        return SuccessResponse.send(
            data=ComponentResponse.model_validate(row),
            message=f"{kind.name.capitalize()} updated successfully",
        )
    except AppError:
        raise
    except Exception:
        logger.exception(f"Error updating {kind.name} {component_id} of product {product_id}")
        raise _internal_error(f"update {kind.name}")


@router.delete("/{product_id}/{kind}/{component_id}")
def delete_component_route(
    product_id: int,
    kind: ComponentKind,
    component_id: int,
    principal: Principal = Depends(require_permission("delete")),
    db: Session = Depends(get_db),
):
    try:
        deleted_id = delete_component(db, principal, product_id, kind, component_id)
        return SuccessResponse.send(
            data={"id": deleted_id},
            message=f"{kind.name.capitalize()} deleted successfully",
        )
    except AppError:
        raise
    except Exception:
        logger.exception(f"Error deleting {kind.name} {component_id} of product {product_id}")
        raise _internal_error(f"delete {kind.name}")
