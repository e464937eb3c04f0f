"""
Template API: fractile / cell / tier templates, the hierarchy builder and
the tier template resolver.

Fixed paths (/hierarchy, /tiers/{id}/hierarchy) are declared before the
/{kind} routes so they are never captured as a kind.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from mfg_inventory.common.exceptions import AppError, NotFoundError
from mfg_inventory.common.response import SuccessResponse
from mfg_inventory.core.dependencies import get_current_principal, get_db, require_permission
from mfg_inventory.logger_config import logger
from mfg_inventory.models.template import TemplateKind
from mfg_inventory.schemas.auth import Principal
from mfg_inventory.schemas.template import (
    HierarchyCreate,
    HierarchyResponse,
    TemplateCreate,
    TemplateResponse,
    TemplateUpdate,
    TierHierarchyResponse,
)
from mfg_inventory.services.hierarchy_service import create_hierarchy, resolve_tier_template
from mfg_inventory.services.template_service import (
    create_template,
    delete_template,
    get_template,
    list_templates,
    update_template,
)

router = APIRouter()


def _internal_error(action: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    )


@router.post("/hierarchy", status_code=status.HTTP_201_CREATED)
def create_hierarchy_route(
    data: HierarchyCreate,
    principal: Principal = Depends(require_permission("create")),
    db: Session = Depends(get_db),
):
    """Create a fractile with its cells and tiers in one transaction."""
    try:
        created = create_hierarchy(
            db,
            fractile=data.fractile.model_dump(),
            cells=[c.model_dump() for c in data.cells],
            created_by=principal.id,
        )
        response = HierarchyResponse(
            fractile=TemplateResponse.from_template(created["fractile"]),
            cells=[TemplateResponse.from_template(c) for c in created["cells"]],
            tiers=[TemplateResponse.from_template(t) for t in created["tiers"]],
        )
        return SuccessResponse.send(data=response, message="Hierarchy created successfully")
    except AppError:
        raise
    except Exception:
        logger.exception("Error creating template hierarchy")
        raise _internal_error("create hierarchy")


@router.get("/tiers/{tier_id}/hierarchy")
def get_tier_hierarchy(
    tier_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Resolve a tier template to its cell and fractile."""
    chain = resolve_tier_template(db, tier_id)
    response = TierHierarchyResponse(
        tier=TemplateResponse.from_template(chain["tier"]),
        cell=TemplateResponse.from_template(chain["cell"]),
        fractile=TemplateResponse.from_template(chain["fractile"]),
    )
    return SuccessResponse.send(data=response, message="Tier hierarchy fetched successfully")


@router.get("/{kind}")
def list_templates_route(
    kind: TemplateKind,
    fractile_id: Optional[int] = Query(None),
    cell_id: Optional[int] = Query(None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """List templates of one kind; cells filter by fractile_id, tiers by cell_id."""
    try:
        parent_id = None
        if kind == TemplateKind.cell:
            parent_id = fractile_id
        elif kind == TemplateKind.tier:
            parent_id = cell_id
        templates = list_templates(db, kind, parent_id=parent_id)
        return SuccessResponse.send(
            data=[TemplateResponse.from_template(t) for t in templates],
            message=f"{kind.label.capitalize()} templates fetched successfully",
        )
    except AppError:
        raise
    except Exception:
        logger.exception(f"Error listing {kind.label} templates")
        raise _internal_error(f"list {kind.label} templates")


@router.get("/{kind}/{template_id}")
def get_template_route(
    kind: TemplateKind,
    template_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    template = get_template(db, kind, template_id)
    if not template:
        raise NotFoundError(f"{kind.label.capitalize()} template not found: {template_id}")
    return SuccessResponse.send(data=TemplateResponse.from_template(template))


@router.post("/{kind}", status_code=status.HTTP_201_CREATED)
def create_template_route(
    kind: TemplateKind,
    data: TemplateCreate,
    principal: Principal = Depends(require_permission("create")),
    db: Session = Depends(get_db),
):
    try:
        template = create_template(
            db,
            kind,
            name=data.name,
            description=data.description,
            parent_id=data.parent_for(kind),
            created_by=principal.id,
        )
        return SuccessResponse.send(
            data=TemplateResponse.from_template(template),
            message=f"{kind.label.capitalize()} template created successfully",
        )
    except AppError:
        raise
    except Exception:
        logger.exception(f"Error creating {kind.label} template")
        raise _internal_error(f"create {kind.label} template")


@router.put("/{kind}/{template_id}")
def update_template_route(
    kind: TemplateKind,
    template_id: int,
    data: TemplateUpdate,
    principal: Principal = Depends(require_permission("update")),
    db: Session = Depends(get_db),
):
    try:
        template = update_template(
            db, kind, template_id, name=data.name, description=data.description
        )
        return SuccessResponse.send(
            data=TemplateResponse.from_template(template),
            message=f"{kind.label.capitalize()} template updated successfully",
        )
    except AppError:
        raise
    except Exception:
        logger.exception(f"Error updating {kind.label} template {template_id}")
        raise _internal_error(f"update {kind.label} template")


@router.delete("/{kind}/{template_id}")
def delete_template_route(
    kind: TemplateKind,
    template_id: int,
    principal: Principal = Depends(require_permission("delete")),
    db: Session = Depends(get_db),
):
    """Delete a template and, through the cascade, everything below it."""
    try:
        deleted_id = delete_template(db, kind, template_id)
        return SuccessResponse.send(
            data={"id": deleted_id},
            message=f"{kind.label.capitalize()} template deleted successfully",
        )
    except AppError:
        raise
    except Exception:
        logger.exception(f"Error deleting {kind.label} template {template_id}")
        raise _internal_error(f"delete {kind.label} template")
