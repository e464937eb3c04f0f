from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from mfg_inventory.common.response import SuccessResponse
from mfg_inventory.core.dependencies import get_current_principal, get_db
from mfg_inventory.schemas.auth import Principal
from mfg_inventory.schemas.product import ComponentResponse, ProductTierDetailsResponse
from mfg_inventory.services.hierarchy_service import resolve_product_tier

router = APIRouter()


@router.get("/{tier_id}/details")
def get_tier_details(
    tier_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Resolve a product tier to the product cell and fractile linked under it."""
    chain = resolve_product_tier(db, tier_id, principal=principal)
    product = chain["tier"].product

    response = ProductTierDetailsResponse(
        tier=ComponentResponse.model_validate(chain["tier"]),
        cell=ComponentResponse.model_validate(chain["cell"]),
        fractile=ComponentResponse.model_validate(chain["fractile"]),
        product_id=product.id,
        product_name=product.name,
        unit_id=product.unit_id,
        unit_name=product.unit.name if product.unit else None,
    )
    return SuccessResponse.send(data=response, message="Tier details fetched successfully")
