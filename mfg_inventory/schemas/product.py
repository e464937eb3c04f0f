"""
Pydantic schemas for products and their per-product components.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

from mfg_inventory.models.product import ProductType
from mfg_inventory.utils.specifications import parse_specifications


# ============================================================================
# Component schemas
# ============================================================================


class ComponentCreate(BaseModel):
    name: str = Field(..., max_length=255)
    count: Optional[int] = Field(0, ge=0)
    description: Optional[str] = None
    # Only meaningful for a single cell (tier_id) or fractile (cell_id) row
    tier_id: Optional[int] = None
    cell_id: Optional[int] = None


class ComponentUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    count: Optional[int] = Field(None, ge=0)
    description: Optional[str] = None


class ComponentResponse(BaseModel):
    id: int
    product_id: int
    name: str
    count: int
    description: Optional[str] = None
    tier_id: Optional[int] = None
    cell_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============================================================================
# Product schemas
# ============================================================================


class ProductCreate(BaseModel):
    """
    Either tier_template_id (components copied from the template chain) or
    the flat fractiles/cells/tiers lists. With a template the lists are ignored.
    """

    name: str = Field(..., max_length=255)
    type: ProductType
    unit_id: Optional[int] = None
    description: Optional[str] = None
    specifications: Any = None
    tier_template_id: Optional[int] = None
    fractiles: List[ComponentCreate] = Field(default_factory=list)
    cells: List[ComponentCreate] = Field(default_factory=list)
    tiers: List[ComponentCreate] = Field(default_factory=list)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    type: Optional[ProductType] = None
    description: Optional[str] = None
    specifications: Any = None
    tier_template_id: Optional[int] = None
    fractiles: Optional[List[ComponentCreate]] = None
    cells: Optional[List[ComponentCreate]] = None
    tiers: Optional[List[ComponentCreate]] = None

    def sent_fields(self) -> dict:
        """Only the keys the client actually sent, component lists as plain dicts."""
        fields = {}
        for key in self.model_fields_set:
            value = getattr(self, key)
            if key in ("fractiles", "cells", "tiers"):
                value = [c.model_dump() for c in value or []]
            fields[key] = value
        if fields.get("tier_template_id") is None:
            fields.pop("tier_template_id", None)
        return fields


class ProductResponse(BaseModel):
    id: int
    name: str
    type: ProductType
    unit_id: int
    unit_name: Optional[str] = None
    unit_code: Optional[str] = None
    description: Optional[str] = None
    specifications: Any = None
    tier_template_id: Optional[int] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    fractiles: Optional[List[ComponentResponse]] = None
    cells: Optional[List[ComponentResponse]] = None
    tiers: Optional[List[ComponentResponse]] = None

    @field_validator("specifications", mode="before")
    @classmethod
    def parse_stored_specifications(cls, v):
        return parse_specifications(v)

    @classmethod
    def from_product(cls, product, with_components: bool = True) -> "ProductResponse":
        data = {
            "id": product.id,
            "name": product.name,
            "type": product.type,
            "unit_id": product.unit_id,
            "unit_name": product.unit.name if product.unit else None,
            "unit_code": product.unit.code if product.unit else None,
            "description": product.description,
            "specifications": product.specifications,
            "tier_template_id": product.tier_template_id,
            "created_by": product.created_by,
            "created_at": product.created_at,
            "updated_at": product.updated_at,
        }
        if with_components:
            data["fractiles"] = [ComponentResponse.model_validate(c) for c in product.fractiles]
            data["cells"] = [ComponentResponse.model_validate(c) for c in product.cells]
            data["tiers"] = [ComponentResponse.model_validate(c) for c in product.tiers]
        return cls(**data)


class ProductTierDetailsResponse(BaseModel):
    """A product tier resolved to its linked product cell and fractile."""

    tier: ComponentResponse
    cell: ComponentResponse
    fractile: ComponentResponse
    product_id: int
    product_name: str
    unit_id: int
    unit_name: Optional[str] = None
