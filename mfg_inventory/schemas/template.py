"""
Pydantic schemas for fractile / cell / tier templates and the hierarchy builder.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


# ============================================================================
# Single template schemas
# ============================================================================


class TemplateCreate(BaseModel):
    """
    One template. Cells need fractile_id and tiers need cell_id; parent_id is
    accepted as a generic alias for either.
    """

    name: str = Field(..., max_length=255)
    description: Optional[str] = None
    fractile_id: Optional[int] = None
    cell_id: Optional[int] = None
    parent_id: Optional[int] = None

    def parent_for(self, kind) -> Optional[int]:
        if kind.parent_field == "fractile_id":
            return self.fractile_id if self.fractile_id is not None else self.parent_id
        if kind.parent_field == "cell_id":
            return self.cell_id if self.cell_id is not None else self.parent_id
        return None


class TemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None


class TemplateResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    fractile_id: Optional[int] = None
    fractile_name: Optional[str] = None
    cell_id: Optional[int] = None
    cell_name: Optional[str] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_template(cls, template) -> "TemplateResponse":
        """Flatten the ancestor names of a cell or tier template into the row."""
        data = {
            "id": template.id,
            "name": template.name,
            "description": template.description,
            "created_by": template.created_by,
            "created_at": template.created_at,
        }
        cell = getattr(template, "cell", None)
        if cell is not None:
            data["cell_id"] = cell.id
            data["cell_name"] = cell.name
            fractile = cell.fractile
        else:
            fractile = getattr(template, "fractile", None)
        if fractile is not None:
            data["fractile_id"] = fractile.id
            data["fractile_name"] = fractile.name
        return cls(**data)


# ============================================================================
# Hierarchy builder schemas
# ============================================================================


class HierarchyTier(BaseModel):
    name: Optional[str] = ""
    description: Optional[str] = None


class HierarchyCell(BaseModel):
    name: Optional[str] = ""
    description: Optional[str] = None
    tiers: List[HierarchyTier] = Field(default_factory=list)


class HierarchyFractile(BaseModel):
    name: Optional[str] = ""
    description: Optional[str] = None


class HierarchyCreate(BaseModel):
    fractile: HierarchyFractile
    cells: List[HierarchyCell] = Field(default_factory=list)


class HierarchyResponse(BaseModel):
    fractile: TemplateResponse
    cells: List[TemplateResponse]
    tiers: List[TemplateResponse]


class TierHierarchyResponse(BaseModel):
    """A tier template resolved up to its cell and fractile."""

    tier: TemplateResponse
    cell: TemplateResponse
    fractile: TemplateResponse
