"""
Component templates: FractileTemplate > CellTemplate > TierTemplate.

Reusable, product-independent definitions authored once and copied into
product components when a product is created. Names are unique globally
for fractiles, per fractile for cells and per cell for tiers. Deleting a
parent removes its descendants through ON DELETE CASCADE.
"""

import enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from mfg_inventory.core.database import Base


class FractileTemplate(Base):
    __tablename__ = "fractile_templates"
    __table_args__ = (UniqueConstraint("name", name="uq_fractile_templates_name"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    cells = relationship(
        "CellTemplate",
        back_populates="fractile",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="CellTemplate.name",
    )


class CellTemplate(Base):
    __tablename__ = "cell_templates"
    __table_args__ = (UniqueConstraint("fractile_id", "name", name="uq_cell_templates_fractile_name"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    fractile_id = Column(
        Integer,
        ForeignKey("fractile_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    fractile = relationship("FractileTemplate", back_populates="cells")
    tiers = relationship(
        "TierTemplate",
        back_populates="cell",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="TierTemplate.name",
    )


class TierTemplate(Base):
    __tablename__ = "tier_templates"
    __table_args__ = (UniqueConstraint("cell_id", "name", name="uq_tier_templates_cell_name"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    cell_id = Column(
        Integer,
        ForeignKey("cell_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    cell = relationship("CellTemplate", back_populates="tiers")


class TemplateKind(str, enum.Enum):
    """Closed set of template kinds; the value is the URL segment (/templates/{kind})."""

    fractile = "fractiles"
    cell = "cells"
    tier = "tiers"

    @property
    def model(self):
        return _KIND_MODELS[self]

    @property
    def parent_field(self):
        """Name of the FK column pointing at the owning template, or None for fractiles."""
        return _KIND_PARENT_FIELDS[self]

    @property
    def parent_kind(self):
        return _KIND_PARENTS[self]

    @property
    def label(self) -> str:
        return self.name


_KIND_MODELS = {
    TemplateKind.fractile: FractileTemplate,
    TemplateKind.cell: CellTemplate,
    TemplateKind.tier: TierTemplate,
}

_KIND_PARENT_FIELDS = {
    TemplateKind.fractile: None,
    TemplateKind.cell: "fractile_id",
    TemplateKind.tier: "cell_id",
}

_KIND_PARENTS = {
    TemplateKind.fractile: None,
    TemplateKind.cell: TemplateKind.fractile,
    TemplateKind.tier: TemplateKind.cell,
}
