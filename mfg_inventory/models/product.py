"""
Products and their per-product components.

ProductFractile / ProductCell / ProductTier rows are snapshots: name and
description are copied from the template chain (or supplied directly) when
the product is created, so later template edits or deletes never touch them.
Instance links run tier <- cell <- fractile (a cell may point at the product
tier it belongs to, a fractile at its cell).
"""

import enum

from sqlalchemy import CheckConstraint, Column, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from mfg_inventory.core.database import Base


class ProductType(str, enum.Enum):
    piston = "piston"
    piston_ring = "piston_ring"
    piston_pin = "piston_pin"
    cylinder_liner = "cylinder_liner"
    filter = "filter"
    other = "other"


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    type = Column(Enum(ProductType), nullable=False)
    unit_id = Column(Integer, ForeignKey("units.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(Text, nullable=True)
    specifications = Column(Text, nullable=True)  # plain text or serialized JSON

    # Template the components were derived from; informational only
    tier_template_id = Column(
        Integer,
        ForeignKey("tier_templates.id", ondelete="SET NULL"),
        nullable=True,
    )

    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    unit = relationship("Unit", back_populates="products")
    creator = relationship("User", foreign_keys=[created_by])
    fractiles = relationship(
        "ProductFractile",
        back_populates="product",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ProductFractile.name",
    )
    cells = relationship(
        "ProductCell",
        back_populates="product",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ProductCell.name",
    )
    tiers = relationship(
        "ProductTier",
        back_populates="product",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ProductTier.name",
    )
    batches = relationship("Batch", back_populates="product", cascade="all, delete-orphan", passive_deletes=True)


class ProductTier(Base):
    __tablename__ = "product_tiers"
    __table_args__ = (CheckConstraint("count >= 0", name="ck_product_tiers_count"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    count = Column(Integer, nullable=False, default=0)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    product = relationship("Product", back_populates="tiers")


class ProductCell(Base):
    __tablename__ = "product_cells"
    __table_args__ = (CheckConstraint("count >= 0", name="ck_product_cells_count"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    tier_id = Column(Integer, ForeignKey("product_tiers.id", ondelete="SET NULL"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    count = Column(Integer, nullable=False, default=0)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    product = relationship("Product", back_populates="cells")
    tier = relationship("ProductTier")


class ProductFractile(Base):
    __tablename__ = "product_fractiles"
    __table_args__ = (CheckConstraint("count >= 0", name="ck_product_fractiles_count"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    cell_id = Column(Integer, ForeignKey("product_cells.id", ondelete="SET NULL"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    count = Column(Integer, nullable=False, default=0)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    product = relationship("Product", back_populates="fractiles")
    cell = relationship("ProductCell")


class ComponentKind(str, enum.Enum):
    """Per-product component kinds; the value is the URL segment (/products/{id}/{kind})."""

    fractile = "fractiles"
    cell = "cells"
    tier = "tiers"

    @property
    def model(self):
        return _COMPONENT_MODELS[self]


_COMPONENT_MODELS = {
    ComponentKind.fractile: ProductFractile,
    ComponentKind.cell: ProductCell,
    ComponentKind.tier: ProductTier,
}
