"""
Template store: CRUD over fractile, cell and tier templates.

The kind is always a TemplateKind, which carries the model and the name
of the parent FK, so no table names are assembled from strings here.
"""

from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from mfg_inventory.common.exceptions import (
    AppError,
    ConflictError,
    InvalidInputError,
    InvalidReferenceError,
    NoOpError,
    NotFoundError,
)
from mfg_inventory.logger_config import logger
from mfg_inventory.models.template import CellTemplate, FractileTemplate, TemplateKind, TierTemplate
from mfg_inventory.utils.integrity import FOREIGN_KEY_VIOLATION, violated_constraint


UNIQUE_CONSTRAINTS = {
    TemplateKind.fractile: "uq_fractile_templates_name",
    TemplateKind.cell: "uq_cell_templates_fractile_name",
    TemplateKind.tier: "uq_tier_templates_cell_name",
}

CONFLICT_MESSAGES = {
    "uq_fractile_templates_name": "A fractile template with this name already exists",
    "uq_cell_templates_fractile_name": "A cell template with this name already exists in this fractile",
    "uq_tier_templates_cell_name": "A tier template with this name already exists in this cell",
}


def conflict_for(constraint: str) -> ConflictError:
    return ConflictError(CONFLICT_MESSAGES.get(constraint, "Duplicate template"), constraint=constraint)


def integrity_error_for(error: IntegrityError, default_constraint: str) -> AppError:
    """Dangling references (parent, created_by) are InvalidReference; everything else a name Conflict."""
    constraint = violated_constraint(error)
    if constraint == FOREIGN_KEY_VIOLATION:
        return InvalidReferenceError("Invalid reference. Related record not found.")
    return conflict_for(constraint or default_constraint)


def clean_name(name: Optional[str]) -> str:
    return (name or "").strip()


def _base_query(db: Session, kind: TemplateKind):
    if kind == TemplateKind.cell:
        return db.query(CellTemplate).options(joinedload(CellTemplate.fractile))
    if kind == TemplateKind.tier:
        return db.query(TierTemplate).options(
            joinedload(TierTemplate.cell).joinedload(CellTemplate.fractile)
        )
    return db.query(FractileTemplate)


def get_template(db: Session, kind: TemplateKind, template_id: int):
    return _base_query(db, kind).filter(kind.model.id == template_id).first()


def list_templates(db: Session, kind: TemplateKind, parent_id: Optional[int] = None) -> List:
    """Templates of one kind sorted by name, optionally limited to one parent."""
    model = kind.model
    query = _base_query(db, kind)
    if parent_id is not None and kind.parent_field:
        query = query.filter(getattr(model, kind.parent_field) == parent_id)
    return query.order_by(model.name, model.id).all()


def name_taken(
    db: Session,
    kind: TemplateKind,
    name: str,
    parent_id: Optional[int] = None,
    exclude_id: Optional[int] = None,
) -> bool:
    """True if `name` is already used in the uniqueness scope of `kind`."""
    model = kind.model
    query = db.query(model.id).filter(model.name == name)
    if kind.parent_field:
        query = query.filter(getattr(model, kind.parent_field) == parent_id)
    if exclude_id is not None:
        query = query.filter(model.id != exclude_id)
    return query.first() is not None


def create_template(
    db: Session,
    kind: TemplateKind,
    name: str,
    description: Optional[str] = None,
    parent_id: Optional[int] = None,
    created_by: Optional[int] = None,
):
    name = clean_name(name)
    if not name:
        raise InvalidInputError("Name required")

    model = kind.model
    fields = {"name": name, "description": description, "created_by": created_by}

    if kind.parent_field:
        if parent_id is None:
            raise InvalidInputError(f"{kind.parent_field} is required for {kind.label}")
        parent_kind = kind.parent_kind
        if db.query(parent_kind.model.id).filter(parent_kind.model.id == parent_id).first() is None:
            raise InvalidReferenceError(f"{parent_kind.label.capitalize()} template not found: {parent_id}")
        fields[kind.parent_field] = parent_id

    if name_taken(db, kind, name, parent_id=parent_id):
        raise conflict_for(UNIQUE_CONSTRAINTS[kind])

    template = model(**fields)
    db.add(template)

    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Error creating {kind.label} template: {e}")
        raise integrity_error_for(e, UNIQUE_CONSTRAINTS[kind])

    logger.info(f"{kind.label.capitalize()} template created: {template.id} ({name})")
    return get_template(db, kind, template.id)


def update_template(
    db: Session,
    kind: TemplateKind,
    template_id: int,
    name: Optional[str] = None,
    description: Optional[str] = None,
):
    if name is None and description is None:
        raise NoOpError("No fields to update")

    template = get_template(db, kind, template_id)
    if not template:
        raise NotFoundError(f"{kind.label.capitalize()} template not found: {template_id}")

    if name is not None:
        name = clean_name(name)
        if not name:
            raise InvalidInputError("Name cannot be blank")
        parent_id = getattr(template, kind.parent_field) if kind.parent_field else None
        if name_taken(db, kind, name, parent_id=parent_id, exclude_id=template.id):
            raise conflict_for(UNIQUE_CONSTRAINTS[kind])
        template.name = name

    if description is not None:
        template.description = description

    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Error updating {kind.label} template {template_id}: {e}")
        raise integrity_error_for(e, UNIQUE_CONSTRAINTS[kind])

    logger.info(f"{kind.label.capitalize()} template updated: {template_id}")
    return get_template(db, kind, template_id)


def delete_template(db: Session, kind: TemplateKind, template_id: int) -> int:
    """Delete one template; descendants go with it through ON DELETE CASCADE."""
    template = db.query(kind.model).filter(kind.model.id == template_id).first()
    if not template:
        raise NotFoundError(f"{kind.label.capitalize()} template not found: {template_id}")

    db.delete(template)
    db.commit()
    logger.info(f"{kind.label.capitalize()} template deleted: {template_id}")
    return template_id
