from sqlalchemy.orm import Session
from typing import Optional
from mfg_inventory.models.unit import Unit


def get_unit_by_id(db: Session, unit_id: int) -> Optional[Unit]:
    """Get unit by ID."""
    return db.query(Unit).filter(Unit.id == unit_id).first()


def get_unit_by_code(db: Session, code: str) -> Optional[Unit]:
    """Get unit by its unique code."""
    return db.query(Unit).filter(Unit.code == code).first()
