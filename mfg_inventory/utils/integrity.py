"""
Translate storage-level IntegrityErrors into the named constraint that fired.

PostgreSQL puts the constraint name in the message
('duplicate key value violates unique constraint "uq_..."'); SQLite only
lists the columns ('UNIQUE constraint failed: cell_templates.fractile_id,
cell_templates.name'), so both spellings are derived from the table
metadata.
"""

from typing import Dict, Optional

from sqlalchemy import UniqueConstraint
from sqlalchemy.exc import IntegrityError

from mfg_inventory.core.database import Base

FOREIGN_KEY_VIOLATION = "foreign_key"


def _unique_constraint_signatures() -> Dict[str, str]:
    signatures = {}
    for table in Base.metadata.sorted_tables:
        for constraint in table.constraints:
            if isinstance(constraint, UniqueConstraint) and constraint.name:
                columns = ", ".join(f"{table.name}.{col.name}" for col in constraint.columns)
                signatures[constraint.name] = columns
    return signatures


def violated_constraint(error: IntegrityError) -> Optional[str]:
    """
    Name of the unique constraint behind `error`, FOREIGN_KEY_VIOLATION for a
    dangling reference, or None when the message is not recognised.
    """
    message = str(error.orig)
    lowered = message.lower()

    if "foreign key" in lowered:
        return FOREIGN_KEY_VIOLATION

    signatures = _unique_constraint_signatures()
    for name in signatures:
        if name in message:
            return name

    if "unique constraint failed:" in lowered:
        failed_columns = message.split(":", 1)[1].strip()
        for name, columns in signatures.items():
            if failed_columns == columns:
                return name

    return None
