"""IntegrityError classification and the stored specifications format."""

import pytest
from sqlalchemy.exc import IntegrityError

from mfg_inventory.models import CellTemplate, FractileTemplate, Unit
from mfg_inventory.utils.integrity import FOREIGN_KEY_VIOLATION, violated_constraint
from mfg_inventory.utils.specifications import parse_specifications, serialize_specifications


def flush_error(db, *rows):
    db.add_all(rows)
    with pytest.raises(IntegrityError) as exc:
        db.flush()
    db.rollback()
    return exc.value


class TestViolatedConstraint:
    def test_single_column_unique(self, db):
        db.add(FractileTemplate(name="F1"))
        db.commit()
        error = flush_error(db, FractileTemplate(name="F1"))
        assert violated_constraint(error) == "uq_fractile_templates_name"

    def test_composite_unique(self, db):
        fractile = FractileTemplate(name="F1")
        db.add(fractile)
        db.commit()
        db.add(CellTemplate(fractile_id=fractile.id, name="C1"))
        db.commit()
        error = flush_error(db, CellTemplate(fractile_id=fractile.id, name="C1"))
        assert violated_constraint(error) == "uq_cell_templates_fractile_name"

    def test_dangling_foreign_key(self, db):
        error = flush_error(db, CellTemplate(fractile_id=12345, name="C1"))
        assert violated_constraint(error) == FOREIGN_KEY_VIOLATION

    def test_unit_code(self, db):
        db.add(Unit(name="A", code="U1"))
        db.commit()
        error = flush_error(db, Unit(name="B", code="U1"))
        assert violated_constraint(error) == "uq_units_code"


class TestSpecifications:
    def test_serialize(self):
        assert serialize_specifications(None) is None
        assert serialize_specifications({"a": 1}) == '{"a": 1}'
        assert serialize_specifications("plain") == "plain"

    @pytest.mark.parametrize(
        "stored, expected",
        [
            ('{"a": 1}', {"a": 1}),
            ("[1, 2]", [1, 2]),
            ("plain text", "plain text"),
            ("true", "true"),
            (None, None),
        ],
    )
    def test_parse(self, stored, expected):
        assert parse_specifications(stored) == expected
