"""Hierarchy builder atomicity and the two tier resolvers."""

import pytest

from mfg_inventory.common.exceptions import (
    ConflictError,
    IncompleteHierarchyError,
    InvalidReferenceError,
    NotFoundError,
)
from mfg_inventory.models import (
    CellTemplate,
    FractileTemplate,
    ProductCell,
    ProductFractile,
    ProductTier,
    ProductType,
    TierTemplate,
)
from mfg_inventory.services.hierarchy_service import (
    create_hierarchy,
    resolve_product_tier,
    resolve_tier_template,
)
from tests.conftest import orphan_tier


def template_counts(db):
    db.expire_all()
    return (
        db.query(FractileTemplate).count(),
        db.query(CellTemplate).count(),
        db.query(TierTemplate).count(),
    )


class TestCreateHierarchy:
    def test_creates_whole_tree_and_skips_blank_rows(self, client, admin_headers):
        payload = {
            "fractile": {"name": "F1", "description": "top"},
            "cells": [
                {"name": "C1", "tiers": [{"name": "T1"}, {"name": "T2"}, {"name": "  "}]},
                {"name": "   ", "tiers": [{"name": "orphan"}]},
                {"name": "C2", "tiers": []},
            ],
        }
        response = client.post("/api/templates/hierarchy", json=payload, headers=admin_headers)
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["fractile"]["name"] == "F1"
        assert [c["name"] for c in data["cells"]] == ["C1", "C2"]
        assert [t["name"] for t in data["tiers"]] == ["T1", "T2"]
        assert {t["cell_name"] for t in data["tiers"]} == {"C1"}

    def test_blank_fractile_name_is_invalid_input(self, client, admin_headers, db):
        response = client.post(
            "/api/templates/hierarchy",
            json={"fractile": {"name": " "}, "cells": [{"name": "C1"}]},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert template_counts(db) == (0, 0, 0)

    def test_existing_fractile_name_writes_nothing(self, client, admin_headers, db):
        create_hierarchy(db, {"name": "F1"}, [])
        before = template_counts(db)

        response = client.post(
            "/api/templates/hierarchy",
            json={"fractile": {"name": "F1"}, "cells": [{"name": "C1", "tiers": [{"name": "T1"}]}]},
            headers=admin_headers,
        )
        assert response.status_code == 409
        assert response.json()["details"]["constraint"] == "uq_fractile_templates_name"
        assert template_counts(db) == before

    def test_duplicate_tier_in_payload_rolls_back_everything(self, db):
        with pytest.raises(ConflictError) as exc:
            create_hierarchy(
                db,
                {"name": "F9"},
                [{"name": "C1", "tiers": [{"name": "T1"}, {"name": " T1 "}]}],
            )
        assert exc.value.constraint == "uq_tier_templates_cell_name"
        assert template_counts(db) == (0, 0, 0)

    def test_duplicate_cell_in_payload_is_conflict(self, db):
        with pytest.raises(ConflictError) as exc:
            create_hierarchy(db, {"name": "F9"}, [{"name": "C1"}, {"name": "C1"}])
        assert exc.value.constraint == "uq_cell_templates_fractile_name"
        assert template_counts(db) == (0, 0, 0)

    def test_same_tier_name_under_different_cells_is_fine(self, db):
        created = create_hierarchy(
            db,
            {"name": "F1"},
            [
                {"name": "C1", "tiers": [{"name": "T1"}]},
                {"name": "C2", "tiers": [{"name": "T1"}]},
            ],
        )
        assert len(created["tiers"]) == 2

    def test_unknown_creator_is_invalid_reference(self, db):
        with pytest.raises(InvalidReferenceError):
            create_hierarchy(db, {"name": "F1"}, [{"name": "C1", "tiers": [{"name": "T1"}]}], created_by=9999)
        assert template_counts(db) == (0, 0, 0)


class TestResolveTierTemplate:
    def test_resolves_full_chain(self, client, admin_headers, db):
        created = create_hierarchy(db, {"name": "F1"}, [{"name": "C1", "tiers": [{"name": "T1"}]}])
        tier_id = created["tiers"][0].id

        response = client.get(f"/api/templates/tiers/{tier_id}/hierarchy", headers=admin_headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["tier"]["name"] == "T1"
        assert data["cell"]["name"] == "C1"
        assert data["fractile"]["name"] == "F1"

        chain = resolve_tier_template(db, tier_id)
        assert chain["cell"].id == chain["tier"].cell_id
        assert chain["fractile"].id == chain["cell"].fractile_id

    def test_missing_tier_is_not_found(self, client, admin_headers, db):
        response = client.get("/api/templates/tiers/77/hierarchy", headers=admin_headers)
        assert response.status_code == 404
        with pytest.raises(NotFoundError):
            resolve_tier_template(db, 77)

    def test_tier_with_missing_cell_is_incomplete(self, client, admin_headers, db):
        created = create_hierarchy(db, {"name": "F1"}, [{"name": "C1", "tiers": [{"name": "T1"}]}])
        tier = created["tiers"][0]
        tier_id = tier.id
        orphan_tier(db, tier)

        with pytest.raises(IncompleteHierarchyError):
            resolve_tier_template(db, tier_id)

        response = client.get(f"/api/templates/tiers/{tier_id}/hierarchy", headers=admin_headers)
        assert response.status_code == 422
        assert response.json()["error"] == "incomplete_hierarchy"


class TestResolveProductTier:
    def test_unlinked_tier_is_incomplete(self, db, unit, admin_principal):
        from mfg_inventory.services.product_service import create_product

        product = create_product(
            db, admin_principal, name="P", product_type=ProductType.piston, unit_id=unit.id,
            tiers=[{"name": "loose"}],
        )
        with pytest.raises(IncompleteHierarchyError):
            resolve_product_tier(db, product.tiers[0].id)

    def test_earliest_linked_cell_wins(self, db, unit, admin_principal):
        from mfg_inventory.services.product_service import create_product

        product = create_product(db, admin_principal, name="P", product_type=ProductType.piston, unit_id=unit.id)
        tier = ProductTier(product_id=product.id, name="T", count=0)
        db.add(tier)
        db.flush()
        first = ProductCell(product_id=product.id, tier_id=tier.id, name="first", count=0)
        db.add(first)
        db.flush()
        db.add(ProductCell(product_id=product.id, tier_id=tier.id, name="second", count=0))
        db.add(ProductFractile(product_id=product.id, cell_id=first.id, name="F", count=0))
        db.commit()

        chain = resolve_product_tier(db, tier.id)
        assert chain["cell"].name == "first"
        assert chain["fractile"].name == "F"

    def test_missing_product_tier_is_not_found(self, db):
        with pytest.raises(NotFoundError):
            resolve_product_tier(db, 1234)
