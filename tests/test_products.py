"""Product creation from tier templates, component replacement and unit scoping."""

import pytest

from mfg_inventory.common.exceptions import InvalidReferenceError
from mfg_inventory.models import Product, ProductCell, ProductFractile, ProductTier, ProductType
from mfg_inventory.services import product_service
from mfg_inventory.services.hierarchy_service import create_hierarchy, resolve_tier_template
from mfg_inventory.services.product_service import create_product
from tests.conftest import orphan_tier


@pytest.fixture
def tier_template(db):
    created = create_hierarchy(
        db,
        {"name": "F1", "description": "fractile one"},
        [{"name": "C1", "description": "cell one", "tiers": [{"name": "T1", "description": "tier one"}]}],
    )
    return created["tiers"][0]


def create_via_api(client, headers, **body):
    body.setdefault("name", "Piston 80")
    body.setdefault("type", "piston")
    return client.post("/api/products", json=body, headers=headers)


class TestCreateFromTierTemplate:
    def test_instantiates_one_linked_chain(self, client, admin_headers, unit, tier_template):
        response = create_via_api(
            client, admin_headers, unit_id=unit.id, tier_template_id=tier_template.id
        )
        assert response.status_code == 201
        data = response.json()["data"]

        assert [t["name"] for t in data["tiers"]] == ["T1"]
        assert [c["name"] for c in data["cells"]] == ["C1"]
        assert [f["name"] for f in data["fractiles"]] == ["F1"]
        assert data["cells"][0]["tier_id"] == data["tiers"][0]["id"]
        assert data["fractiles"][0]["cell_id"] == data["cells"][0]["id"]
        assert all(row["count"] == 0 for row in data["tiers"] + data["cells"] + data["fractiles"])
        assert data["tier_template_id"] == tier_template.id
        assert data["unit_code"] == "U1"

        details = client.get(f"/api/tiers/{data['tiers'][0]['id']}/details", headers=admin_headers)
        assert details.status_code == 200
        chain = details.json()["data"]
        assert (chain["tier"]["name"], chain["cell"]["name"], chain["fractile"]["name"]) == ("T1", "C1", "F1")

    def test_components_survive_template_deletion(self, client, admin_headers, unit, tier_template, db):
        product_id = create_via_api(
            client, admin_headers, unit_id=unit.id, tier_template_id=tier_template.id
        ).json()["data"]["id"]
        fractile_id = tier_template.cell.fractile_id

        assert client.delete(f"/api/templates/fractiles/{fractile_id}", headers=admin_headers).status_code == 200

        data = client.get(f"/api/products/{product_id}", headers=admin_headers).json()["data"]
        assert [f["name"] for f in data["fractiles"]] == ["F1"]
        assert [c["name"] for c in data["cells"]] == ["C1"]
        assert [t["name"] for t in data["tiers"]] == ["T1"]
        assert data["tier_template_id"] is None

    def test_unknown_template_writes_nothing(self, client, admin_headers, unit, db):
        response = create_via_api(client, admin_headers, unit_id=unit.id, tier_template_id=404)
        assert response.status_code == 404
        assert db.query(Product).count() == 0
        assert db.query(ProductTier).count() == 0

    def test_broken_template_chain_writes_nothing(self, client, admin_headers, unit, tier_template, db):
        tier_id = tier_template.id
        orphan_tier(db, tier_template)

        response = create_via_api(client, admin_headers, unit_id=unit.id, tier_template_id=tier_id)
        assert response.status_code == 422
        assert response.json()["error"] == "incomplete_hierarchy"
        assert db.query(Product).count() == 0
        assert db.query(ProductTier).count() == 0

    def test_template_removed_before_insert_is_invalid_reference(
        self, db, unit, admin_principal, tier_template, monkeypatch
    ):
        chain = resolve_tier_template(db, tier_template.id)
        monkeypatch.setattr(product_service, "resolve_tier_template", lambda session, tier_id: chain)

        with pytest.raises(InvalidReferenceError):
            create_product(
                db, admin_principal, name="Piston 80", product_type=ProductType.piston,
                unit_id=unit.id, tier_template_id=9999,
            )
        assert db.query(Product).count() == 0
        assert db.query(ProductTier).count() == 0

    def test_template_wins_over_flat_lists(self, client, admin_headers, unit, tier_template):
        data = create_via_api(
            client,
            admin_headers,
            unit_id=unit.id,
            tier_template_id=tier_template.id,
            fractiles=[{"name": "ignored"}],
        ).json()["data"]
        assert [f["name"] for f in data["fractiles"]] == ["F1"]


class TestFlatComponents:
    def test_flat_lists_are_stored_unlinked(self, client, admin_headers, unit):
        data = create_via_api(
            client,
            admin_headers,
            unit_id=unit.id,
            fractiles=[{"name": "F1", "count": 4}, {"name": "F2"}, {"name": "F3"}],
            cells=[{"name": "C1"}, {"name": "C2", "count": 2}],
        ).json()["data"]
        assert len(data["fractiles"]) == 3
        assert len(data["cells"]) == 2
        assert data["tiers"] == []
        assert {f["cell_id"] for f in data["fractiles"]} == {None}
        assert sorted(f["count"] for f in data["fractiles"]) == [0, 0, 4]

    def test_update_replaces_instead_of_merging(self, client, admin_headers, unit, db):
        product_id = create_via_api(
            client,
            admin_headers,
            unit_id=unit.id,
            fractiles=[{"name": "F1"}, {"name": "F2"}, {"name": "F3"}],
            cells=[{"name": "C1"}, {"name": "C2"}],
        ).json()["data"]["id"]

        response = client.put(
            f"/api/products/{product_id}",
            json={"fractiles": [{"name": "only"}]},
            headers=admin_headers,
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert [f["name"] for f in data["fractiles"]] == ["only"]
        assert data["cells"] == []
        assert data["tiers"] == []
        assert db.query(ProductCell).count() == 0
        assert db.query(ProductFractile).count() == 1

    def test_update_with_tier_template_rederives_chain(self, client, admin_headers, unit, tier_template):
        product_id = create_via_api(
            client, admin_headers, unit_id=unit.id, cells=[{"name": "old"}]
        ).json()["data"]["id"]

        data = client.put(
            f"/api/products/{product_id}",
            json={"tier_template_id": tier_template.id},
            headers=admin_headers,
        ).json()["data"]
        assert [c["name"] for c in data["cells"]] == ["C1"]
        assert data["tier_template_id"] == tier_template.id

    def test_invalid_replacement_keeps_old_components(self, client, admin_headers, unit, db):
        product_id = create_via_api(
            client, admin_headers, unit_id=unit.id, cells=[{"name": "keep"}]
        ).json()["data"]["id"]

        response = client.put(
            f"/api/products/{product_id}",
            json={"cells": [{"name": "   "}]},
            headers=admin_headers,
        )
        assert response.status_code == 400
        db.expire_all()
        assert [c.name for c in db.query(ProductCell).all()] == ["keep"]

    def test_empty_update_is_no_op(self, client, admin_headers, unit):
        product_id = create_via_api(client, admin_headers, unit_id=unit.id).json()["data"]["id"]
        response = client.put(f"/api/products/{product_id}", json={}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "no_op"


class TestSpecifications:
    def test_object_round_trips_as_json(self, client, admin_headers, unit):
        data = create_via_api(
            client, admin_headers, unit_id=unit.id, specifications={"bore_mm": 80, "alloy": "AlSi12"}
        ).json()["data"]
        assert data["specifications"] == {"bore_mm": 80, "alloy": "AlSi12"}

    def test_plain_text_is_returned_as_is(self, client, admin_headers, unit):
        data = create_via_api(
            client, admin_headers, unit_id=unit.id, specifications="hard anodised"
        ).json()["data"]
        assert data["specifications"] == "hard anodised"

    def test_numeric_text_stays_text(self, client, admin_headers, unit):
        data = create_via_api(client, admin_headers, unit_id=unit.id, specifications="42").json()["data"]
        assert data["specifications"] == "42"


class TestUnitScoping:
    def test_operator_creates_in_own_unit(self, client, operator_headers, unit, other_unit):
        data = create_via_api(client, operator_headers, unit_id=other_unit.id).json()["data"]
        assert data["unit_id"] == unit.id

    def test_admin_must_name_a_unit(self, client, admin_headers):
        response = create_via_api(client, admin_headers)
        assert response.status_code == 400

    def test_cross_unit_access_is_forbidden(self, client, operator_headers, other_unit, db, admin_principal):
        foreign = create_product(
            db, admin_principal, name="Foreign", product_type=ProductType.filter, unit_id=other_unit.id
        )
        response = client.get(f"/api/products/{foreign.id}", headers=operator_headers)
        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"

        add_status = client.post(
            f"/api/products/{foreign.id}/tiers", json={"name": "T"}, headers=operator_headers
        ).status_code
        assert add_status == 403

    def test_list_only_shows_own_unit(self, client, operator_headers, unit, other_unit, db, admin_principal):
        create_product(db, admin_principal, name="Mine", product_type=ProductType.piston, unit_id=unit.id)
        create_product(db, admin_principal, name="Theirs", product_type=ProductType.piston, unit_id=other_unit.id)

        names = [p["name"] for p in client.get("/api/products", headers=operator_headers).json()["data"]]
        assert names == ["Mine"]

        response = client.get(f"/api/products/unit/{other_unit.id}", headers=operator_headers)
        assert response.status_code == 403


class TestSingleComponents:
    def test_add_update_delete_component(self, client, admin_headers, unit):
        product_id = create_via_api(client, admin_headers, unit_id=unit.id).json()["data"]["id"]

        tier = client.post(
            f"/api/products/{product_id}/tiers", json={"name": "T1", "count": 3}, headers=admin_headers
        )
        assert tier.status_code == 201
        tier_id = tier.json()["data"]["id"]

        cell = client.post(
            f"/api/products/{product_id}/cells",
            json={"name": "C1", "tier_id": tier_id},
            headers=admin_headers,
        ).json()["data"]
        assert cell["tier_id"] == tier_id

        updated = client.put(
            f"/api/products/{product_id}/cells/{cell['id']}", json={"count": 7}, headers=admin_headers
        ).json()["data"]
        assert updated["count"] == 7

        no_op = client.put(f"/api/products/{product_id}/cells/{cell['id']}", json={}, headers=admin_headers)
        assert no_op.status_code == 400

        deleted = client.delete(f"/api/products/{product_id}/cells/{cell['id']}", headers=admin_headers)
        assert deleted.status_code == 200

    def test_link_to_foreign_component_is_invalid_reference(self, client, admin_headers, unit):
        first = create_via_api(client, admin_headers, unit_id=unit.id, tiers=[{"name": "T"}]).json()["data"]
        second = create_via_api(client, admin_headers, unit_id=unit.id, name="Other").json()["data"]

        response = client.post(
            f"/api/products/{second['id']}/cells",
            json={"name": "C", "tier_id": first["tiers"][0]["id"]},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_reference"

    def test_delete_product_removes_components(self, client, admin_headers, unit, db):
        product_id = create_via_api(
            client, admin_headers, unit_id=unit.id, tiers=[{"name": "T"}], cells=[{"name": "C"}]
        ).json()["data"]["id"]
        assert client.delete(f"/api/products/{product_id}", headers=admin_headers).status_code == 200
        assert db.query(ProductTier).count() == 0
        assert db.query(ProductCell).count() == 0

    def test_product_types(self, client, admin_headers):
        types = client.get("/api/products/types", headers=admin_headers).json()["data"]
        assert "piston" in types and "cylinder_liner" in types


class TestUpdateComponentsService:
    def test_replace_with_explicit_empty_lists(self, db, unit, admin_principal):
        from mfg_inventory.services.product_service import update_components

        product = create_product(
            db,
            admin_principal,
            name="P",
            product_type=ProductType.piston_ring,
            unit_id=unit.id,
            fractiles=[{"name": "F1"}, {"name": "F2"}, {"name": "F3"}],
            cells=[{"name": "C1"}, {"name": "C2"}],
        )
        updated = update_components(
            db, admin_principal, product.id, fractiles=[{"name": "X"}], cells=[], tiers=[]
        )
        assert [f.name for f in updated.fractiles] == ["X"]
        assert updated.cells == []
        assert updated.tiers == []
