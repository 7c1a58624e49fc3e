"""
Integration tests for the formulation endpoints
"""
import uuid

from conftest import formulation_payload, ingredient_entry


def _create(client, payload):
    response = client.post("/formulations/", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestFormulationEndpoints:
    """Create, read, update, delete"""

    def test_create_formulation(self, client, corn, corn_soy_payload):
        """Corn and soy both contribute 60 against a declared total of 100"""
        response = client.post("/formulations/", json=corn_soy_payload)
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Formulation created successfully"
        data = body["data"]
        assert data["status"] == "draft"
        assert [row["cost_percentage"] for row in data["ingredients"]] == [60.0, 60.0]
        assert data["main_ingredients"][0] == {"ingredient_id": str(corn.id), "percentage": 60.0}

    def test_create_with_bad_mix(self, client, animal, stage, corn, soy):
        """50 + 49 is rejected with the sum reported"""
        payload = formulation_payload(animal, stage, [
            ingredient_entry(corn, 50, 50),
            ingredient_entry(soy, 49, 49),
        ])
        response = client.post("/formulations/", json=payload)
        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "InvalidIngredientMix"
        assert "99.0" in body["detail"]
        assert client.get("/formulations/").json()["pagination"]["total"] == 0

    def test_create_with_schema_errors(self, client, corn_soy_payload):
        corn_soy_payload["ingredients"][0]["percentage"] = 150
        del corn_soy_payload["name"]
        response = client.post("/formulations/", json=corn_soy_payload)
        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "ValidationFailed"
        assert "name" in body["validation_errors"]
        assert "ingredients.0.percentage" in body["validation_errors"]

    def test_get_formulation(self, client, corn_soy_payload):
        created = _create(client, corn_soy_payload)
        response = client.get(f"/formulations/{created['id']}")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["id"] == created["id"]
        assert data["animal_name"] == "Broiler Chicken"
        assert [row["ingredient_name"] for row in data["ingredients"]] == ["Maize Grain", "Soybean Meal"]

    def test_get_missing_formulation(self, client, db):
        response = client.get(f"/formulations/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json()["error"] == "NotFound"

    def test_get_invalid_id(self, client, db):
        response = client.get("/formulations/not-a-uuid")
        assert response.status_code == 422
        assert response.json()["validation_errors"] == {"id": ["Invalid ID format"]}

    def test_update_formulation(self, client, corn, soy, corn_soy_payload):
        created = _create(client, corn_soy_payload)
        response = client.put(f"/formulations/{created['id']}", json={
            "name": "Broiler Starter v2",
            "ingredients": [ingredient_entry(corn, 50, 50), ingredient_entry(soy, 50, 50)],
        })
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["name"] == "Broiler Starter v2"
        assert [row["percentage"] for row in data["ingredients"]] == [50.0, 50.0]

    def test_delete_formulation(self, client, corn_soy_payload):
        created = _create(client, corn_soy_payload)
        response = client.delete(f"/formulations/{created['id']}")
        assert response.status_code == 200
        assert response.json()["message"] == "Formulation 'Broiler Starter' deleted successfully"
        assert client.get(f"/formulations/{created['id']}").status_code == 404


class TestFormulationLifecycle:

    def test_active_formulation_locked_until_deactivated(self, client, corn_soy_payload):
        """Edits are refused while active and allowed again after deactivation"""
        created = _create(client, corn_soy_payload)

        response = client.post(f"/formulations/{created['id']}/status", json={"activate": True})
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "active"

        response = client.put(f"/formulations/{created['id']}", json={"description": "Revised"})
        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "InvalidState"
        assert body["message"] == "Cannot edit active formulation"

        response = client.delete(f"/formulations/{created['id']}")
        assert response.status_code == 409

        client.post(f"/formulations/{created['id']}/status", json={"activate": False})
        response = client.put(f"/formulations/{created['id']}", json={"description": "Revised"})
        assert response.status_code == 200
        assert response.json()["data"]["description"] == "Revised"

    def test_duplicate_active_formulation(self, client, corn_soy_payload):
        """The copy of an active formulation is a new draft"""
        created = _create(client, corn_soy_payload)
        client.post(f"/formulations/{created['id']}/status", json={"activate": True})

        response = client.post(f"/formulations/{created['id']}/duplicate", json={"name": "Broiler Starter (Copy)"})
        assert response.status_code == 201
        copy = response.json()["data"]
        assert copy["status"] == "draft"
        assert copy["id"] != created["id"]
        assert copy["name"] == "Broiler Starter (Copy)"
        assert [row["percentage"] for row in copy["ingredients"]] == [
            row["percentage"] for row in created["ingredients"]
        ]

    def test_duplicate_requires_name(self, client, corn_soy_payload):
        created = _create(client, corn_soy_payload)
        response = client.post(f"/formulations/{created['id']}/duplicate", json={"name": "  "})
        assert response.status_code == 422
        assert "name" in response.json()["validation_errors"]


class TestFormulationListing:

    def test_list_with_filters_and_pagination(self, client, animal, stage, corn, soy):
        for name in ("Starter A", "Starter B", "Grower C"):
            _create(client, formulation_payload(animal, stage, [
                ingredient_entry(corn, 60, 60),
                ingredient_entry(soy, 40, 40),
            ], name=name))

        response = client.get("/formulations/", params={"search": "starter", "sort_field": "name", "sort_direction": "asc"})
        assert response.status_code == 200
        body = response.json()
        assert [f["name"] for f in body["data"]] == ["Starter A", "Starter B"]
        assert body["data"][0]["stage_name"] == "Starter"
        assert body["pagination"]["total"] == 2

        response = client.get("/formulations/", params={"limit": 2, "page": 2, "sort_field": "name", "sort_direction": "asc"})
        body = response.json()
        assert [f["name"] for f in body["data"]] == ["Starter B"]
        assert body["pagination"] == {
            "page": 2, "limit": 2, "total": 3, "total_pages": 2, "has_next": False, "has_prev": True,
        }

    def test_search_treats_wildcards_literally(self, client, animal, stage, corn, soy):
        for name in ("Layer 50% Grain", "Layer Mash"):
            _create(client, formulation_payload(animal, stage, [
                ingredient_entry(corn, 60, 60),
                ingredient_entry(soy, 40, 40),
            ], name=name))

        response = client.get("/formulations/", params={"search": "50%"})
        assert [f["name"] for f in response.json()["data"]] == ["Layer 50% Grain"]
        response = client.get("/formulations/", params={"search": "_"})
        assert response.json()["pagination"]["total"] == 0

    def test_filter_by_status(self, client, corn_soy_payload):
        created = _create(client, corn_soy_payload)
        client.post(f"/formulations/{created['id']}/status", json={"activate": True})
        assert client.get("/formulations/", params={"status": "active"}).json()["pagination"]["total"] == 1
        assert client.get("/formulations/", params={"status": "draft"}).json()["pagination"]["total"] == 0

    def test_invalid_sort_field(self, client, db):
        response = client.get("/formulations/", params={"sort_field": "nutritional_analysis"})
        assert response.status_code == 422
        assert "sort_field" in response.json()["validation_errors"]

    def test_limit_out_of_range(self, client, db):
        response = client.get("/formulations/", params={"limit": 500})
        assert response.status_code == 422
        assert response.json()["error"] == "ValidationFailed"

    def test_formulation_types(self, client, corn_soy_payload):
        _create(client, corn_soy_payload)
        response = client.get("/formulations/types")
        assert response.status_code == 200
        assert response.json()["data"] == ["Custom"]


def test_export_formulation_csv(client, corn_soy_payload):
    created = _create(client, corn_soy_payload)
    response = client.get(f"/formulations/{created['id']}/export")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert 'filename="Broiler_Starter.csv"' in response.headers["content-disposition"]
    lines = response.text.strip().splitlines()
    assert lines[0].startswith("display_order,ingredient_name")
    assert len(lines) == 4  # header, two ingredients, totals
    assert ",TOTAL," in lines[-1]


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["database"] == "ok"
