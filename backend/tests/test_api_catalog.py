"""
Integration tests for the ingredient and animal catalogue endpoints
"""
import uuid

from conftest import add_ingredient


class TestIngredientEndpoints:

    def test_create_and_get_ingredient(self, client):
        response = client.post("/ingredients/", json={
            "name": "Fish Meal",
            "category": "Protein Source",
            "cost_per_unit": 1.85,
            "dry_matter_percentage": 92,
        })
        assert response.status_code == 201
        created = response.json()["data"]
        assert created["unit"] == "kg"
        assert created["is_available"] is True

        response = client.get(f"/ingredients/{created['id']}")
        assert response.status_code == 200
        assert response.json()["data"]["cost_per_unit"] == 1.85

    def test_duplicate_name_rejected(self, client, corn):
        response = client.post("/ingredients/", json={"name": "maize grain", "cost_per_unit": 0.4})
        assert response.status_code == 422
        assert "name" in response.json()["validation_errors"]

    def test_cost_must_be_positive(self, client, db):
        response = client.post("/ingredients/", json={"name": "Free Straw", "cost_per_unit": 0})
        assert response.status_code == 422
        assert "cost_per_unit" in response.json()["validation_errors"]

    def test_list_search_and_category(self, client, db, corn, soy):
        add_ingredient(db, "Wheat Bran", 0.21)

        response = client.get("/ingredients/", params={"category": "Energy Source"})
        assert response.status_code == 200
        body = response.json()
        assert [i["name"] for i in body["data"]] == ["Maize Grain", "Wheat Bran"]
        assert body["pagination"]["total"] == 2

        response = client.get("/ingredients/", params={"search": "SOY"})
        assert [i["name"] for i in response.json()["data"]] == ["Soybean Meal"]

        response = client.get("/ingredients/", params={"sort_field": "cost_per_unit", "sort_direction": "desc"})
        assert [i["name"] for i in response.json()["data"]] == ["Soybean Meal", "Maize Grain", "Wheat Bran"]

    def test_invalid_sort_direction(self, client, db):
        response = client.get("/ingredients/", params={"sort_direction": "sideways"})
        assert response.status_code == 422

    def test_categories(self, client, corn, soy):
        response = client.get("/ingredients/categories")
        assert response.json()["data"] == ["Energy Source", "Protein Source"]

    def test_update_ingredient(self, client, corn):
        response = client.put(f"/ingredients/{corn.id}", json={"cost_per_unit": 1.2, "is_available": False})
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["cost_per_unit"] == 1.2
        assert data["is_available"] is False
        assert data["name"] == "Maize Grain"

    def test_delete_unused_ingredient(self, client, corn):
        response = client.delete(f"/ingredients/{corn.id}")
        assert response.status_code == 200
        assert client.get(f"/ingredients/{corn.id}").status_code == 404

    def test_delete_ingredient_in_use(self, client, corn, corn_soy_payload):
        assert client.post("/formulations/", json=corn_soy_payload).status_code == 201
        response = client.delete(f"/ingredients/{corn.id}")
        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "InvalidState"
        assert "1 formulation" in body["detail"]

    def test_missing_ingredient(self, client, db):
        response = client.get(f"/ingredients/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json()["message"] == "Ingredient not found"

    def test_export_csv(self, client, corn, soy):
        response = client.get("/ingredients/export")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        lines = response.text.strip().splitlines()
        assert lines[0] == "name,category,supplier,cost_per_unit,unit,dry_matter_percentage,is_available,description"
        assert lines[1].startswith("Maize Grain,Energy Source,,1.0,kg")
        assert len(lines) == 3

    def test_create_strips_name(self, client, db):
        response = client.post("/ingredients/", json={"name": "  Fish Meal  ", "cost_per_unit": 1.85})
        assert response.status_code == 201
        assert response.json()["data"]["name"] == "Fish Meal"

        response = client.post("/ingredients/", json={"name": "fish meal ", "cost_per_unit": 2.0})
        assert response.status_code == 422
        assert "name" in response.json()["validation_errors"]

    def test_blank_name_rejected(self, client, corn):
        response = client.put(f"/ingredients/{corn.id}", json={"name": "   "})
        assert response.status_code == 422
        assert "name" in response.json()["validation_errors"]

    def test_update_cannot_clear_required_fields(self, client, corn):
        for field in ("cost_per_unit", "name", "unit", "is_available"):
            response = client.put(f"/ingredients/{corn.id}", json={field: None})
            assert response.status_code == 422, field
            body = response.json()
            assert body["error"] == "ValidationFailed"
            assert body["validation_errors"][field] == ["This field cannot be cleared"]

        data = client.get(f"/ingredients/{corn.id}").json()["data"]
        assert data["name"] == "Maize Grain"
        assert data["cost_per_unit"] == 1.0

    def test_update_can_clear_optional_fields(self, client, corn):
        response = client.put(f"/ingredients/{corn.id}", json={"category": None})
        assert response.status_code == 200
        assert response.json()["data"]["category"] is None

    def test_search_treats_wildcards_literally(self, client, db):
        for name in ("Premix 50% Protein", "Premix Plain", "Layer_Mash", "LayerXMash"):
            add_ingredient(db, name, 1.0)

        response = client.get("/ingredients/", params={"search": "50%"})
        assert [i["name"] for i in response.json()["data"]] == ["Premix 50% Protein"]

        response = client.get("/ingredients/", params={"search": "r_m"})
        assert [i["name"] for i in response.json()["data"]] == ["Layer_Mash"]

        response = client.get("/ingredients/", params={"search": "%"})
        assert [i["name"] for i in response.json()["data"]] == ["Premix 50% Protein"]


class TestAnimalEndpoints:

    def test_create_and_list_animals(self, client, db):
        response = client.post("/animals/", json={
            "species": "Cattle", "breed": "Holstein", "animal_type": "Ruminant", "display_name": "Dairy Cow",
        })
        assert response.status_code == 201
        animal_id = response.json()["data"]["id"]

        response = client.get("/animals/", params={"animal_type": "Ruminant"})
        assert [a["id"] for a in response.json()["data"]] == [animal_id]
        assert client.get(f"/animals/{animal_id}").json()["data"]["display_name"] == "Dairy Cow"

    def test_stages(self, client, animal, stage):
        response = client.post(f"/animals/{animal.id}/stages", json={
            "name": "Grower", "display_name": "Broiler Grower", "stage_type": "Growth",
            "start_age_days": 11, "end_age_days": 24,
        })
        assert response.status_code == 201

        response = client.get(f"/animals/{animal.id}/stages")
        assert [s["name"] for s in response.json()["data"]] == ["Starter", "Grower"]

    def test_stage_age_range_checked(self, client, animal):
        response = client.post(f"/animals/{animal.id}/stages", json={
            "name": "Odd", "display_name": "Odd", "stage_type": "Growth",
            "start_age_days": 20, "end_age_days": 10,
        })
        assert response.status_code == 422
        assert "end_age_days" in response.json()["validation_errors"]

    def test_stages_of_missing_animal(self, client, db):
        response = client.get(f"/animals/{uuid.uuid4()}/stages")
        assert response.status_code == 404

    def test_update_animal(self, client, animal):
        response = client.put(f"/animals/{animal.id}", json={"display_name": "Ross Broiler", "breed": None})
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["display_name"] == "Ross Broiler"
        assert data["breed"] is None
        assert data["species"] == "Chicken"

    def test_update_animal_cannot_clear_required_fields(self, client, animal):
        response = client.put(f"/animals/{animal.id}", json={"species": None})
        assert response.status_code == 422
        assert response.json()["validation_errors"] == {"species": ["This field cannot be cleared"]}

    def test_delete_animal_refused_while_it_has_stages(self, client, animal, stage):
        response = client.delete(f"/animals/{animal.id}")
        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "InvalidState"
        assert body["message"] == "Cannot delete animal"
        assert "production stages" in body["detail"]

        assert client.delete(f"/animals/stages/{stage.id}").status_code == 200
        response = client.delete(f"/animals/{animal.id}")
        assert response.status_code == 200
        assert response.json()["message"] == "Animal 'Broiler Chicken' deleted successfully"
        assert client.get(f"/animals/{animal.id}").status_code == 404

    def test_delete_missing_animal(self, client, db):
        response = client.delete(f"/animals/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json()["message"] == "Animal not found"

    def test_update_stage(self, client, animal, stage):
        response = client.put(f"/animals/stages/{stage.id}", json={"end_age_days": 14, "description": "Day-old chicks"})
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["end_age_days"] == 14
        assert data["start_age_days"] == 0
        assert data["description"] == "Day-old chicks"

    def test_update_stage_checks_age_range_against_stored_values(self, client, stage):
        response = client.put(f"/animals/stages/{stage.id}", json={"start_age_days": 20})
        assert response.status_code == 422
        assert "end_age_days" in response.json()["validation_errors"]

    def test_update_stage_cannot_clear_required_fields(self, client, stage):
        response = client.put(f"/animals/stages/{stage.id}", json={"stage_type": None})
        assert response.status_code == 422
        assert "stage_type" in response.json()["validation_errors"]

    def test_delete_stage_in_use(self, client, stage, corn_soy_payload):
        assert client.post("/formulations/", json=corn_soy_payload).status_code == 201
        response = client.delete(f"/animals/stages/{stage.id}")
        assert response.status_code == 409
        assert response.json()["message"] == "Cannot delete production stage"

    def test_delete_missing_stage(self, client, db):
        response = client.delete(f"/animals/stages/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json()["message"] == "Production stage not found"


IMPORT_CSV = (
    "name,category,cost_per_unit,unit,is_available\n"
    "Fish Meal,Protein Source,1.85,kg,true\n"
    "Wheat Bran,Energy Source,0.21,,no\n"
    "Bad Row,Energy Source,abc,kg,true\n"
    "maize grain,Energy Source,0.9,kg,true\n"
    "fish meal,Protein Source,2.0,kg,true\n"
)


def _upload(client, content=IMPORT_CSV, filename="ingredients.csv", **params):
    return client.post(
        "/ingredients/import",
        params=params,
        files={"file": (filename, content.encode("utf-8"), "text/csv")},
    )


class TestIngredientImport:

    def test_template(self, client):
        response = client.get("/ingredients/import/template")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        lines = response.text.strip().splitlines()
        assert lines[0] == "name,category,supplier,cost_per_unit,unit,dry_matter_percentage,is_available,description"
        assert lines[1].startswith("Sample Ingredient,Energy Source,Sample Supplier,2.5,kg")

    def test_import_creates_and_skips(self, client, corn):
        response = _upload(client)
        assert response.status_code == 200
        summary = response.json()["data"]
        assert summary["total_rows"] == 5
        assert (summary["created"], summary["updated"], summary["skipped"], summary["failed"]) == (2, 0, 1, 2)
        assert [(e["row"], list(e["errors"])) for e in summary["errors"]] == [(4, ["cost_per_unit"]), (6, ["name"])]

        body = client.get("/ingredients/", params={"sort_field": "name"}).json()
        by_name = {i["name"]: i for i in body["data"]}
        assert sorted(by_name) == ["Fish Meal", "Maize Grain", "Wheat Bran"]
        assert by_name["Wheat Bran"]["unit"] == "kg"
        assert by_name["Wheat Bran"]["is_available"] is False
        assert by_name["Maize Grain"]["cost_per_unit"] == 1.0

    def test_import_updates_existing(self, client, corn):
        response = _upload(client, update_existing=True)
        summary = response.json()["data"]
        assert (summary["created"], summary["updated"], summary["skipped"]) == (2, 1, 0)
        assert client.get(f"/ingredients/{corn.id}").json()["data"]["cost_per_unit"] == 0.9

    def test_dry_run_writes_nothing(self, client, db):
        response = _upload(client, dry_run=True)
        assert response.status_code == 200
        body = response.json()
        assert body["data"]["valid_rows"] == 3
        assert body["data"]["created"] == 0
        assert body["message"] == "Validation completed: 3 valid, 2 with errors"
        assert client.get("/ingredients/").json()["pagination"]["total"] == 0

    def test_missing_required_column(self, client, db):
        response = _upload(client, content="name,unit\nFish Meal,kg\n")
        assert response.status_code == 422
        assert response.json()["validation_errors"] == {"file": ["Missing required columns: cost_per_unit"]}

    def test_unsupported_file_type(self, client, db):
        response = _upload(client, filename="ingredients.txt")
        assert response.status_code == 422
        assert "file" in response.json()["validation_errors"]

    def test_empty_file(self, client, db):
        response = _upload(client, content="")
        assert response.status_code == 422
        assert response.json()["validation_errors"] == {"file": ["File could not be read"]}
