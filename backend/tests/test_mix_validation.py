"""
Unit tests for the ingredient mix check and input parsing
"""
import uuid
import warnings

import pytest
from pydantic.warnings import PydanticDeprecatedSince20

from app.models import FormulationCreate
from core.formulation.exceptions import InvalidIngredientMix, ValidationFailed
from core.formulation.validation import (
    field_errors_from_pydantic,
    total_percentage,
    validate_input,
    validate_percentage_sum,
)


class TestPercentageSum:
    """Percentages must add up to 100 within 0.1"""

    def test_exact_sum_accepted(self):
        assert validate_percentage_sum([{"percentage": 60}, {"percentage": 40}]) == pytest.approx(100.0)

    @pytest.mark.parametrize("percentages", [[60, 40.05], [59.95, 40], [25, 25, 25, 25]])
    def test_within_tolerance_accepted(self, percentages):
        """Sums of 99.9 to 100.1 are accepted"""
        validate_percentage_sum([{"percentage": p} for p in percentages])

    def test_sum_below_reports_rounded_total(self):
        """50 + 49 is rejected and reported as 99.0"""
        with pytest.raises(InvalidIngredientMix) as exc_info:
            validate_percentage_sum([{"percentage": 50}, {"percentage": 49}])
        assert exc_info.value.total_percentage == 99.0
        assert "Current sum: 99.0%" in exc_info.value.detail
        assert exc_info.value.http_status == 422

    def test_sum_above_rejected(self):
        with pytest.raises(InvalidIngredientMix) as exc_info:
            validate_percentage_sum([{"percentage": 70}, {"percentage": 30.2}])
        assert exc_info.value.total_percentage == 100.2

    def test_works_with_models(self):
        entries = [type("Entry", (), {"percentage": 100.0})()]
        assert total_percentage(entries) == 100.0

    def test_error_payload_shape(self):
        with pytest.raises(InvalidIngredientMix) as exc_info:
            validate_percentage_sum([{"percentage": 10}])
        payload = exc_info.value.to_dict()
        assert payload["success"] is False
        assert payload["error"] == "InvalidIngredientMix"
        assert "ingredients" in payload["validation_errors"]


class TestInputParsing:
    """Schema validation happens before any write"""

    def _payload(self, **overrides):
        payload = {
            "name": "Layer Mash",
            "formulation_type": "Custom",
            "animal_id": str(uuid.uuid4()),
            "production_stage_id": str(uuid.uuid4()),
            "formulation_quantity": 100,
            "total_cost": 50,
            "cost_per_unit": 0.5,
            "ingredients": [{
                "ingredient_id": str(uuid.uuid4()),
                "quantity": 100,
                "percentage": 100,
                "ingredient_role": "Primary",
            }],
        }
        payload.update(overrides)
        return payload

    def test_valid_payload_parses(self):
        parsed = validate_input(FormulationCreate, self._payload())
        assert parsed.name == "Layer Mash"
        assert parsed.optimization_objective == "custom"
        assert parsed.ingredients[0].ingredient_role == "Primary"

    def test_parsing_uses_current_pydantic_api(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error", PydanticDeprecatedSince20)
            parsed = validate_input(FormulationCreate, self._payload())
            dumped = parsed.model_dump(exclude={"ingredients"})
        assert dumped["formulation_type"] == "Custom"

    def test_missing_body(self):
        with pytest.raises(ValidationFailed) as exc_info:
            validate_input(FormulationCreate, None)
        assert "__root__" in exc_info.value.field_errors

    def test_empty_ingredient_list_rejected(self):
        with pytest.raises(ValidationFailed) as exc_info:
            validate_input(FormulationCreate, self._payload(ingredients=[]))
        assert "ingredients" in exc_info.value.field_errors

    def test_unknown_role_rejected(self):
        payload = self._payload()
        payload["ingredients"][0]["ingredient_role"] = "Garnish"
        with pytest.raises(ValidationFailed) as exc_info:
            validate_input(FormulationCreate, payload)
        assert "ingredients.0.ingredient_role" in exc_info.value.field_errors

    def test_non_positive_quantity_rejected(self):
        payload = self._payload()
        payload["ingredients"][0]["quantity"] = 0
        with pytest.raises(ValidationFailed) as exc_info:
            validate_input(FormulationCreate, payload)
        assert "ingredients.0.quantity" in exc_info.value.field_errors

    def test_duplicate_ingredient_rejected(self):
        entry = self._payload()["ingredients"][0]
        entry["percentage"] = 50
        entry["quantity"] = 50
        with pytest.raises(ValidationFailed):
            validate_input(FormulationCreate, self._payload(ingredients=[entry, dict(entry)]))

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationFailed) as exc_info:
            validate_input(FormulationCreate, self._payload(name="   "))
        assert "name" in exc_info.value.field_errors


def test_field_errors_strip_location_prefix():
    errors = [
        {"loc": ("body", "ingredients", 0, "percentage"), "msg": "too large"},
        {"loc": ("body", "ingredients", 0, "percentage"), "msg": "still too large"},
        {"loc": (), "msg": "bad body"},
    ]
    assert field_errors_from_pydantic(errors) == {
        "ingredients.0.percentage": ["too large", "still too large"],
        "__root__": ["bad body"],
    }
