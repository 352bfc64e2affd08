"""Unit tests for scope item and pricing signal models."""

import math

import pytest
from pydantic import ValidationError as PydanticValidationError

from config.errors import SignalError
from models.pricing_signal import (
    AiLineSuggestion,
    PricingSource,
    SignalResult,
    UserRate,
    finite_number,
)
from models.scope_item import ScopeItem, Unit, normalize_unit, parse_unit
from tests.fixtures.sample_scope_data import BASEBOARD_ITEM, BATHROOM_TILE_ITEM


class TestUnits:

    @pytest.mark.parametrize("raw,expected", [
        ("sq ft", Unit.SQFT),
        ("SF", Unit.SQFT),
        ("Sq. Ft.", Unit.SQFT),
        ("square feet", Unit.SQFT),
        ("linear ft", Unit.LF),
        ("LF", Unit.LF),
        ("ea", Unit.EACH),
        ("rooms", Unit.ROOM),
        ("house", Unit.HOUSE),
        ("kit", Unit.SET),
    ])
    def test_parse_known_units(self, raw, expected):
        assert parse_unit(raw) == expected

    def test_parse_unknown_unit(self):
        assert parse_unit("bundle") is None
        assert parse_unit(12) is None

    def test_normalize_defaults(self):
        assert normalize_unit("") == Unit.SQFT
        assert normalize_unit(None) == Unit.SQFT
        assert normalize_unit("bundle") == Unit.EACH


class TestScopeItem:

    def test_parses_stored_document(self):
        item = ScopeItem.model_validate(BASEBOARD_ITEM)

        assert item.unit == "lf"
        assert item.labor_hours_hint == 8
        assert item.quantity == 120

    def test_description_joins_task_and_material(self):
        item = ScopeItem.model_validate(BATHROOM_TILE_ITEM)
        assert item.description == "Tile installation Porcelain tile"

    def test_negative_quantity_rejected(self):
        with pytest.raises(PydanticValidationError):
            ScopeItem.model_validate({**BATHROOM_TILE_ITEM, "quantity": -1})

    def test_infinite_quantity_rejected(self):
        with pytest.raises(PydanticValidationError):
            ScopeItem.model_validate({**BATHROOM_TILE_ITEM, "quantity": math.inf})

    def test_none_text_becomes_empty(self):
        item = ScopeItem.model_validate({"id": "s1", "task": "Paint", "material": None})
        assert item.material == ""


class TestAiLineSuggestion:

    def test_valid_line(self):
        suggestion = AiLineSuggestion.from_raw({
            "scopeItemId": "s1",
            "quantity": 10,
            "unit": "sqft",
            "laborHours": 2.5,
            "laborRate": 60,
            "materialUnitCost": 4.2,
            "pricingSource": "user",
        })

        assert suggestion.quantity == 10.0
        assert suggestion.labor_hours == 2.5
        assert suggestion.pricing_source == PricingSource.USER

    def test_wrong_types_are_dropped(self):
        suggestion = AiLineSuggestion.from_raw({
            "scopeItemId": "s1",
            "quantity": "10",
            "laborHours": True,
            "laborRate": float("nan"),
            "materialUnitCost": None,
            "materialName": 42,
            "pricingSource": "USER",
        })

        assert suggestion.quantity is None
        assert suggestion.labor_hours is None
        assert suggestion.labor_rate is None
        assert suggestion.material_unit_cost is None
        assert suggestion.material_name is None
        assert suggestion.pricing_source == PricingSource.DEFAULT

    def test_missing_id_rejected(self):
        assert AiLineSuggestion.from_raw({"quantity": 4}) is None
        assert AiLineSuggestion.from_raw(["scopeItemId"]) is None


class TestSignalResult:

    def test_ok_err_missing(self):
        assert SignalResult.ok(3.0).is_ok
        assert SignalResult.err(SignalError("ai", "boom")).is_err
        missing = SignalResult.missing()
        assert not missing.is_ok and not missing.is_err

    def test_map_keeps_provenance(self):
        mapped = SignalResult.ok(2.0, PricingSource.USER).map(lambda v: v * 2)
        assert mapped.value == 4.0
        assert mapped.provenance == PricingSource.USER

    def test_map_none_becomes_missing(self):
        assert not SignalResult.ok(2.0).map(lambda v: None).is_ok

    def test_finite_number(self):
        assert finite_number(3) == 3.0
        assert finite_number(True) is None
        assert finite_number(float("inf")) is None
        assert finite_number("3") is None


class TestUserRate:

    def test_material_rate(self):
        rate = UserRate(key="mat:Porcelain Tile", rate=8.25)
        assert rate.is_material
        assert rate.material_name == "porcelain tile"

    def test_labor_rate(self):
        rate = UserRate(key="flooring_sqft", rate=4.0)
        assert not rate.is_material
        assert rate.material_name is None

    def test_non_positive_rate_rejected(self):
        with pytest.raises(PydanticValidationError):
            UserRate(key="flooring_sqft", rate=0)
