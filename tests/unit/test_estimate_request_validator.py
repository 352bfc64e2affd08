"""Unit tests for estimate request validation."""

import pytest
from unittest.mock import patch

from validators.estimate_request_validator import validate_generate_request, validate_seal_request


def generate_body(**updates):
    return {"userId": "user-1", "projectId": "proj-1", **updates}


class TestValidateGenerateRequest:

    def test_minimal_body(self):
        result = validate_generate_request(generate_body())

        assert result.is_valid
        assert result.parsed.price_point == "medium"
        assert result.parsed.overrides == {}
        assert result.parsed.expected_draft_version is None

    def test_default_price_point_from_settings(self):
        with patch("validators.estimate_request_validator.settings") as mock_settings:
            mock_settings.default_price_point = "high"
            result = validate_generate_request(generate_body())

        assert result.parsed.price_point == "high"

    def test_unknown_configured_price_point_falls_back_to_medium(self):
        with patch("validators.estimate_request_validator.settings") as mock_settings:
            mock_settings.default_price_point = "premium"
            result = validate_generate_request(generate_body())

        assert result.parsed.price_point == "medium"

    def test_explicit_price_point_beats_setting(self):
        with patch("validators.estimate_request_validator.settings") as mock_settings:
            mock_settings.default_price_point = "high"
            result = validate_generate_request(generate_body(pricePoint="low"))

        assert result.parsed.price_point == "low"

    def test_mode_defaults_to_generate(self):
        assert validate_generate_request(generate_body()).parsed.mode == "generate"

    def test_questions_mode(self):
        assert validate_generate_request(generate_body(mode="questions")).parsed.mode == "questions"

    @pytest.mark.parametrize("mode", ["wizard", ["questions"]])
    def test_bad_mode(self, mode):
        result = validate_generate_request(generate_body(mode=mode))

        assert not result.is_valid
        assert "mode must be one of ['generate', 'questions']" in result.errors

    @pytest.mark.parametrize("missing", ["userId", "projectId"])
    def test_required_fields(self, missing):
        body = generate_body()
        del body[missing]

        result = validate_generate_request(body)

        assert not result.is_valid
        assert f"{missing} is required" in result.errors

    def test_not_an_object(self):
        assert not validate_generate_request(["userId"]).is_valid

    def test_bad_price_point(self):
        result = validate_generate_request(generate_body(pricePoint="premium"))
        assert not result.is_valid

    def test_overrides_keyed_by_scope_item(self):
        result = validate_generate_request(generate_body(
            overrides={"scope-tile": {"materialUnitCost": 6.5, "laborHours": 0}},
        ))

        assert result.is_valid
        override = result.parsed.overrides["scope-tile"]
        assert override.material_unit_cost == 6.5
        assert override.labor_hours == 0

    def test_overrides_as_list(self):
        result = validate_generate_request(generate_body(
            overrides=[{"scopeItemId": "scope-paint", "laborRate": 70}],
        ))

        assert result.is_valid
        assert result.parsed.overrides["scope-paint"].labor_rate == 70

    @pytest.mark.parametrize("value", ["6.5", True, float("nan")])
    def test_non_numeric_override_rejected(self, value):
        result = validate_generate_request(generate_body(overrides={"scope-tile": {"materialUnitCost": value}}))

        assert not result.is_valid
        assert "overrides[scope-tile].materialUnitCost must be a finite number" in result.errors

    def test_override_without_id_rejected(self):
        result = validate_generate_request(generate_body(overrides=[{"quantity": 3}]))
        assert "overrides[0].scopeItemId is required" in result.errors

    def test_refinement_answers_mapping(self):
        result = validate_generate_request(generate_body(
            refinementAnswers={"Tile budget?": "Keep tile under $8 per sqft", "Timeline?": None},
        ))

        assert result.parsed.refinement_answers == ["Tile budget?: Keep tile under $8 per sqft"]

    def test_refinement_answers_list(self):
        result = validate_generate_request(generate_body(
            refinementAnswers=["Porcelain", {"question": "Budget?", "answer": "Mid-range"}],
        ))

        assert result.parsed.refinement_answers == ["Porcelain", "Budget?: Mid-range"]

    def test_bad_refinement_answer(self):
        result = validate_generate_request(generate_body(refinementAnswers=[42]))
        assert "refinementAnswers[0] must be a string" in result.errors

    def test_expected_version_must_be_int(self):
        assert not validate_generate_request(generate_body(expectedDraftVersion="3")).is_valid
        assert validate_generate_request(generate_body(expectedDraftVersion=3)).parsed.expected_draft_version == 3


class TestValidateSealRequest:

    def test_valid(self):
        result = validate_seal_request({
            "userId": "user-1", "projectId": "proj-1", "estimateId": "est-1", "confirmedAmount": 1250,
        })

        assert result.is_valid
        assert result.parsed.confirmed_amount == 1250

    def test_negative_amount(self):
        result = validate_seal_request({
            "userId": "user-1", "projectId": "proj-1", "estimateId": "est-1", "confirmedAmount": -1,
        })

        assert not result.is_valid
        assert "confirmedAmount must be a non-negative number" in result.errors

    def test_missing_estimate_id(self):
        result = validate_seal_request({"userId": "user-1", "projectId": "proj-1"})
        assert "estimateId is required" in result.errors
