"""Unit tests for category inference and saved-rate key parsing."""

import pytest

from pricing.categories import Category, infer_category, is_demolition, parse_user_rate_key


class TestInferCategory:
    """Ordered first-match category inference."""

    @pytest.mark.parametrize("task,material,expected", [
        ("Tile installation", "Porcelain tile", Category.TILING),
        ("Paint walls", "Interior paint", Category.PAINTING),
        ("Hang and tape drywall", "", Category.DRYWALL),
        ("Install flooring", "Luxury vinyl plank", Category.FLOORING),
        ("Demolition", "", Category.DEMOLITION),
        ("Kitchen cabinets", "", Category.KITCHEN),
        ("Bathroom renovation", "", Category.BATHROOM),
        ("Install light fixtures", "", Category.GENERAL),
    ])
    def test_known_categories(self, task, material, expected):
        assert infer_category(task, material) == expected

    def test_first_match_wins(self):
        """Painting is checked before tiling."""
        assert infer_category("Paint tile backsplash") == Category.PAINTING

    def test_material_text_participates(self):
        assert infer_category("Install", "Ceramic tile") == Category.TILING

    def test_case_insensitive(self):
        assert infer_category("TILE SURROUND") == Category.TILING

    def test_empty_text_is_general(self):
        assert infer_category("", "") == Category.GENERAL


class TestIsDemolition:

    @pytest.mark.parametrize("task,segment,material", [
        ("Tear out carpet", "", ""),
        ("Remove old vanity", "Bathroom", ""),
        ("Install tile", "Demo", ""),
        ("Gut kitchen", "", ""),
    ])
    def test_detects_demolition(self, task, segment, material):
        assert is_demolition(task, segment, material) is True

    def test_regular_work_is_not_demolition(self):
        assert is_demolition("Install tile", "Bathroom", "Porcelain tile") is False


class TestParseUserRateKey:

    @pytest.mark.parametrize("key,expected", [
        ("flooring_sqft", ("flooring", "sqft")),
        ("walls_sqft", ("painting", "sqft")),
        ("tiling_sqft", ("tiling", "sqft")),
        ("drywall_taping_sqft", ("drywall", "sqft")),
        ("baseboard_linear", ("baseboard", "linear")),
        ("painting_hourly", ("painting", "hourly")),
    ])
    def test_known_keys(self, key, expected):
        assert parse_user_rate_key(key) == expected

    def test_unknown_key_keeps_slug(self):
        assert parse_user_rate_key("Custom Rate") == ("custom_rate", "sqft")
