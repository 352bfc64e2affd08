"""Versioned pricing heuristics.

Every tunable constant the engine uses lives on PricingConfig so a test (or a
future config rollout) can inject a different set without touching the
pricing code. Bump ``version`` whenever a value changes; it is recorded on
every estimate's assumptions.
"""

from typing import Dict, List

from pydantic import BaseModel, Field


class MaterialFallbackTier(BaseModel):
    """Keyword tier for fallback material unit costs (per sqft basis)."""

    pattern: str = Field(..., description="Case-insensitive regex over task + material")
    low: float = Field(..., gt=0)
    medium: float = Field(..., gt=0)
    high: float = Field(..., gt=0)

    def for_price_point(self, price_point: str) -> float:
        return getattr(self, price_point, self.medium)


class MaterialFloor(BaseModel):
    """Minimum material cost for lines matching a pattern in given units."""

    pattern: str = Field(..., description="Case-insensitive regex over task + material (segment is ignored)")
    units: List[str] = Field(..., description="Units the floor applies to")
    min_unit_cost: float = Field(default=0.0, ge=0, description="Floor per unit of quantity")
    min_total: float = Field(default=0.0, ge=0, description="Floor for the whole line")


class OverlapRule(BaseModel):
    """Two task phrases that likely double-count work in the same segment."""

    package_phrase: str
    component_phrase: str


class PricingConfig(BaseModel):
    """All pricing heuristics, versioned as one unit."""

    version: str = Field(default="2025.10-1", description="Recorded on estimate assumptions")

    # Line arithmetic
    markup_rate: float = Field(default=0.15, ge=0)

    # Benchmark blending
    web_benchmark_weight: float = Field(default=0.45, ge=0, le=1)
    user_benchmark_weight: float = Field(default=0.55, ge=0, le=1)

    # Price point multipliers (fallback hourly rates)
    price_point_multipliers: Dict[str, float] = Field(
        default_factory=lambda: {"low": 0.9, "medium": 1.0, "high": 1.2}
    )

    # Category inference: ordered, first match wins
    category_patterns: List[List[str]] = Field(
        default_factory=lambda: [
            [r"paint|primer|stain", "painting"],
            [r"\btil(e|es|ing)\b|porcelain|ceramic|backsplash|grout", "tiling"],
            [r"drywall|taping|\bmud\b|plaster", "drywall"],
            [r"floor|vinyl|laminate|hardwood|\blvp\b|\blvt\b|carpet", "flooring"],
            [r"\bdemo\b|demolition|tear[ -]?out|\bremov(e|al)\b|\bgut\b|haul", "demolition"],
            [r"kitchen", "kitchen"],
            [r"bath(room)?|shower|vanity|toilet", "bathroom"],
        ]
    )
    default_category: str = "general"

    # User-saved labor rate keys whose prefix is not a category name
    user_key_aliases: Dict[str, str] = Field(
        default_factory=lambda: {
            "walls": "painting",
            "paint": "painting",
            "tile": "tiling",
            "floor": "flooring",
            "drywall_taping": "drywall",
            "demo": "demolition",
        }
    )

    # Fallback labor
    hourly_base_rates: Dict[str, float] = Field(
        default_factory=lambda: {
            "painting": 46.0,
            "drywall": 48.0,
            "flooring": 50.0,
            "tiling": 56.0,
            "demolition": 42.0,
            "kitchen": 60.0,
            "bathroom": 60.0,
            "general": 52.0,
        }
    )
    labor_sqft_rates: Dict[str, Dict[str, float]] = Field(
        default_factory=lambda: {
            "painting": {"low": 1.4, "medium": 2.2, "high": 3.3},
            "drywall": {"low": 1.2, "medium": 1.9, "high": 2.8},
            "flooring": {"low": 2.1, "medium": 3.2, "high": 4.8},
            "tiling": {"low": 4.0, "medium": 6.0, "high": 8.5},
            "demolition": {"low": 1.1, "medium": 1.8, "high": 2.9},
            "kitchen": {"low": 4.2, "medium": 6.8, "high": 10.5},
            "bathroom": {"low": 4.8, "medium": 7.5, "high": 11.5},
            "general": {"low": 1.8, "medium": 2.9, "high": 4.4},
        }
    )
    # Hours per unit of quantity when no override, AI value or scope hint exists
    default_labor_hours_per_unit: Dict[str, float] = Field(
        default_factory=lambda: {
            "sqft": 0.02,
            "lf": 0.05,
            "each": 1.5,
            "set": 3.0,
            "room": 16.0,
            "house": 120.0,
        }
    )

    # Fallback material
    material_fallback_tiers: List[MaterialFallbackTier] = Field(
        default_factory=lambda: [
            MaterialFallbackTier(pattern=r"paint|primer", low=0.35, medium=0.6, high=1.05),
            MaterialFallbackTier(pattern=r"drywall|taping|mud", low=0.45, medium=0.85, high=1.4),
            MaterialFallbackTier(pattern=r"vinyl|laminate|lvp|lvt|hardwood|floor", low=1.4, medium=2.2, high=3.4),
            MaterialFallbackTier(pattern=r"tile|porcelain|ceramic|backsplash", low=2.4, medium=3.9, high=6.0),
            MaterialFallbackTier(pattern=r"trim|baseboard|casing", low=1.8, medium=3.2, high=5.5),
            MaterialFallbackTier(pattern=r"counter|countertop", low=180.0, medium=320.0, high=620.0),
            MaterialFallbackTier(pattern=r"vanity|sink|toilet|faucet", low=95.0, medium=180.0, high=340.0),
            MaterialFallbackTier(pattern=r"cabinet|door|hardware", low=120.0, medium=240.0, high=460.0),
        ]
    )
    material_baseline: Dict[str, float] = Field(
        default_factory=lambda: {
            "luxury vinyl plank": 6.0,
            "engineered hardwood": 8.0,
            "porcelain tile": 9.0,
            "ceramic tile": 7.0,
            "marble tile": 18.0,
            "vinyl plank": 4.5,
            "transition strips": 15.0,
            "drywall compound": 0.4,
            "drywall sheet": 14.0,
            "underlayment": 0.8,
            "baseboard": 3.5,
            "hardwood": 12.0,
            "laminate": 3.5,
            "subfloor": 2.5,
            "primer": 0.3,
            "paint": 0.5,
            "tile": 7.0,
            "lvt": 6.0,
        }
    )
    default_material_unit_cost: float = Field(default=5.0, gt=0)
    # Minimum unit cost by unit for keyword-tier fallbacks
    linear_fallback_minimum: float = 1.2
    itemized_fallback_minimum: float = 30.0
    house_fallback_minimum: float = 250.0
    house_fallback_factor: float = 120.0

    # Demolition material caps (per unit)
    demolition_keywords: str = r"\bdemo\b|demolition|tear[ -]?out|\bremov(e|al)\b|\bgut\b|haul[ -]?away|disposal"
    demolition_caps: Dict[str, float] = Field(
        default_factory=lambda: {"sqft": 0.75, "each": 95.0, "room": 95.0, "house": 95.0, "set": 95.0}
    )
    demolition_cap_other: float = 25.0

    # Material floors (skipped for demolition and material overrides)
    material_floors: List[MaterialFloor] = Field(
        default_factory=lambda: [
            MaterialFloor(pattern=r"tile|porcelain|backsplash|shower", units=["sqft"], min_unit_cost=1.75),
            MaterialFloor(pattern=r"vinyl|laminate|hardwood|lvp|lvt|floor", units=["sqft"], min_unit_cost=1.0),
            MaterialFloor(pattern=r"drywall", units=["sqft"], min_unit_cost=0.35),
            MaterialFloor(pattern=r"paint|primer", units=["sqft"], min_unit_cost=0.2),
            MaterialFloor(pattern=r"vanity|toilet|sink|faucet", units=["each", "set"], min_unit_cost=75.0),
            MaterialFloor(pattern=r"cabinet|countertop", units=["each", "set", "room"], min_total=150.0),
        ]
    )

    # Reprice guardrails
    clamp_low_multiplier: float = 0.35
    clamp_high_multipliers: Dict[str, float] = Field(
        default_factory=lambda: {"sqft": 2.2, "lf": 2.5}
    )
    clamp_high_multiplier_other: float = 3.0
    evidence_cap_multiplier: float = 1.2
    evidence_min_value: float = 0.25
    evidence_max_value: float = 250.0
    evidence_percentile: float = 0.75
    global_material_cap_multiplier: float = 1.6

    # User-stated material caps in refinement answers
    cap_material_keywords: List[str] = Field(
        default_factory=lambda: [
            "material", "tile", "floor", "vinyl", "laminate", "hardwood",
            "finish", "product", "per sq", "sqft", "sq ft", "/sf",
        ]
    )
    cap_intent_keywords: List[str] = Field(
        default_factory=lambda: [
            "cap", "max", "maximum", "limit", "no more than", "at most",
            "under", "up to", "budget", "not exceed", "keep it below",
        ]
    )

    # Line filter
    placeholder_tasks: List[str] = Field(
        default_factory=lambda: ["", "new", "other", "misc", "general", "work", "renovation"]
    )
    placeholder_min_length: int = 3

    # Advisories
    overlap_rules: List[OverlapRule] = Field(
        default_factory=lambda: [
            OverlapRule(package_phrase="bathroom renovation", component_phrase="tile"),
            OverlapRule(package_phrase="kitchen renovation", component_phrase="cabinet"),
        ]
    )
    low_material_pattern: str = r"kitchen|bathroom|plumbing|electrical"
    low_material_threshold: float = 150.0
    package_task_pattern: str = r"renovat|full|complete"
    package_segment_pattern: str = r"kitchen|bathroom|basement|whole"
    package_units: List[str] = Field(default_factory=lambda: ["each", "house", "set"])

    class Config:
        frozen = True

    def clamp_high_multiplier(self, unit: str) -> float:
        """Upper clamp multiplier for a line unit."""
        return self.clamp_high_multipliers.get(unit, self.clamp_high_multiplier_other)

    def demolition_cap(self, unit: str) -> float:
        """Per-unit material cap for demolition lines."""
        return self.demolition_caps.get(unit, self.demolition_cap_other)

    def price_point_multiplier(self, price_point: str) -> float:
        return self.price_point_multipliers.get(price_point, 1.0)


DEFAULT_PRICING_CONFIG = PricingConfig()
