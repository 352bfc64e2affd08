"""Benchmark blending and static fallback tables.

The blender is built once per estimate run from the contractor's saved rates
and the web benchmark results, then consulted by the line pricer for every
line. Fallback lookups always return a number.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional

import structlog

from config.pricing_config import PricingConfig, DEFAULT_PRICING_CONFIG
from models.pricing_signal import PricingSource, SignalResult, UserRate
from pricing.categories import parse_user_rate_key
from pricing.jurisdictions import Jurisdiction, get_jurisdiction

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BenchmarkRate:
    """Blended per-sqft labor benchmark for one category."""

    category: str
    rate: float
    web_rate: Optional[float]
    user_rate: Optional[float]

    @property
    def provenance(self) -> PricingSource:
        return PricingSource.USER if self.user_rate is not None else PricingSource.DEFAULT

    def to_dict(self) -> Dict[str, Optional[float]]:
        return {"rate": self.rate, "webRate": self.web_rate, "userRate": self.user_rate}


class BenchmarkBlender:
    """Lookup of benchmark and fallback rates for one estimate run.

    Args:
        price_point: low | medium | high
        jurisdiction: Province whose material multiplier applies to fallbacks
        user_rates: Contractor's saved rates
        web_benchmarks: Per-category SignalResult[float] of web per-sqft labor averages
        config: Pricing heuristics
    """

    def __init__(
        self,
        price_point: str = "medium",
        jurisdiction: Optional[Jurisdiction] = None,
        user_rates: Optional[List[UserRate]] = None,
        web_benchmarks: Optional[Dict[str, SignalResult]] = None,
        config: PricingConfig = DEFAULT_PRICING_CONFIG,
    ):
        self.price_point = price_point
        self.jurisdiction = jurisdiction or get_jurisdiction(None)
        self.config = config
        self._web = web_benchmarks or {}

        self._user_sqft: Dict[str, float] = {}
        self._user_hourly: Dict[str, float] = {}
        self._user_other: Dict[str, float] = {}
        self._user_materials: List[UserRate] = []
        for rate in user_rates or []:
            if rate.is_material:
                if rate.material_name:
                    self._user_materials.append(rate)
                continue
            category, basis = parse_user_rate_key(rate.key, config)
            if basis == "sqft":
                self._user_sqft[category] = rate.rate
            elif basis == "hourly":
                self._user_hourly[category] = rate.rate
            else:
                self._user_other[f"{category}_{basis}"] = rate.rate

        # Longest names first so "porcelain tile" beats "tile"
        self._user_materials.sort(key=lambda r: len(r.material_name or ""), reverse=True)

    # =========================================================================
    # Benchmarks
    # =========================================================================

    def benchmark_rate(self, category: str) -> Optional[BenchmarkRate]:
        web_result = self._web.get(category)
        web_rate = None
        if web_result is not None and web_result.is_ok and web_result.value and web_result.value > 0:
            web_rate = float(web_result.value)
        user_rate = self._user_sqft.get(category)

        if web_rate is not None and user_rate is not None:
            blended = web_rate * self.config.web_benchmark_weight + user_rate * self.config.user_benchmark_weight
        elif web_rate is not None:
            blended = web_rate
        elif user_rate is not None:
            blended = user_rate
        else:
            return None
        return BenchmarkRate(category=category, rate=blended, web_rate=web_rate, user_rate=user_rate)

    def blended_sqft_rate(self, category: str) -> SignalResult:
        """Per-sqft labor benchmark: 0.45 web + 0.55 user, else whichever exists."""
        benchmark = self.benchmark_rate(category)
        if benchmark is None:
            return SignalResult.missing()
        return SignalResult.ok(benchmark.rate, benchmark.provenance)

    def user_hourly_rate(self, category: str) -> SignalResult:
        rate = self._user_hourly.get(category)
        if rate is None:
            return SignalResult.missing()
        return SignalResult.ok(rate, PricingSource.USER)

    def user_material_rate(self, material_text: str) -> SignalResult:
        """Saved material unit cost whose name appears in the line's material text."""
        text = (material_text or "").lower()
        if not text:
            return SignalResult.missing()
        for rate in self._user_materials:
            if rate.material_name in text:
                return SignalResult.ok(rate.rate, PricingSource.USER)
        return SignalResult.missing()

    def benchmark_summary(self, categories: List[str]) -> Dict[str, Dict[str, Optional[float]]]:
        summary = {}
        for category in sorted(set(categories)):
            benchmark = self.benchmark_rate(category)
            if benchmark is not None:
                summary[category] = benchmark.to_dict()
        return summary

    # =========================================================================
    # Fallbacks
    # =========================================================================

    def fallback_hourly_rate(self, category: str) -> float:
        base = self.config.hourly_base_rates.get(
            category, self.config.hourly_base_rates[self.config.default_category]
        )
        return base * self.config.price_point_multiplier(self.price_point)

    def fallback_sqft_rate(self, category: str) -> float:
        tiers = self.config.labor_sqft_rates.get(
            category, self.config.labor_sqft_rates[self.config.default_category]
        )
        return tiers.get(self.price_point, tiers["medium"])

    def fallback_material_unit_cost(self, text: str, unit: str) -> float:
        """Static material unit cost, scaled by the jurisdiction multiplier.

        Keyword tiers first (adjusted for the unit), then the baseline
        catalogue, then the default.
        """
        lowered = (text or "").lower()
        base = None

        for tier in self.config.material_fallback_tiers:
            if re.search(tier.pattern, lowered):
                base = self._adjust_for_unit(tier.for_price_point(self.price_point), unit)
                break

        if base is None:
            for name, cost in self.config.material_baseline.items():
                if name in lowered:
                    base = cost
                    break

        if base is None:
            base = self.config.default_material_unit_cost
            logger.debug("material_fallback_default", text=lowered[:60], unit=unit)

        return base * self.jurisdiction.material_multiplier

    def _adjust_for_unit(self, base: float, unit: str) -> float:
        if unit == "sqft":
            return base
        if unit == "lf":
            return max(self.config.linear_fallback_minimum, base)
        if unit == "house":
            return max(self.config.house_fallback_minimum, base * self.config.house_fallback_factor)
        return max(self.config.itemized_fallback_minimum, base)
