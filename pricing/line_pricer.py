"""Line pricing.

Turns one scope item plus its signals into a fully costed EstimateLine:

- Area lines (sqft) cost labor as quantity x per-sqft labor rate; labor
  hours are derived for display.
- Every other line costs labor as hours x hourly rate.
- Material cost is quantity x unit cost, with a demolition cap and a
  per-category material floor for non-override values.
- Markup and tax are applied last: tax is charged on subtotal + markup.
"""

import re
from typing import Dict, List, Optional

import structlog

from config.pricing_config import PricingConfig, DEFAULT_PRICING_CONFIG
from models.estimate import CostingMode, EstimateLine
from models.pricing_signal import (
    AiLineSuggestion,
    PricingOverride,
    PricingSource,
    SignalResult,
    SignalSource,
)
from models.scope_item import ScopeItem, parse_unit
from pricing.benchmark import BenchmarkBlender
from pricing.categories import infer_category, is_demolition
from pricing.resolver import ResolvedValue, accepts, resolve

logger = structlog.get_logger(__name__)


def compute_totals(
    labor_cost: float,
    material_cost: float,
    markup_rate: float,
    tax_rate: float
) -> Dict[str, float]:
    """Subtotal, markup, tax and total for a line's two cost components."""
    subtotal = labor_cost + material_cost
    markup = subtotal * markup_rate
    tax = (subtotal + markup) * tax_rate
    return {
        "labor_cost": labor_cost,
        "material_cost": material_cost,
        "subtotal": subtotal,
        "markup": markup,
        "tax": tax,
        "total": subtotal + markup + tax,
    }


def finalize_line(
    line: EstimateLine,
    markup_rate: float,
    tax_rate: float,
    **updates
) -> EstimateLine:
    """Copy a line with updated fields and recomputed totals.

    All cost changes go through here so a line's total always equals the
    sum of its parts.
    """
    labor_cost = updates.pop("labor_cost", line.labor_cost)
    material_cost = updates.pop("material_cost", line.material_cost)
    totals = compute_totals(labor_cost, material_cost, markup_rate, tax_rate)
    return line.model_copy(update={**updates, **totals})


class LinePricer:
    """Prices scope items against one run's benchmarks and jurisdiction."""

    def __init__(
        self,
        blender: BenchmarkBlender,
        tax_rate: float,
        config: PricingConfig = DEFAULT_PRICING_CONFIG,
    ):
        self.blender = blender
        self.tax_rate = tax_rate
        self.config = config

    def price(
        self,
        item: ScopeItem,
        override: Optional[PricingOverride] = None,
        ai: Optional[SignalResult] = None,
    ) -> EstimateLine:
        """Price a single scope item."""
        cfg = self.config
        ai = ai or SignalResult.missing()
        override = override or PricingOverride(scope_item_id=item.id)
        suggestion: Optional[AiLineSuggestion] = ai.value if ai.is_ok else None

        category = infer_category(item.task, item.material, cfg).value
        demolition = is_demolition(item.task, item.segment, item.material, cfg)

        field_sources: Dict[str, str] = {}
        overridden: List[str] = []
        user_fields: List[str] = []

        def ai_field(name: str) -> SignalResult:
            if suggestion is None:
                return ai if ai.is_err else SignalResult.missing()
            value = getattr(suggestion, name)
            if value is None:
                return SignalResult.missing()
            return SignalResult.ok(value, suggestion.pricing_source)

        def record(name: str, resolved: ResolvedValue, counts_for_source: bool = True) -> float:
            field_sources[name] = resolved.source.value
            if resolved.source == SignalSource.OVERRIDE:
                overridden.append(name)
            if counts_for_source and resolved.provenance == PricingSource.USER:
                user_fields.append(name)
            return resolved.value

        # Quantity and unit
        quantity_resolved = resolve(
            "quantity", override.quantity, ai_field("quantity"),
            SignalResult.missing(), item.quantity, SignalSource.SCOPE,
        )
        quantity = record("quantity", quantity_resolved)
        unit = item.unit
        if quantity_resolved.source == SignalSource.AI and suggestion.unit:
            parsed = parse_unit(suggestion.unit)
            if parsed is not None:
                unit = parsed.value

        # Labor
        hours_overridden = accepts("labor_hours", override.labor_hours)
        unit_rate_overridden = accepts("labor_unit_rate", override.labor_unit_rate)
        area = unit == "sqft" and quantity > 0 and (unit_rate_overridden or not hours_overridden)

        labor_rate = record(
            "labor_rate",
            resolve(
                "labor_rate", override.labor_rate, ai_field("labor_rate"),
                self.blender.user_hourly_rate(category),
                self.blender.fallback_hourly_rate(category),
            ),
            counts_for_source=not area,
        )

        labor_unit_rate = None
        if area:
            labor_unit_rate = record(
                "labor_unit_rate",
                resolve(
                    "labor_unit_rate", override.labor_unit_rate,
                    self._ai_unit_rate(suggestion, quantity),
                    self.blender.blended_sqft_rate(category),
                    self.blender.fallback_sqft_rate(category),
                ),
            )
            labor_cost = quantity * labor_unit_rate
            labor_hours = labor_cost / labor_rate
            field_sources["labor_hours"] = "derived"
        else:
            hint = item.labor_hours_hint
            if accepts("labor_hours", hint):
                hours_fallback, hours_source = hint, SignalSource.SCOPE
            else:
                per_unit = cfg.default_labor_hours_per_unit.get(unit, cfg.default_labor_hours_per_unit["each"])
                hours_fallback, hours_source = quantity * per_unit, SignalSource.FALLBACK
            labor_hours = record(
                "labor_hours",
                resolve(
                    "labor_hours", override.labor_hours, ai_field("labor_hours"),
                    SignalResult.missing(), hours_fallback, hours_source,
                ),
            )
            labor_cost = labor_hours * labor_rate

        # Material
        material_text = item.material or item.task
        material_resolved = resolve(
            "material_unit_cost", override.material_unit_cost, ai_field("material_unit_cost"),
            self.blender.user_material_rate(material_text),
            self.blender.fallback_material_unit_cost(item.description, unit),
        )
        material_unit_cost = record("material_unit_cost", material_resolved)

        adjustments: List[str] = []
        if material_resolved.source != SignalSource.OVERRIDE:
            if demolition:
                cap = cfg.demolition_cap(unit)
                if material_unit_cost > cap:
                    material_unit_cost = cap
                    adjustments.append("demolition_cap")
            else:
                floor_total = self._material_floor(item, unit, quantity)
                if quantity > 0 and floor_total > quantity * material_unit_cost:
                    material_unit_cost = floor_total / quantity
                    adjustments.append("material_floor")

        material_name = (
            override.material_name
            or (suggestion.material_name if suggestion else None)
            or item.material
            or None
        )

        line = EstimateLine(
            scope_item_id=item.id,
            segment=item.segment,
            task=item.task,
            category=category,
            material_name=material_name,
            quantity=quantity,
            unit=unit,
            costing_mode=CostingMode.AREA if area else CostingMode.HOURLY,
            labor_hours=labor_hours,
            labor_rate=labor_rate,
            labor_unit_rate=labor_unit_rate,
            material_unit_cost=material_unit_cost,
            pricing_source=PricingSource.USER if user_fields else PricingSource.DEFAULT,
            field_sources=field_sources,
            overridden_fields=overridden,
            adjustments=adjustments,
        )
        return finalize_line(
            line,
            cfg.markup_rate,
            self.tax_rate,
            labor_cost=labor_cost,
            material_cost=quantity * material_unit_cost,
        )

    def price_all(
        self,
        items: List[ScopeItem],
        overrides: Optional[Dict[str, PricingOverride]] = None,
        ai_lines: Optional[Dict[str, SignalResult]] = None,
    ) -> List[EstimateLine]:
        overrides = overrides or {}
        ai_lines = ai_lines or {}
        return [
            self.price(item, overrides.get(item.id), ai_lines.get(item.id))
            for item in items
        ]

    def _ai_unit_rate(self, suggestion: Optional[AiLineSuggestion], quantity: float) -> SignalResult:
        """Per-sqft labor rate implied by the AI's hours and hourly rate."""
        if suggestion is None or quantity <= 0:
            return SignalResult.missing()
        if not accepts("labor_hours", suggestion.labor_hours) or not accepts("labor_rate", suggestion.labor_rate):
            return SignalResult.missing()
        rate = suggestion.labor_hours * suggestion.labor_rate / quantity
        if rate <= 0:
            return SignalResult.missing()
        return SignalResult.ok(rate, suggestion.pricing_source)

    def _material_floor(self, item: ScopeItem, unit: str, quantity: float) -> float:
        """Minimum total material cost for the line, 0 when no floor applies."""
        text = item.description.lower()
        for floor in self.config.material_floors:
            if unit in floor.units and re.search(floor.pattern, text):
                return max(floor.min_unit_cost * quantity, floor.min_total)
        return 0.0
