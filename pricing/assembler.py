"""Estimate assembly: totals and the assumptions record."""

from collections import defaultdict
from typing import Any, Dict, List, Optional

from config.pricing_config import PricingConfig, DEFAULT_PRICING_CONFIG
from models.estimate import Estimate, EstimateLine, EstimateStatus
from pricing.jurisdictions import Jurisdiction


def sum_totals(lines: List[EstimateLine]) -> Dict[str, float]:
    return {
        "total_labor": sum(line.labor_cost for line in lines),
        "total_material": sum(line.material_cost for line in lines),
        "total_markup": sum(line.markup for line in lines),
        "total_tax": sum(line.tax for line in lines),
        "grand_total": sum(line.total for line in lines),
    }


def source_usage(lines: List[EstimateLine]) -> Dict[str, Dict[str, int]]:
    """Count, per field, which signal supplied the value across lines."""
    usage: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
    for line in lines:
        for field_name, source in line.field_sources.items():
            usage[field_name][source] += 1
    return {name: dict(counts) for name, counts in sorted(usage.items())}


def assemble_estimate(
    project_id: str,
    lines: List[EstimateLine],
    *,
    price_point: str,
    jurisdiction: Jurisdiction,
    warnings: List[str],
    estimator_mode: str,
    config: PricingConfig = DEFAULT_PRICING_CONFIG,
    extra_assumptions: Optional[Dict[str, Any]] = None,
) -> Estimate:
    """Build the replacement draft estimate from surviving lines."""
    assumptions: Dict[str, Any] = {
        "configVersion": config.version,
        "estimatorMode": estimator_mode,
        "pricePoint": price_point,
        "province": jurisdiction.code,
        "laborRate": jurisdiction.labor_rate_per_hour,
        "materialMultiplier": jurisdiction.material_multiplier,
        "taxRate": jurisdiction.tax_rate,
        "taxName": jurisdiction.tax_name,
        "markupPercent": config.markup_rate * 100,
        "lineCount": len(lines),
        "userPricedLines": sum(1 for line in lines if line.pricing_source == "user"),
        "fallbackUsage": source_usage(lines),
        "warnings": list(warnings),
    }
    assumptions.update(extra_assumptions or {})

    return Estimate(
        project_id=project_id,
        status=EstimateStatus.DRAFT,
        lines=lines,
        assumptions=assumptions,
        **sum_totals(lines),
    )
