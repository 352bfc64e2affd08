"""Price evidence extraction from web search snippets."""

import math
import re
from typing import Iterable, List, Optional

from config.pricing_config import PricingConfig, DEFAULT_PRICING_CONFIG

# "$4.50/sq ft", "$3 - $7 per square foot", "$12 per sf"
_SQFT_PRICE_RE = re.compile(
    r"\$\s*(\d{1,3}(?:,\d{3})*(?:\.\d+)?|\d+(?:\.\d+)?)"
    r"(?:\s*(?:-|to|–)\s*\$?\s*(\d{1,3}(?:,\d{3})*(?:\.\d+)?|\d+(?:\.\d+)?))?"
    r"\s*(?:/|per|a)\s*(?:sq\.?\s*(?:ft|foot|feet)\.?|square\s+(?:foot|feet)|sf\b|ft2|sqft)",
    re.IGNORECASE,
)


def _to_float(raw: Optional[str]) -> Optional[float]:
    if not raw:
        return None
    try:
        return float(raw.replace(",", ""))
    except ValueError:
        return None


def extract_sqft_prices(texts: Iterable[str], config: PricingConfig = DEFAULT_PRICING_CONFIG) -> List[float]:
    """Find $/sqft mentions; both ends of a range count as samples.

    Values outside the plausible window are discarded.
    """
    samples: List[float] = []
    for text in texts:
        if not text:
            continue
        for match in _SQFT_PRICE_RE.finditer(text):
            for raw in match.groups():
                value = _to_float(raw)
                if value is None or not math.isfinite(value):
                    continue
                if config.evidence_min_value < value < config.evidence_max_value:
                    samples.append(value)
    return samples


def percentile(values: List[float], fraction: float) -> Optional[float]:
    """Linear-interpolated percentile; None for an empty list."""
    if not values:
        return None
    ordered = sorted(values)
    position = fraction * (len(ordered) - 1)
    lower = math.floor(position)
    upper = math.ceil(position)
    if lower == upper:
        return ordered[lower]
    weight = position - lower
    return ordered[lower] + (ordered[upper] - ordered[lower]) * weight


def median(values: List[float]) -> Optional[float]:
    return percentile(values, 0.5)
