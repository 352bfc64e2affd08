"""Work category inference.

Categories key the labor fallback tables and benchmark searches. Inference
walks an ordered list of (pattern, category) pairs over the line's task and
material text; the first match wins.
"""

import re
from enum import Enum
from typing import Tuple

from config.pricing_config import PricingConfig, DEFAULT_PRICING_CONFIG


class Category(str, Enum):
    """Known work categories."""

    FLOORING = "flooring"
    PAINTING = "painting"
    TILING = "tiling"
    DRYWALL = "drywall"
    DEMOLITION = "demolition"
    KITCHEN = "kitchen"
    BATHROOM = "bathroom"
    GENERAL = "general"


# Suffixes on saved labor rate keys, e.g. flooring_sqft, painting_hourly
RATE_BASES = ("sqft", "hourly", "linear", "each")


def infer_category(task: str, material: str = "", config: PricingConfig = DEFAULT_PRICING_CONFIG) -> Category:
    """Infer the work category from task and material text."""
    text = f"{task or ''} {material or ''}".lower()
    for pattern, category in config.category_patterns:
        if re.search(pattern, text, re.IGNORECASE):
            return Category(category)
    return Category(config.default_category)


def is_demolition(
    task: str,
    segment: str = "",
    material: str = "",
    config: PricingConfig = DEFAULT_PRICING_CONFIG
) -> bool:
    """True when any of the line's texts names demolition work."""
    text = " ".join(part or "" for part in (task, segment, material))
    return re.search(config.demolition_keywords, text, re.IGNORECASE) is not None


def slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", (text or "").lower()).strip("_")


def parse_user_rate_key(key: str, config: PricingConfig = DEFAULT_PRICING_CONFIG) -> Tuple[str, str]:
    """Split a saved labor rate key into (category key, rate basis).

    ``flooring_sqft`` -> ("flooring", "sqft"), ``walls_sqft`` -> ("painting",
    "sqft"), ``baseboard_linear`` -> ("baseboard", "linear"). Keys with no
    known basis suffix are treated as per-sqft rates. Unknown prefixes keep
    their slug so the rate is still addressable.
    """
    slug = slugify(key)
    basis = "sqft"
    for candidate in RATE_BASES:
        if slug.endswith(f"_{candidate}"):
            slug = slug[: -(len(candidate) + 1)]
            basis = candidate
            break

    if slug in config.user_key_aliases:
        return config.user_key_aliases[slug], basis
    return slug, basis
