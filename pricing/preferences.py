"""User-stated pricing preferences parsed from refinement answers."""

import re
from typing import Iterable, Optional

from config.pricing_config import PricingConfig, DEFAULT_PRICING_CONFIG

_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")


def parse_material_cap(
    answers: Iterable[str],
    config: PricingConfig = DEFAULT_PRICING_CONFIG
) -> Optional[float]:
    """Material unit cost cap stated by the user, if any.

    An answer counts only when it mentions both a material keyword and a
    cap-intent keyword. The cap is the largest number found across such
    answers.
    """
    candidates = []
    for answer in answers or []:
        if not isinstance(answer, str):
            continue
        text = answer.lower()
        if not any(keyword in text for keyword in config.cap_material_keywords):
            continue
        if not any(keyword in text for keyword in config.cap_intent_keywords):
            continue
        for token in _NUMBER_RE.findall(text.replace(",", "")):
            value = float(token)
            if value > 0:
                candidates.append(value)
    return max(candidates) if candidates else None
