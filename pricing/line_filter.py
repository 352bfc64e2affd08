"""Line filtering and advisory warnings."""

import math
import re
from dataclasses import dataclass, field
from typing import Iterable, List

from config.pricing_config import PricingConfig, DEFAULT_PRICING_CONFIG
from models.estimate import EstimateLine
from pricing.categories import is_demolition


class WarningCollector:
    """Ordered, de-duplicated warning messages."""

    def __init__(self, initial: Iterable[str] = ()):
        self._warnings = {}
        self.extend(initial)

    def add(self, message: str) -> None:
        if message:
            self._warnings.setdefault(message, None)

    def extend(self, messages: Iterable[str]) -> None:
        for message in messages:
            self.add(message)

    def items(self) -> List[str]:
        return list(self._warnings)

    def __len__(self) -> int:
        return len(self._warnings)

    def __contains__(self, message: str) -> bool:
        return message in self._warnings


@dataclass
class FilterResult:
    kept: List[EstimateLine]
    dropped: List[EstimateLine] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def is_placeholder_task(task: str, config: PricingConfig = DEFAULT_PRICING_CONFIG) -> bool:
    normalized = (task or "").strip().lower()
    return normalized in config.placeholder_tasks or len(normalized) < config.placeholder_min_length


def should_drop(line: EstimateLine, config: PricingConfig = DEFAULT_PRICING_CONFIG) -> bool:
    """Degenerate lines never reach the estimate."""
    if not math.isfinite(line.total) or line.total <= 0:
        return True
    if is_placeholder_task(line.task, config) and line.total <= 0:
        return True
    if line.quantity <= 0 and line.labor_cost <= 0 and line.material_cost <= 0:
        return True
    return False


def filter_lines(lines: List[EstimateLine], config: PricingConfig = DEFAULT_PRICING_CONFIG) -> FilterResult:
    result = FilterResult(kept=[])
    for line in lines:
        if should_drop(line, config):
            result.dropped.append(line)
        else:
            result.kept.append(line)
    if result.dropped:
        count = len(result.dropped)
        result.warnings.append(
            f"Removed {count} line{'s' if count != 1 else ''} with no usable quantity or cost."
        )
    return result


def _segments_overlap(a: str, b: str) -> bool:
    a, b = (a or "").strip().lower(), (b or "").strip().lower()
    if a == b:
        return True
    if not a or not b:
        return False
    return a in b or b in a


def detect_overlaps(lines: List[EstimateLine], config: PricingConfig = DEFAULT_PRICING_CONFIG) -> List[str]:
    """Advisory warnings for line pairs that likely price the same work twice."""
    warnings = []
    for i, first in enumerate(lines):
        for second in lines[i + 1:]:
            if not _segments_overlap(first.segment, second.segment):
                continue
            a, b = first.task.lower(), second.task.lower()
            for rule in config.overlap_rules:
                if (rule.package_phrase in a and rule.component_phrase in b) or (
                    rule.package_phrase in b and rule.component_phrase in a
                ):
                    segment = first.segment or second.segment or "project"
                    warnings.append(f'Possible overlap in {segment}: "{first.task}" and "{second.task}".')
                    break
    return warnings


def line_advisories(lines: List[EstimateLine], config: PricingConfig = DEFAULT_PRICING_CONFIG) -> List[str]:
    """Low-material and under-quantified package advisories."""
    warnings = []
    for line in lines:
        text = f"{line.segment} {line.task} {line.material_name or ''}"
        demolition = is_demolition(line.task, line.segment, line.material_name or "", config)
        if (
            not demolition
            and re.search(config.low_material_pattern, text, re.IGNORECASE)
            and line.material_cost < config.low_material_threshold
        ):
            warnings.append(f'Low material cost detected for "{line.task}" - review quantity/unit cost.')

        if (
            re.search(config.package_task_pattern, line.task, re.IGNORECASE)
            and re.search(config.package_segment_pattern, f"{line.segment} {line.task}", re.IGNORECASE)
            and line.unit in config.package_units
        ):
            warnings.append(f'Package "{line.task}" may be under-quantified ({line.quantity:g} {line.unit}).')
    return warnings
