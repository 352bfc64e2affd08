"""Price source resolution.

For every numeric field of a line the resolver picks one value from the
competing signals in strict priority order:

    override > AI suggestion > benchmark > fallback

A candidate is only taken when it is a finite number satisfying the field's
constraint; otherwise the next source is consulted. The fallback is always
defined, so resolution never fails.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional

from models.pricing_signal import (
    PricingSource,
    SignalResult,
    SignalSource,
    finite_number,
)


def _positive(value: float) -> bool:
    return value > 0


def _non_negative(value: float) -> bool:
    return value >= 0


FIELD_CONSTRAINTS: Dict[str, Callable[[float], bool]] = {
    "quantity": _positive,
    "labor_hours": _non_negative,
    "labor_rate": _positive,
    "labor_unit_rate": _positive,
    "material_unit_cost": _positive,
}


@dataclass(frozen=True)
class ResolvedValue:
    """A resolved field value and where it came from."""

    value: float
    provenance: PricingSource
    source: SignalSource


def accepts(field: str, value) -> bool:
    """True when value is a finite number satisfying the field's constraint."""
    number = finite_number(value)
    if number is None:
        return False
    return FIELD_CONSTRAINTS.get(field, _positive)(number)


def resolve(
    field: str,
    override: Optional[float],
    ai: SignalResult,
    benchmark: SignalResult,
    fallback: float,
    fallback_source: SignalSource = SignalSource.FALLBACK,
) -> ResolvedValue:
    """Resolve one numeric field.

    Args:
        field: Field name; selects the constraint (quantity > 0, hours >= 0, rates > 0)
        override: Manual override value, if any
        ai: AI suggestion for this field
        benchmark: Benchmark or saved-rate signal for this field
        fallback: Always-defined last resort
        fallback_source: Label for the fallback (scope quantity uses SCOPE)

    Returns:
        ResolvedValue with the chosen value, provenance and source.
    """
    if override is not None and accepts(field, override):
        return ResolvedValue(float(override), PricingSource.USER, SignalSource.OVERRIDE)

    if ai.is_ok and accepts(field, ai.value):
        return ResolvedValue(float(ai.value), ai.provenance, SignalSource.AI)

    if benchmark.is_ok and accepts(field, benchmark.value):
        return ResolvedValue(float(benchmark.value), benchmark.provenance, SignalSource.BENCHMARK)

    return ResolvedValue(float(fallback), PricingSource.DEFAULT, fallback_source)
