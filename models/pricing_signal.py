"""Pricing signal models.

Signals are the competing inputs the resolver arbitrates between: manual
overrides, AI line suggestions, benchmark rates, saved user rates and the
static fallback tables. Anything coming from an external source is carried
as a SignalResult so a failure is a value, not an exception.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field, field_validator

from config.errors import SignalError


class PricePoint(str, Enum):
    """Finish level used to pick fallback tiers."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class PricingSource(str, Enum):
    """Provenance shown to the user: did this number come from them?"""

    USER = "user"
    DEFAULT = "default"


class SignalSource(str, Enum):
    """Which signal supplied a resolved value."""

    OVERRIDE = "override"
    AI = "ai"
    BENCHMARK = "benchmark"
    FALLBACK = "fallback"
    SCOPE = "scope"


def finite_number(value: Any) -> Optional[float]:
    """Return value as float when it is a real, finite number; bools are rejected."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    return value if math.isfinite(value) else None


# =============================================================================
# Signal results
# =============================================================================

T = TypeVar("T")


class SignalStatus(str, Enum):
    OK = "ok"
    ERR = "err"
    MISSING = "missing"


@dataclass(frozen=True)
class SignalResult(Generic[T]):
    """Outcome of asking one signal source for a value."""

    status: SignalStatus
    value: Optional[T] = None
    provenance: PricingSource = PricingSource.DEFAULT
    error: Optional[SignalError] = None

    @classmethod
    def ok(cls, value: T, provenance: PricingSource = PricingSource.DEFAULT) -> "SignalResult[T]":
        return cls(status=SignalStatus.OK, value=value, provenance=provenance)

    @classmethod
    def err(cls, error: SignalError) -> "SignalResult[T]":
        return cls(status=SignalStatus.ERR, error=error)

    @classmethod
    def missing(cls) -> "SignalResult[T]":
        return cls(status=SignalStatus.MISSING)

    @property
    def is_ok(self) -> bool:
        return self.status == SignalStatus.OK

    @property
    def is_err(self) -> bool:
        return self.status == SignalStatus.ERR

    def map(self, fn) -> "SignalResult":
        """Apply fn to an Ok value; a None result becomes Missing."""
        if not self.is_ok:
            return self
        mapped = fn(self.value)
        if mapped is None:
            return SignalResult.missing()
        return SignalResult.ok(mapped, self.provenance)


# =============================================================================
# Overrides and AI suggestions
# =============================================================================


class PricingOverride(BaseModel):
    """Manual per-line values saved by the contractor. Always wins when valid."""

    scope_item_id: str = Field(..., alias="scopeItemId")
    quantity: Optional[float] = Field(default=None)
    material_unit_cost: Optional[float] = Field(default=None, alias="materialUnitCost")
    labor_hours: Optional[float] = Field(default=None, alias="laborHours")
    labor_rate: Optional[float] = Field(default=None, alias="laborRate")
    labor_unit_rate: Optional[float] = Field(
        default=None,
        alias="laborUnitRate",
        description="Labor cost per sqft for area-costed lines"
    )
    material_name: Optional[str] = Field(default=None, alias="materialName")

    class Config:
        populate_by_name = True

    @field_validator("quantity", "material_unit_cost", "labor_hours", "labor_rate", "labor_unit_rate")
    @classmethod
    def _finite(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and not math.isfinite(v):
            raise ValueError("must be a finite number")
        return v


@dataclass(frozen=True)
class AiLineSuggestion:
    """Per-line values proposed by the AI estimator.

    Built from untrusted JSON: every field is type-checked at runtime and a
    field of the wrong type is dropped rather than trusted.
    """

    scope_item_id: str
    quantity: Optional[float] = None
    unit: Optional[str] = None
    labor_hours: Optional[float] = None
    labor_rate: Optional[float] = None
    material_unit_cost: Optional[float] = None
    material_name: Optional[str] = None
    pricing_source: PricingSource = PricingSource.DEFAULT
    notes: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Any) -> Optional["AiLineSuggestion"]:
        if not isinstance(raw, dict):
            return None
        scope_item_id = raw.get("scopeItemId")
        if not isinstance(scope_item_id, str) or not scope_item_id:
            return None

        def text(key: str) -> Optional[str]:
            value = raw.get(key)
            return value.strip() if isinstance(value, str) and value.strip() else None

        return cls(
            scope_item_id=scope_item_id,
            quantity=finite_number(raw.get("quantity")),
            unit=text("unit"),
            labor_hours=finite_number(raw.get("laborHours")),
            labor_rate=finite_number(raw.get("laborRate")),
            material_unit_cost=finite_number(raw.get("materialUnitCost")),
            material_name=text("materialName"),
            pricing_source=PricingSource.USER if raw.get("pricingSource") == "user" else PricingSource.DEFAULT,
            notes=text("notes"),
        )


# =============================================================================
# User rates and evidence
# =============================================================================

MATERIAL_KEY_PREFIX = "mat:"


class UserRate(BaseModel):
    """A rate the contractor saved in their pricing settings."""

    key: str = Field(..., min_length=1)
    rate: float = Field(..., gt=0)
    unit: str = Field(default="sqft")

    class Config:
        frozen = True

    @field_validator("rate")
    @classmethod
    def _finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("rate must be finite")
        return v

    @property
    def is_material(self) -> bool:
        return self.key.startswith(MATERIAL_KEY_PREFIX)

    @property
    def material_name(self) -> Optional[str]:
        if not self.is_material:
            return None
        return self.key[len(MATERIAL_KEY_PREFIX):].strip().lower() or None


@dataclass(frozen=True)
class MaterialEvidence:
    """Per-sqft material prices scraped from search snippets."""

    query: str
    samples: List[float]
    p75: float


@dataclass
class SignalBundle:
    """Everything gathered from external sources for one estimate run."""

    ai_lines: Dict[str, SignalResult] = field(default_factory=dict)
    web_benchmarks: Dict[str, SignalResult] = field(default_factory=dict)
    material_evidence: Dict[str, SignalResult] = field(default_factory=dict)
    ai_error: Optional[str] = None
    searches_attempted: int = 0
    searches_failed: int = 0

    @property
    def ai_line_count(self) -> int:
        return sum(1 for result in self.ai_lines.values() if result.is_ok)
