"""Scope item models.

Scope items are produced upstream (scope generation) and are read-only input
to pricing. Units arrive as free text and are normalized here.
"""

import math
import re
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class Unit(str, Enum):
    """Quantity units the engine prices."""

    SQFT = "sqft"
    LF = "lf"
    EACH = "each"
    ROOM = "room"
    HOUSE = "house"
    SET = "set"


_UNIT_ALIASES = {
    "sqft": Unit.SQFT,
    "sq ft": Unit.SQFT,
    "sf": Unit.SQFT,
    "ft2": Unit.SQFT,
    "square feet": Unit.SQFT,
    "square foot": Unit.SQFT,
    "lf": Unit.LF,
    "lin ft": Unit.LF,
    "ln ft": Unit.LF,
    "linear ft": Unit.LF,
    "linear feet": Unit.LF,
    "linear foot": Unit.LF,
    "each": Unit.EACH,
    "ea": Unit.EACH,
    "unit": Unit.EACH,
    "item": Unit.EACH,
    "piece": Unit.EACH,
    "pc": Unit.EACH,
    "fixture": Unit.EACH,
    "room": Unit.ROOM,
    "house": Unit.HOUSE,
    "home": Unit.HOUSE,
    "whole house": Unit.HOUSE,
    "set": Unit.SET,
    "kit": Unit.SET,
    "package": Unit.SET,
    "lot": Unit.SET,
}


def parse_unit(raw: Any) -> Optional[Unit]:
    """Map free-text unit to a known Unit, or None when unrecognized."""
    if isinstance(raw, Unit):
        return raw
    if not isinstance(raw, str):
        return None
    text = re.sub(r"[.\s]+", " ", raw.strip().lower()).strip()
    if not text:
        return None
    if text in _UNIT_ALIASES:
        return _UNIT_ALIASES[text]
    singular = text[:-1] if text.endswith("s") else text
    if singular in _UNIT_ALIASES:
        return _UNIT_ALIASES[singular]
    if "sq" in text or "square" in text:
        return Unit.SQFT
    if "linear" in text or "lin " in text:
        return Unit.LF
    return None


def normalize_unit(raw: Any) -> Unit:
    """Normalize a scope item unit: empty means sqft, unknown text means each."""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return Unit.SQFT
    return parse_unit(raw) or Unit.EACH


class ScopeItem(BaseModel):
    """One line of work to be priced."""

    id: str = Field(..., min_length=1, description="Scope item document ID")
    segment: str = Field(default="", description="Area of the home, e.g. Bathroom")
    task: str = Field(default="", description="Work description")
    material: str = Field(default="", description="Material text, may be empty")
    quantity: float = Field(default=0.0, ge=0, description="Quantity in unit")
    unit: Unit = Field(default=Unit.SQFT, description="Normalized unit")
    labor_hours_hint: Optional[float] = Field(
        default=None,
        alias="laborHours",
        ge=0,
        description="Labor hours suggested by scope generation"
    )
    source: Optional[str] = Field(default=None, description="Where the scope item came from")

    class Config:
        populate_by_name = True
        use_enum_values = True
        frozen = True

    @field_validator("segment", "task", "material", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str:
        if v is None:
            return ""
        return str(v).strip()

    @field_validator("unit", mode="before")
    @classmethod
    def _normalize_unit(cls, v: Any) -> Unit:
        return normalize_unit(v)

    @field_validator("quantity", "labor_hours_hint")
    @classmethod
    def _finite(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and not math.isfinite(v):
            raise ValueError("must be a finite number")
        return v

    @property
    def description(self) -> str:
        """Task and material text used for keyword matching."""
        return f"{self.task} {self.material}".strip()
