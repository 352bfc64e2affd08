"""Estimate document models.

Pydantic models for priced lines and the estimate stored in
/projects/{projectId}/estimates/{estimateId} (lines in a subcollection).
"""

from enum import Enum
from typing import Any, Dict, List, Optional
from datetime import datetime

from pydantic import BaseModel, Field

from models.pricing_signal import PricingSource


class EstimateStatus(str, Enum):
    """Status of an estimate document."""

    DRAFT = "draft"
    SEALED = "sealed"


class CostingMode(str, Enum):
    """How labor cost was computed for a line."""

    AREA = "area"
    HOURLY = "hourly"


class EstimateLine(BaseModel):
    """One priced scope item.

    total == laborCost + materialCost + markup + tax always holds; every
    mutation goes through pricing.line_pricer.finalize_line.
    """

    scope_item_id: str = Field(..., alias="scopeItemId")
    segment: str = Field(default="")
    task: str = Field(default="")
    category: str = Field(default="general")
    material_name: Optional[str] = Field(default=None, alias="materialName")

    quantity: float = Field(default=0.0)
    unit: str = Field(default="sqft")
    costing_mode: CostingMode = Field(default=CostingMode.HOURLY, alias="costingMode")
    labor_hours: float = Field(default=0.0, alias="laborHours")
    labor_rate: float = Field(default=0.0, alias="laborRate", description="Hourly rate")
    labor_unit_rate: Optional[float] = Field(
        default=None,
        alias="laborUnitRate",
        description="Labor cost per sqft for area-costed lines"
    )
    material_unit_cost: float = Field(default=0.0, alias="materialUnitCost")

    labor_cost: float = Field(default=0.0, alias="laborCost")
    material_cost: float = Field(default=0.0, alias="materialCost")
    subtotal: float = Field(default=0.0)
    markup: float = Field(default=0.0)
    tax: float = Field(default=0.0)
    total: float = Field(default=0.0)

    pricing_source: PricingSource = Field(default=PricingSource.DEFAULT, alias="pricingSource")
    field_sources: Dict[str, str] = Field(
        default_factory=dict,
        alias="fieldSources",
        description="Signal that supplied each resolved field"
    )
    overridden_fields: List[str] = Field(default_factory=list, alias="overriddenFields")
    adjustments: List[str] = Field(
        default_factory=list,
        description="Rules that changed the line, e.g. demolition_cap, material_floor"
    )

    class Config:
        populate_by_name = True
        use_enum_values = True

    @property
    def material_overridden(self) -> bool:
        return "material_unit_cost" in self.overridden_fields

    @property
    def labor_overridden(self) -> bool:
        return any(
            name in self.overridden_fields
            for name in ("labor_hours", "labor_rate", "labor_unit_rate")
        )

    def to_firestore_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class Estimate(BaseModel):
    """A priced estimate for one project."""

    id: Optional[str] = Field(default=None, description="Document ID")
    project_id: str = Field(..., alias="projectId")
    status: EstimateStatus = Field(default=EstimateStatus.DRAFT)
    lines: List[EstimateLine] = Field(default_factory=list)

    total_labor: float = Field(default=0.0, alias="totalLabor")
    total_material: float = Field(default=0.0, alias="totalMaterial")
    total_markup: float = Field(default=0.0, alias="totalMarkup")
    total_tax: float = Field(default=0.0, alias="totalTax")
    grand_total: float = Field(default=0.0, alias="grandTotal")

    assumptions: Dict[str, Any] = Field(default_factory=dict)
    draft_version: Optional[int] = Field(default=None, alias="draftVersion")
    confirmed_amount: Optional[float] = Field(default=None, alias="confirmedAmount")
    sealed_at: Optional[datetime] = Field(default=None, alias="sealedAt")

    class Config:
        populate_by_name = True
        use_enum_values = True

    @property
    def warnings(self) -> List[str]:
        return list(self.assumptions.get("warnings", []))

    def to_firestore_dict(self) -> Dict[str, Any]:
        """Estimate document fields; lines are stored separately."""
        data = self.model_dump(by_alias=True, exclude={"id", "lines"})
        data["lineCount"] = len(self.lines)
        return data

    def to_response_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)
