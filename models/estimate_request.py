"""Request models for the estimate endpoints."""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from models.pricing_signal import PricePoint, PricingOverride


class RequestMode(str, Enum):
    """generate prices and saves a draft; questions only returns refinement questions."""

    GENERATE = "generate"
    QUESTIONS = "questions"


class GenerateEstimateRequest(BaseModel):
    """Body of a generate (or regenerate) request."""

    user_id: str = Field(..., alias="userId", min_length=1)
    project_id: str = Field(..., alias="projectId", min_length=1)
    mode: RequestMode = Field(default=RequestMode.GENERATE)
    price_point: PricePoint = Field(default=PricePoint.MEDIUM, alias="pricePoint")
    overrides: Dict[str, PricingOverride] = Field(
        default_factory=dict,
        description="Overrides keyed by scope item ID"
    )
    refinement_answers: List[str] = Field(default_factory=list, alias="refinementAnswers")
    estimate_prompt: Optional[str] = Field(default=None, alias="estimatePrompt")
    expected_draft_version: Optional[int] = Field(
        default=None,
        alias="expectedDraftVersion",
        description="Fail with a conflict if the draft moved past this version"
    )

    class Config:
        populate_by_name = True
        use_enum_values = True


class SealEstimateRequest(BaseModel):
    """Body of a seal request."""

    user_id: str = Field(..., alias="userId", min_length=1)
    project_id: str = Field(..., alias="projectId", min_length=1)
    estimate_id: str = Field(..., alias="estimateId", min_length=1)
    confirmed_amount: Optional[float] = Field(default=None, alias="confirmedAmount", ge=0)

    class Config:
        populate_by_name = True
