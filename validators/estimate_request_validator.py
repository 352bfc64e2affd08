"""Estimate request validation.

Rejects malformed generate/seal bodies before any computation. Override
values must be real numbers (bools and numeric strings are rejected) so a
bad client payload surfaces as a 400 instead of a silently ignored field.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError
import structlog

from config.settings import settings
from models.estimate_request import GenerateEstimateRequest, RequestMode, SealEstimateRequest
from models.pricing_signal import PricePoint

logger = structlog.get_logger(__name__)

OVERRIDE_NUMERIC_FIELDS = ("quantity", "materialUnitCost", "laborHours", "laborRate", "laborUnitRate")
PRICE_POINTS = {p.value for p in PricePoint}
MODES = {m.value for m in RequestMode}


@dataclass
class ValidationResult:
    """Result of request validation."""
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    parsed: Optional[Any] = None


def default_price_point() -> str:
    """Configured DEFAULT_PRICE_POINT, or medium when it is not a known value."""
    configured = settings.default_price_point
    if configured in PRICE_POINTS:
        return configured
    return PricePoint.MEDIUM.value


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _normalize_answers(raw: Any, errors: List[str]) -> List[str]:
    """Accept a list of strings or a {question: answer} mapping."""
    if raw is None:
        return []
    if isinstance(raw, dict):
        return [f"{question}: {answer}" for question, answer in raw.items() if answer is not None]
    if isinstance(raw, list):
        answers = []
        for i, answer in enumerate(raw):
            if isinstance(answer, str):
                answers.append(answer)
            elif isinstance(answer, dict) and isinstance(answer.get("answer"), str):
                answers.append(f"{answer.get('question', '')}: {answer['answer']}".strip(": "))
            else:
                errors.append(f"refinementAnswers[{i}] must be a string")
        return answers
    errors.append("refinementAnswers must be a list or an object")
    return []


def _normalize_overrides(raw: Any, errors: List[str]) -> Dict[str, Dict[str, Any]]:
    """Accept overrides keyed by scope item ID or as a list with scopeItemId."""
    if raw is None:
        return {}
    if isinstance(raw, dict):
        entries = [{**value, "scopeItemId": key} if isinstance(value, dict) else value for key, value in raw.items()]
    elif isinstance(raw, list):
        entries = raw
    else:
        errors.append("overrides must be a list or an object")
        return {}

    overrides: Dict[str, Dict[str, Any]] = {}
    for i, entry in enumerate(entries):
        if not isinstance(entry, dict):
            errors.append(f"overrides[{i}] must be an object")
            continue
        scope_item_id = entry.get("scopeItemId")
        if not isinstance(scope_item_id, str) or not scope_item_id:
            errors.append(f"overrides[{i}].scopeItemId is required")
            continue
        for name in OVERRIDE_NUMERIC_FIELDS:
            value = entry.get(name)
            if value is not None and not _is_number(value):
                errors.append(f"overrides[{scope_item_id}].{name} must be a finite number")
        material_name = entry.get("materialName")
        if material_name is not None and not isinstance(material_name, str):
            errors.append(f"overrides[{scope_item_id}].materialName must be a string")
        overrides[scope_item_id] = entry
    return overrides


def validate_generate_request(data: Any) -> ValidationResult:
    """Validate a generate-estimate body.

    Returns:
        ValidationResult with the parsed GenerateEstimateRequest when valid.
    """
    if not isinstance(data, dict):
        return ValidationResult(is_valid=False, errors=["Request body must be a JSON object"])

    errors: List[str] = []
    for required in ("userId", "projectId"):
        value = data.get(required)
        if not isinstance(value, str) or not value.strip():
            errors.append(f"{required} is required")

    mode = data.get("mode")
    if mode is not None and (not isinstance(mode, str) or mode not in MODES):
        errors.append(f"mode must be one of {sorted(MODES)}")

    price_point = data.get("pricePoint")
    if price_point is not None and (not isinstance(price_point, str) or price_point not in PRICE_POINTS):
        errors.append(f"pricePoint must be one of {sorted(PRICE_POINTS)}")

    expected_version = data.get("expectedDraftVersion")
    if expected_version is not None and (isinstance(expected_version, bool) or not isinstance(expected_version, int)):
        errors.append("expectedDraftVersion must be an integer")

    estimate_prompt = data.get("estimatePrompt")
    if estimate_prompt is not None and not isinstance(estimate_prompt, str):
        errors.append("estimatePrompt must be a string")

    overrides = _normalize_overrides(data.get("overrides"), errors)
    answers = _normalize_answers(data.get("refinementAnswers"), errors)

    if errors:
        logger.info("generate_request_invalid", errors=errors)
        return ValidationResult(is_valid=False, errors=errors)

    try:
        parsed = GenerateEstimateRequest.model_validate({
            "userId": data["userId"],
            "projectId": data["projectId"],
            "mode": mode or RequestMode.GENERATE.value,
            "pricePoint": price_point or default_price_point(),
            "overrides": overrides,
            "refinementAnswers": answers,
            "estimatePrompt": estimate_prompt,
            "expectedDraftVersion": expected_version,
        })
    except PydanticValidationError as e:
        errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        return ValidationResult(is_valid=False, errors=errors)

    return ValidationResult(is_valid=True, parsed=parsed)


def validate_seal_request(data: Any) -> ValidationResult:
    """Validate a seal-estimate body."""
    if not isinstance(data, dict):
        return ValidationResult(is_valid=False, errors=["Request body must be a JSON object"])

    errors: List[str] = []
    for required in ("userId", "projectId", "estimateId"):
        value = data.get(required)
        if not isinstance(value, str) or not value.strip():
            errors.append(f"{required} is required")

    confirmed = data.get("confirmedAmount")
    if confirmed is not None and (not _is_number(confirmed) or confirmed < 0):
        errors.append("confirmedAmount must be a non-negative number")

    if errors:
        return ValidationResult(is_valid=False, errors=errors)

    parsed = SealEstimateRequest.model_validate({
        "userId": data["userId"],
        "projectId": data["projectId"],
        "estimateId": data["estimateId"],
        "confirmedAmount": confirmed,
    })
    return ValidationResult(is_valid=True, parsed=parsed)
