"""Cloud Function entry points for estimate pricing.

Provides HTTP endpoints for:
- Generating (or regenerating) a project's draft estimate, or the
  refinement questions asked before one
- Reading the current draft
- Sealing an estimate
"""

import asyncio
import json
from typing import Dict, Any
from datetime import datetime, date

import structlog
from firebase_functions import https_fn, options
from firebase_admin import initialize_app

from config.errors import PricingError, ErrorCode, ValidationError
from models.estimate_request import RequestMode
from validators.estimate_request_validator import validate_generate_request, validate_seal_request

# Initialize Firebase Admin SDK
try:
    initialize_app()
except ValueError:
    # Already initialized
    pass

logger = structlog.get_logger()

# ============================================================================
# Helper Functions
# ============================================================================

ERROR_STATUS = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.MISSING_FIELD: 400,
    ErrorCode.INVALID_FIELD: 400,
    ErrorCode.EMPTY_SCOPE: 400,
    ErrorCode.ESTIMATE_SEALED: 400,
    ErrorCode.UNAUTHENTICATED: 401,
    ErrorCode.PROJECT_NOT_FOUND: 404,
    ErrorCode.ESTIMATE_NOT_FOUND: 404,
    ErrorCode.DRAFT_CONFLICT: 409,
}


def success_response(data: Dict[str, Any]) -> Dict[str, Any]:
    """Build success response."""
    return {"success": True, "data": data}


def error_response(code: str, message: str, details: Dict[str, Any] = None) -> Dict[str, Any]:
    """Build error response."""
    return {
        "success": False,
        "error": {
            "code": code,
            "message": message,
            "details": details or {}
        }
    }


def status_for_error(error: PricingError) -> int:
    """HTTP status for a PricingError code."""
    return ERROR_STATUS.get(error.code, 500)


def get_request_json(req: https_fn.Request) -> Dict[str, Any]:
    """Extract JSON from request body.

    Raises:
        ValidationError: If JSON is invalid.
    """
    try:
        return req.get_json(force=True) or {}
    except Exception as e:
        raise ValidationError(
            message=f"Invalid JSON in request body: {str(e)}"
        )


def require_user_id(data: Dict[str, Any]) -> str:
    """A user id must be present; real auth happens upstream."""
    user_id = data.get("userId") if isinstance(data, dict) else None
    if not isinstance(user_id, str) or not user_id.strip():
        raise PricingError(
            code=ErrorCode.UNAUTHENTICATED,
            message="Missing userId in request",
            details={"field": "userId"}
        )
    return user_id


def _handle(event: str, handler, req: https_fn.Request) -> https_fn.Response:
    """Run a request handler with the shared error mapping."""
    if req.method == "OPTIONS":
        return _cors_response()

    try:
        data = get_request_json(req)
        require_user_id(data)
        result = handler(data)
        return _json_response(success_response(result))

    except PricingError as e:
        status = status_for_error(e)
        if status >= 500:
            logger.error(f"{event}_failed", code=e.code, error=e.message)
        else:
            logger.info(f"{event}_rejected", code=e.code, error=e.message)
        return _json_response(error_response(e.code, e.message, e.details), status=status)
    except Exception as e:
        logger.exception(f"{event}_error", error=str(e))
        return _json_response(
            error_response(ErrorCode.FIRESTORE_ERROR, f"Request failed: {str(e)}"),
            status=500
        )


def _invalid(result) -> ValidationError:
    return ValidationError(
        message="Invalid request: " + "; ".join(result.errors),
        details={"errors": result.errors}
    )


# ============================================================================
# Estimate Entry Points
# ============================================================================


@https_fn.on_request(
    timeout_sec=300,
    memory=options.MemoryOption.MB_512,
    region="us-central1"
)
def generate_estimate(req: https_fn.Request) -> https_fn.Response:
    """Generate or regenerate a project's draft estimate.

    Request body:
    {
        "userId": "user-123",
        "projectId": "proj-abc",
        "mode": "generate",                         // optional: generate | questions
        "pricePoint": "medium",                     // optional: low | medium | high
        "overrides": {"scope-1": {"materialUnitCost": 6.5}},   // optional
        "refinementAnswers": ["Keep tile under $8/sqft"],      // optional
        "estimatePrompt": "...",                    // optional
        "expectedDraftVersion": 3                   // optional
    }

    Response:
    {
        "success": true,
        "data": {"id": "...", "status": "draft", "lines": [...], "grandTotal": ..., "assumptions": {...}}
    }

    With mode "questions" nothing is priced or saved and data is
    {"questions": [{"id": "...", "question": "...", "type": "multiple_choice", "options": [...]}]}.
    """
    return _handle("generate_estimate", _generate, req)


def _generate(data: Dict[str, Any]) -> Dict[str, Any]:
    result = validate_generate_request(data)
    if not result.is_valid:
        raise _invalid(result)
    request = result.parsed
    if request.mode == RequestMode.QUESTIONS:
        questions = asyncio.run(_questions_async(request))
        return {"questions": [question.to_response_dict() for question in questions]}
    estimate = asyncio.run(_generate_async(request))
    return estimate.to_response_dict()


async def _generate_async(request):
    from services.estimate_service import EstimateService

    return await EstimateService().generate(request)


async def _questions_async(request):
    from services.estimate_service import EstimateService

    return await EstimateService().suggest_questions(request)


@https_fn.on_request(
    timeout_sec=30,
    memory=options.MemoryOption.MB_256,
    region="us-central1"
)
def get_draft_estimate(req: https_fn.Request) -> https_fn.Response:
    """Get the project's current draft estimate (null when none).

    Request body:
    {
        "userId": "user-123",
        "projectId": "proj-abc"
    }
    """
    return _handle("get_draft_estimate", _get_draft, req)


def _get_draft(data: Dict[str, Any]) -> Dict[str, Any]:
    project_id = data.get("projectId")
    if not isinstance(project_id, str) or not project_id:
        raise ValidationError(message="Missing projectId in request", field="projectId")
    draft = asyncio.run(_get_draft_async(project_id, data["userId"]))
    return {"draft": draft}


async def _get_draft_async(project_id: str, user_id: str):
    from services.estimate_service import EstimateService

    return await EstimateService().get_draft(project_id, user_id)


@https_fn.on_request(
    timeout_sec=60,
    memory=options.MemoryOption.MB_256,
    region="us-central1"
)
def seal_estimate(req: https_fn.Request) -> https_fn.Response:
    """Seal an estimate so regeneration never touches it.

    Request body:
    {
        "userId": "user-123",
        "projectId": "proj-abc",
        "estimateId": "est-xyz",
        "confirmedAmount": 18250.00      // optional
    }
    """
    return _handle("seal_estimate", _seal, req)


def _seal(data: Dict[str, Any]) -> Dict[str, Any]:
    result = validate_seal_request(data)
    if not result.is_valid:
        raise _invalid(result)
    request = result.parsed
    return asyncio.run(_seal_async(
        request.project_id,
        request.estimate_id,
        request.user_id,
        request.confirmed_amount,
    ))


async def _seal_async(project_id: str, estimate_id: str, user_id: str, confirmed_amount):
    from services.firestore_service import EstimateStore

    return await EstimateStore().seal_estimate(project_id, estimate_id, user_id, confirmed_amount)


CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Access-Control-Max-Age": "3600"
}


def _cors_response() -> https_fn.Response:
    """Return CORS preflight response."""
    return https_fn.Response(
        "",
        status=204,
        headers=CORS_HEADERS
    )


def _json_response(data: dict, status: int = 200) -> https_fn.Response:
    """Return JSON response with CORS headers."""

    def _json_default(o: Any):
        # Firestore timestamps behave like datetimes but are not JSON serializable
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        if hasattr(o, "isoformat"):
            return o.isoformat()
        return str(o)

    return https_fn.Response(
        json.dumps(data, default=_json_default),
        status=status,
        mimetype="application/json",
        headers=CORS_HEADERS
    )
