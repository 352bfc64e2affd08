"""Estimate generation orchestration.

load project, scope, saved rates and prior draft -> gather signals
-> run the pricing engine -> replace the draft.

The questions mode stops after loading and asks the AI for the next set of
refinement questions instead.
"""

import time
from typing import Any, Dict, List, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from config.errors import ErrorCode, NotFoundError, PricingError, ValidationError
from config.pricing_config import PricingConfig, DEFAULT_PRICING_CONFIG
from config.settings import settings
from models.estimate import Estimate, EstimateLine
from models.estimate_request import GenerateEstimateRequest
from models.pricing_signal import UserRate
from models.refinement_question import RefinementQuestion
from models.scope_item import ScopeItem
from pricing.engine import PricingEngine, PricingRequest
from pricing.jurisdictions import get_jurisdiction
from services.firestore_service import EstimateStore
from services.signal_gatherer import SignalGatherer
from utils.estimate_logger import (
    log_estimate_complete,
    log_estimate_failed,
    log_estimate_start,
    log_signals_summary,
)

logger = structlog.get_logger()


def parse_scope_items(raw_items: List[Dict[str, Any]]) -> List[ScopeItem]:
    """Build ScopeItems; a malformed stored item rejects the request."""
    items = []
    for raw in raw_items:
        try:
            items.append(ScopeItem.model_validate(raw))
        except PydanticValidationError as e:
            raise ValidationError(
                message=f"Scope item {raw.get('id')} is invalid",
                field="scopeItems",
                details={"errors": [err["msg"] for err in e.errors()]},
            )
    return items


def parse_user_rates(raw_rates: List[Dict[str, Any]]) -> List[UserRate]:
    """Build UserRates, skipping unusable saved entries."""
    rates = []
    for raw in raw_rates:
        try:
            rates.append(UserRate.model_validate(raw))
        except PydanticValidationError:
            logger.warning("user_rate_skipped", key=raw.get("key"), rate=raw.get("rate"))
    return rates


class EstimateService:
    """Generates and regenerates a project's draft estimate."""

    def __init__(
        self,
        store: Optional[EstimateStore] = None,
        gatherer: Optional[SignalGatherer] = None,
        engine: Optional[PricingEngine] = None,
        config: PricingConfig = DEFAULT_PRICING_CONFIG,
        ai_service=None,
    ):
        self.store = store or EstimateStore()
        self._ai_service = ai_service
        self.engine = engine or PricingEngine(config)
        self.config = config
        self._gatherer = gatherer

    @property
    def gatherer(self) -> SignalGatherer:
        """Signal gatherer (lazy, so reads never build AI or search clients)."""
        if self._gatherer is None:
            self._gatherer = self._default_gatherer(self.config)
        return self._gatherer

    @staticmethod
    def _default_gatherer(config: PricingConfig) -> SignalGatherer:
        ai_service = None
        search_service = None
        if settings.ai_pricing_enabled:
            from services.ai_pricing_service import AiPricingService
            ai_service = AiPricingService()
        if settings.benchmark_search_enabled:
            from services.benchmark_search_service import BenchmarkSearchService
            search_service = BenchmarkSearchService(config=config)
        return SignalGatherer(ai_service, search_service, settings.signal_concurrency, config)

    @property
    def ai_service(self):
        """AI service for refinement questions; None when AI is disabled."""
        if self._ai_service is None and settings.ai_pricing_enabled:
            from services.ai_pricing_service import AiPricingService
            self._ai_service = AiPricingService()
        return self._ai_service

    async def _load_scope(self, project_id: str, user_id: str):
        project = await self.store.get_project(project_id, user_id)
        if not project:
            raise NotFoundError(ErrorCode.PROJECT_NOT_FOUND, "Project not found", project_id)

        scope_items = parse_scope_items(await self.store.list_scope_items(project_id))
        if not scope_items:
            raise PricingError(
                code=ErrorCode.EMPTY_SCOPE,
                message="Project has no scope items to price",
                details={"project_id": project_id},
            )
        return project, scope_items

    async def generate(self, request: GenerateEstimateRequest) -> Estimate:
        """Price the project's scope and replace its draft.

        Raises:
            NotFoundError: Project missing or not owned by the user.
            PricingError: EMPTY_SCOPE, DRAFT_CONFLICT or Firestore failures.
            ValidationError: A stored scope item is malformed.
        """
        started = time.time()
        project_id = request.project_id

        project, scope_items = await self._load_scope(project_id, request.user_id)
        user_rates = parse_user_rates(await self.store.list_user_pricing(request.user_id))
        draft = await self.store.get_draft(project_id)
        prior_lines = [EstimateLine.model_validate(line) for line in (draft or {}).get("lines", [])]
        draft_version = (draft or {}).get("draftVersion")
        if draft_version is None:
            draft_version = (await self.store.get_draft_pointer(project_id))["version"]

        log_estimate_start(project_id, len(scope_items), request.price_point, repricing=bool(prior_lines))

        jurisdiction = get_jurisdiction(project.get("province"), settings.default_jurisdiction)
        signals = await self.gatherer.gather(
            scope_items,
            request.price_point,
            jurisdiction,
            user_rates,
            project,
        )

        estimate = self.engine.run(PricingRequest(
            project_id=project_id,
            scope_items=scope_items,
            price_point=request.price_point,
            jurisdiction=jurisdiction.code,
            user_rates=user_rates,
            overrides=request.overrides,
            signals=signals,
            prior_lines=prior_lines,
            refinement_answers=request.refinement_answers,
            estimate_prompt=request.estimate_prompt,
        ))
        log_signals_summary(project_id, estimate.assumptions)

        expected_version = request.expected_draft_version
        if expected_version is None:
            expected_version = draft_version

        try:
            saved = await self.store.replace_draft(project_id, estimate, expected_version=expected_version)
        except PricingError as e:
            log_estimate_failed(project_id, e.code, e.message)
            raise

        log_estimate_complete(
            project_id,
            saved.id,
            saved.grand_total,
            len(saved.lines),
            saved.warnings,
            int((time.time() - started) * 1000),
        )
        return saved

    async def get_draft(self, project_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        project = await self.store.get_project(project_id, user_id)
        if not project:
            raise NotFoundError(ErrorCode.PROJECT_NOT_FOUND, "Project not found", project_id)
        return await self.store.get_draft(project_id)


    async def suggest_questions(self, request: GenerateEstimateRequest) -> List[RefinementQuestion]:
        """Refinement questions for the next pass.

        Answers saved on the current draft count as answered alongside the
        request's own, so the wizard never asks the same question twice.

        Raises:
            NotFoundError: Project missing or not owned by the user.
            PricingError: EMPTY_SCOPE or Firestore failures.
        """
        project_id = request.project_id
        project, scope_items = await self._load_scope(project_id, request.user_id)
        user_rates = parse_user_rates(await self.store.list_user_pricing(request.user_id))
        assumptions = ((await self.store.get_draft(project_id)) or {}).get("assumptions") or {}

        answers: List[str] = []
        for answer in [*(assumptions.get("refinementAnswers") or []), *request.refinement_answers]:
            if isinstance(answer, str) and answer not in answers:
                answers.append(answer)

        if self.ai_service is None:
            logger.info("questions_skipped", project_id=project_id, reason="ai_disabled")
            return []

        return await self.ai_service.suggest_questions(
            scope_items,
            user_rates,
            answers,
            project,
            request.estimate_prompt or assumptions.get("estimatePrompt"),
        )
