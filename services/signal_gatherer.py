"""Concurrent signal gathering.

Fans out the AI pricing call, one labor benchmark search per work category
and one material evidence search per distinct sqft material, with searches
bounded by a semaphore. Each task is isolated: an exception becomes a
SignalResult error for that source alone.
"""

import asyncio
from typing import Any, Dict, List, Optional

import structlog

from config.errors import SignalError
from config.pricing_config import PricingConfig, DEFAULT_PRICING_CONFIG
from models.pricing_signal import SignalBundle, SignalResult, UserRate
from models.scope_item import ScopeItem, Unit
from pricing.categories import infer_category
from pricing.jurisdictions import Jurisdiction

logger = structlog.get_logger(__name__)


class SignalGatherer:
    """Collects external pricing signals for one estimate run.

    Args:
        ai_service: AiPricingService or None to skip AI pricing
        search_service: BenchmarkSearchService or None to skip web search
        concurrency: Maximum concurrent searches
    """

    def __init__(
        self,
        ai_service=None,
        search_service=None,
        concurrency: int = 3,
        config: PricingConfig = DEFAULT_PRICING_CONFIG,
    ):
        self.ai_service = ai_service
        self.search_service = search_service
        self.concurrency = max(1, concurrency)
        self.config = config

    async def gather(
        self,
        scope_items: List[ScopeItem],
        price_point: str,
        jurisdiction: Jurisdiction,
        user_rates: Optional[List[UserRate]] = None,
        project: Optional[Dict[str, Any]] = None,
    ) -> SignalBundle:
        bundle = SignalBundle()
        semaphore = asyncio.Semaphore(self.concurrency)

        categories = sorted({infer_category(item.task, item.material, self.config).value for item in scope_items})
        materials: Dict[str, List[str]] = {}
        for item in scope_items:
            if item.unit == Unit.SQFT.value and item.material:
                materials.setdefault(item.material.strip().lower(), []).append(item.id)

        search_enabled = self.search_service is not None and getattr(self.search_service, "available", True)

        async def bounded(coro):
            async with semaphore:
                return await coro

        tasks = []
        labels = []
        if self.ai_service is not None:
            tasks.append(self.ai_service.suggest_lines(
                scope_items, price_point, jurisdiction, user_rates or [], project
            ))
            labels.append(("ai", None))
        if search_enabled:
            for category in categories:
                tasks.append(bounded(self.search_service.labor_benchmark(category, jurisdiction.code)))
                labels.append(("benchmark", category))
            for material in materials:
                tasks.append(bounded(self.search_service.material_evidence(material, jurisdiction.code)))
                labels.append(("evidence", material))

        results = await asyncio.gather(*tasks, return_exceptions=True)

        for (kind, key), result in zip(labels, results):
            if kind == "ai":
                if isinstance(result, Exception):
                    logger.warning("signal_degraded", source="ai", error=str(result))
                    bundle.ai_error = str(result)
                    error = SignalError("ai", str(result))
                    bundle.ai_lines = {item.id: SignalResult.err(error) for item in scope_items}
                else:
                    bundle.ai_lines = result
                    errors = [r.error for r in result.values() if r.is_err and r.error is not None]
                    if errors:
                        bundle.ai_error = errors[0].message
                continue

            bundle.searches_attempted += 1
            if isinstance(result, Exception):
                logger.warning("signal_degraded", source=kind, key=key, error=str(result))
                result = SignalResult.err(SignalError(kind, str(result)))
            if result.is_err:
                bundle.searches_failed += 1

            if kind == "benchmark":
                bundle.web_benchmarks[key] = result
            else:
                for item_id in materials[key]:
                    bundle.material_evidence[item_id] = result

        logger.info(
            "signals_gathered",
            ai_lines=bundle.ai_line_count,
            benchmarks=sum(1 for r in bundle.web_benchmarks.values() if r.is_ok),
            evidence=sum(1 for r in bundle.material_evidence.values() if r.is_ok),
            searches_attempted=bundle.searches_attempted,
            searches_failed=bundle.searches_failed,
        )
        return bundle
