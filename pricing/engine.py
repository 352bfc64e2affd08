"""Pricing engine.

Synchronous, deterministic pipeline over already-gathered signals:

    scope items -> line pricer (resolver per field) -> guardrails (reprice only)
    -> line filter -> assembler

Given the same inputs the engine always produces the same numbers; all I/O
(AI calls, web search, Firestore) happens before and after it.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import structlog

from config.pricing_config import PricingConfig, DEFAULT_PRICING_CONFIG
from models.estimate import Estimate, EstimateLine
from models.pricing_signal import PricingOverride, SignalBundle, UserRate
from models.scope_item import ScopeItem
from pricing.assembler import assemble_estimate
from pricing.benchmark import BenchmarkBlender
from pricing.guardrails import GuardrailResult, Guardrails
from pricing.jurisdictions import get_jurisdiction
from pricing.line_filter import WarningCollector, detect_overlaps, filter_lines, line_advisories
from pricing.line_pricer import LinePricer
from pricing.preferences import parse_material_cap

logger = structlog.get_logger(__name__)

ESTIMATOR_MODE_AI = "ai_primary"
ESTIMATOR_MODE_FALLBACK = "fallback_engine"

REPRICE_FAILED_WARNING = "Repricing guardrails failed; baseline pricing kept."


@dataclass
class PricingRequest:
    """Everything the engine needs for one run."""

    project_id: str
    scope_items: List[ScopeItem]
    price_point: str = "medium"
    jurisdiction: Optional[str] = None
    user_rates: List[UserRate] = field(default_factory=list)
    overrides: Dict[str, PricingOverride] = field(default_factory=dict)
    signals: SignalBundle = field(default_factory=SignalBundle)
    prior_lines: List[EstimateLine] = field(default_factory=list)
    refinement_answers: List[str] = field(default_factory=list)
    estimate_prompt: Optional[str] = None


class PricingEngine:
    """Runs the pricing pipeline with one PricingConfig."""

    def __init__(self, config: PricingConfig = DEFAULT_PRICING_CONFIG):
        self.config = config

    def run(self, request: PricingRequest) -> Estimate:
        cfg = self.config
        jurisdiction = get_jurisdiction(request.jurisdiction)
        signals = request.signals
        warnings = WarningCollector()

        blender = BenchmarkBlender(
            price_point=request.price_point,
            jurisdiction=jurisdiction,
            user_rates=request.user_rates,
            web_benchmarks=signals.web_benchmarks,
            config=cfg,
        )
        pricer = LinePricer(blender, jurisdiction.tax_rate, cfg)
        lines = pricer.price_all(request.scope_items, request.overrides, signals.ai_lines)

        user_cap = parse_material_cap(request.refinement_answers, cfg)
        guardrail_result: Optional[GuardrailResult] = None
        if request.prior_lines:
            try:
                guardrail_result = Guardrails(jurisdiction.tax_rate, cfg).apply(
                    lines,
                    request.prior_lines,
                    evidence=signals.material_evidence,
                    user_cap=user_cap,
                )
                lines = guardrail_result.lines
                warnings.extend(guardrail_result.warnings)
            except Exception as e:
                logger.exception("reprice_failed", project_id=request.project_id, error=str(e))
                warnings.add(REPRICE_FAILED_WARNING)
                guardrail_result = None

        filtered = filter_lines(lines, cfg)
        warnings.extend(filtered.warnings)
        warnings.extend(detect_overlaps(filtered.kept, cfg))
        warnings.extend(line_advisories(filtered.kept, cfg))

        estimator_mode = ESTIMATOR_MODE_AI if signals.ai_line_count > 0 else ESTIMATOR_MODE_FALLBACK
        evidence_ok = [r for r in signals.material_evidence.values() if r.is_ok]
        extra = {
            "estimatePrompt": request.estimate_prompt,
            "refinementAnswers": list(request.refinement_answers),
            "aiLineCount": signals.ai_line_count,
            "aiError": signals.ai_error,
            "benchmarkCategories": blender.benchmark_summary([line.category for line in filtered.kept]),
            "evidence": {
                "searchesAttempted": signals.searches_attempted,
                "searchesFailed": signals.searches_failed,
                "linesWithEvidence": len(evidence_ok),
                "samplesUsed": sum(len(r.value.samples) for r in evidence_ok),
            },
            "userMaterialCap": user_cap,
            "repriced": guardrail_result is not None,
            "repricedLines": guardrail_result.repriced_count if guardrail_result else 0,
            "clampedAdjustments": guardrail_result.clamped_count if guardrail_result else 0,
            "globalCapApplied": bool(guardrail_result and guardrail_result.global_cap_applied),
            "droppedLines": len(filtered.dropped),
        }

        estimate = assemble_estimate(
            request.project_id,
            filtered.kept,
            price_point=request.price_point,
            jurisdiction=jurisdiction,
            warnings=warnings.items(),
            estimator_mode=estimator_mode,
            config=cfg,
            extra_assumptions=extra,
        )

        logger.info(
            "estimate_priced",
            project_id=request.project_id,
            lines=len(filtered.kept),
            dropped=len(filtered.dropped),
            grand_total=round(estimate.grand_total, 2),
            estimator_mode=estimator_mode,
            repriced=extra["repriced"],
            warnings=len(warnings),
        )
        return estimate
