"""Reprice guardrails.

When a project already has a draft, a regeneration must not swing prices
wildly because one signal was noisy. Each repriced line is clamped against
its previous value, optionally tightened by web evidence and a cap the user
stated, and the repriced lines' aggregate material cost is capped relative to
the previous draft. Lines whose material cost the user overrode are pinned:
they are never clamped and never scaled.

Guardrails never fail a request; every adjustment becomes a warning.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import structlog

from config.pricing_config import PricingConfig, DEFAULT_PRICING_CONFIG
from models.estimate import CostingMode, EstimateLine
from models.pricing_signal import MaterialEvidence, SignalResult
from pricing.categories import is_demolition
from pricing.line_pricer import finalize_line

logger = structlog.get_logger(__name__)


@dataclass
class GuardrailResult:
    lines: List[EstimateLine]
    warnings: List[str] = field(default_factory=list)
    repriced_count: int = 0
    clamped_count: int = 0
    global_cap_applied: bool = False
    evidence_lines: int = 0
    evidence_samples: int = 0


def _clamp(value: float, lower: float, upper: float) -> float:
    """Clamp into [lower, upper]; when upper < lower the upper bound wins."""
    if upper < lower:
        return upper
    return min(max(value, lower), upper)


class Guardrails:
    """Applies reprice clamps against a prior draft's lines."""

    def __init__(self, tax_rate: float, config: PricingConfig = DEFAULT_PRICING_CONFIG):
        self.tax_rate = tax_rate
        self.config = config

    def apply(
        self,
        lines: List[EstimateLine],
        prior_lines: List[EstimateLine],
        evidence: Optional[Dict[str, SignalResult]] = None,
        user_cap: Optional[float] = None,
    ) -> GuardrailResult:
        """Clamp baseline lines against the previous draft.

        Args:
            lines: Baseline priced lines for this run
            prior_lines: Lines of the draft being replaced
            evidence: Per scope item SignalResult[MaterialEvidence]
            user_cap: Material unit cost cap stated by the user

        Returns:
            GuardrailResult with adjusted lines and warnings.
        """
        evidence = evidence or {}
        prior_by_id = {line.scope_item_id: line for line in prior_lines}
        result = GuardrailResult(lines=[])
        repriced_ids = set()

        for line in lines:
            prior = prior_by_id.get(line.scope_item_id)
            if prior is None or line.material_overridden:
                result.lines.append(line)
                continue

            sample = evidence.get(line.scope_item_id)
            p75 = None
            if sample is not None and sample.is_ok and isinstance(sample.value, MaterialEvidence):
                p75 = sample.value.p75
                result.evidence_lines += 1
                result.evidence_samples += len(sample.value.samples)

            updated = self._clamp_line(line, prior, p75, user_cap, result)
            if prior.material_cost > 0:
                repriced_ids.add(line.scope_item_id)
            result.lines.append(updated)

        result.repriced_count = len(repriced_ids)
        self._apply_global_cap(result, prior_by_id, repriced_ids)
        return result

    def _clamp_line(
        self,
        line: EstimateLine,
        prior: EstimateLine,
        p75: Optional[float],
        user_cap: Optional[float],
        result: GuardrailResult,
    ) -> EstimateLine:
        cfg = self.config
        multiplier = cfg.clamp_high_multiplier(line.unit)
        updates = {}
        adjustments = list(line.adjustments)

        # Material unit cost
        if prior.material_unit_cost > 0:
            lower = prior.material_unit_cost * cfg.clamp_low_multiplier
            caps = [prior.material_unit_cost * multiplier]
            if p75 is not None and line.unit == "sqft":
                caps.append(p75 * cfg.evidence_cap_multiplier)
            # Stated caps are per sqft
            if user_cap is not None and line.unit == "sqft":
                caps.append(user_cap)
            if "demolition_cap" in line.adjustments or is_demolition(
                line.task, line.segment, line.material_name or "", cfg
            ):
                caps.append(cfg.demolition_cap(line.unit))
            clamped = _clamp(line.material_unit_cost, lower, min(caps))
            if abs(clamped - line.material_unit_cost) > 1e-9:
                result.warnings.append(
                    f'Material unit cost for "{line.task}" adjusted from '
                    f"${line.material_unit_cost:,.2f} to ${clamped:,.2f} per {line.unit} to stay near the previous draft."
                )
                result.clamped_count += 1
                adjustments.append("material_clamp")
                updates["material_unit_cost"] = clamped
                updates["material_cost"] = line.quantity * clamped
                logger.info(
                    "guardrail_clamped",
                    scope_item_id=line.scope_item_id,
                    field="material_unit_cost",
                    before=line.material_unit_cost,
                    after=clamped,
                )

        # Labor cost per unit of quantity
        if (
            not line.labor_overridden
            and line.quantity > 0
            and prior.quantity > 0
            and prior.labor_cost > 0
        ):
            prior_per_unit = prior.labor_cost / prior.quantity
            current_per_unit = line.labor_cost / line.quantity
            clamped = _clamp(
                current_per_unit,
                prior_per_unit * cfg.clamp_low_multiplier,
                prior_per_unit * multiplier,
            )
            if abs(clamped - current_per_unit) > 1e-9:
                labor_cost = clamped * line.quantity
                result.warnings.append(
                    f'Labor cost for "{line.task}" adjusted from '
                    f"${line.labor_cost:,.2f} to ${labor_cost:,.2f} to stay near the previous draft."
                )
                result.clamped_count += 1
                adjustments.append("labor_clamp")
                updates["labor_cost"] = labor_cost
                updates["labor_hours"] = labor_cost / line.labor_rate if line.labor_rate > 0 else line.labor_hours
                if line.costing_mode == CostingMode.AREA:
                    updates["labor_unit_rate"] = clamped
                logger.info(
                    "guardrail_clamped",
                    scope_item_id=line.scope_item_id,
                    field="labor_cost",
                    before=line.labor_cost,
                    after=labor_cost,
                )

        if not updates:
            return line
        return finalize_line(line, cfg.markup_rate, self.tax_rate, adjustments=adjustments, **updates)

    def _apply_global_cap(
        self,
        result: GuardrailResult,
        prior_by_id: Dict[str, EstimateLine],
        repriced_ids: set,
    ) -> None:
        if not repriced_ids:
            return
        prior_total = sum(prior_by_id[sid].material_cost for sid in repriced_ids)
        new_total = sum(line.material_cost for line in result.lines if line.scope_item_id in repriced_ids)
        cap = prior_total * self.config.global_material_cap_multiplier
        if prior_total <= 0 or new_total <= cap:
            return

        factor = cap / new_total
        scaled = []
        for line in result.lines:
            if line.scope_item_id not in repriced_ids:
                scaled.append(line)
                continue
            scaled.append(finalize_line(
                line,
                self.config.markup_rate,
                self.tax_rate,
                material_cost=line.material_cost * factor,
                material_unit_cost=line.material_unit_cost * factor,
                adjustments=[*line.adjustments, "global_material_cap"],
            ))
        result.lines = scaled
        result.global_cap_applied = True
        result.warnings.append(
            f"Material costs on repriced lines were scaled from ${new_total:,.2f} to ${cap:,.2f} "
            f"({self.config.global_material_cap_multiplier:g}x the previous draft)."
        )
        logger.warning(
            "global_cap_applied",
            prior_total=round(prior_total, 2),
            new_total=round(new_total, 2),
            cap=round(cap, 2),
            factor=round(factor, 4),
        )
