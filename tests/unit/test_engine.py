"""Unit tests for the pricing engine pipeline and estimate assembly."""

from unittest.mock import patch

import pytest

from config.errors import ErrorCode, SignalError
from models.pricing_signal import (
    AiLineSuggestion,
    MaterialEvidence,
    PricingOverride,
    SignalBundle,
    SignalResult,
)
from models.scope_item import ScopeItem
from pricing.assembler import assemble_estimate, source_usage, sum_totals
from pricing.engine import (
    ESTIMATOR_MODE_AI,
    ESTIMATOR_MODE_FALLBACK,
    REPRICE_FAILED_WARNING,
    PricingRequest,
)
from pricing.guardrails import Guardrails
from pricing.jurisdictions import get_jurisdiction
from tests.fixtures.sample_scope_data import (
    AI_RESPONSE,
    BATHROOM_RENOVATION_ITEM,
    BATHROOM_TILE_ITEM,
    PLACEHOLDER_ITEM,
    PORCELAIN_FLOOR_TILE_ITEM,
    PROJECT_ID,
    SCOPE_ITEMS,
)


def items(*docs):
    return [ScopeItem.model_validate(doc) for doc in docs]


def request_for(*docs, **kwargs):
    return PricingRequest(project_id=PROJECT_ID, scope_items=items(*docs), **kwargs)


class TestEngineRun:

    def test_tiling_scenario_totals(self, engine):
        estimate = engine.run(request_for(BATHROOM_TILE_ITEM, jurisdiction="ON"))

        assert len(estimate.lines) == 1
        assert estimate.grand_total == pytest.approx(1311.84525)
        assert estimate.total_labor == pytest.approx(600.0)
        assert estimate.total_material == pytest.approx(409.5)
        assert estimate.status == "draft"
        assert estimate.assumptions["estimatorMode"] == ESTIMATOR_MODE_FALLBACK
        assert estimate.assumptions["taxRate"] == 0.13
        assert estimate.assumptions["province"] == "ON"
        assert estimate.assumptions["markupPercent"] == pytest.approx(15.0)
        assert estimate.assumptions["repriced"] is False

    def test_porcelain_floor_tile_with_failed_ai(self, engine):
        failed = SignalResult.err(SignalError("ai", "LLM timed out", code=ErrorCode.LLM_ERROR))
        signals = SignalBundle(ai_lines={"scope-floor-tile": failed}, ai_error="LLM timed out")

        estimate = engine.run(request_for(
            PORCELAIN_FLOOR_TILE_ITEM, jurisdiction="ON", price_point="medium", signals=signals,
        ))
        line = estimate.lines[0]

        # "tile" outranks "floor" for the category, the flooring tier prices the material
        assert line.category == "tiling"
        assert line.labor_cost == pytest.approx(45 * 6.0)
        assert line.material_cost == pytest.approx(max(45 * 2.2 * 1.05, 45 * 1.75))
        assert line.markup == pytest.approx((270.0 + 103.95) * 0.15)
        assert line.pricing_source == "default"
        assert estimate.assumptions["estimatorMode"] == ESTIMATOR_MODE_FALLBACK

    def test_every_line_consistent(self, engine):
        estimate = engine.run(request_for(*SCOPE_ITEMS))

        assert len(estimate.lines) == len(SCOPE_ITEMS)
        for line in estimate.lines:
            assert line.total == pytest.approx(line.labor_cost + line.material_cost + line.markup + line.tax)
            assert line.markup == pytest.approx(line.subtotal * 0.15)
            assert line.tax == pytest.approx((line.subtotal + line.markup) * 0.13)
        assert estimate.grand_total == pytest.approx(sum(line.total for line in estimate.lines))

    def test_deterministic(self, engine):
        first = engine.run(request_for(*SCOPE_ITEMS))
        second = engine.run(request_for(*SCOPE_ITEMS))

        assert first.model_dump() == second.model_dump()

    def test_placeholder_dropped_with_warning(self, engine):
        estimate = engine.run(request_for(BATHROOM_TILE_ITEM, PLACEHOLDER_ITEM))

        assert [line.scope_item_id for line in estimate.lines] == ["scope-tile"]
        assert "Removed 1 line with no usable quantity or cost." in estimate.warnings
        assert estimate.assumptions["droppedLines"] == 1

    def test_bathroom_overlap_keeps_both_lines(self, engine):
        estimate = engine.run(request_for(BATHROOM_RENOVATION_ITEM, BATHROOM_TILE_ITEM))

        assert {line.scope_item_id for line in estimate.lines} == {"scope-bath-reno", "scope-tile"}
        assert 'Possible overlap in Bathroom: "Bathroom renovation" and "Tile installation".' in estimate.warnings
        assert any(w.startswith('Package "Bathroom renovation"') for w in estimate.warnings)

    def test_warnings_not_duplicated(self, engine):
        estimate = engine.run(request_for(*SCOPE_ITEMS))
        assert len(estimate.warnings) == len(set(estimate.warnings))

    def test_override_supremacy(self, engine):
        overrides = {"scope-tile": PricingOverride(scopeItemId="scope-tile", materialUnitCost=12.5)}

        estimate = engine.run(request_for(BATHROOM_TILE_ITEM, overrides=overrides))

        assert estimate.lines[0].material_unit_cost == 12.5
        assert estimate.assumptions["userPricedLines"] == 1

    def test_other_jurisdiction(self, engine):
        estimate = engine.run(request_for(BATHROOM_TILE_ITEM, jurisdiction="British Columbia"))
        line = estimate.lines[0]

        assert estimate.assumptions["province"] == "BC"
        assert line.material_unit_cost == pytest.approx(3.9 * 1.08)
        assert line.tax == pytest.approx((line.subtotal + line.markup) * 0.12)


class TestEngineSignals:

    def test_ai_primary_mode(self, engine):
        suggestion = AiLineSuggestion.from_raw(AI_RESPONSE["lines"][0])
        signals = SignalBundle(ai_lines={"scope-tile": SignalResult.ok(suggestion)})

        estimate = engine.run(request_for(BATHROOM_TILE_ITEM, signals=signals))

        assert estimate.assumptions["estimatorMode"] == ESTIMATOR_MODE_AI
        assert estimate.assumptions["aiLineCount"] == 1
        assert estimate.lines[0].quantity == 110

    def test_evidence_summary(self, engine):
        evidence = MaterialEvidence(query="porcelain tile", samples=[3.0, 4.0], p75=3.75)
        signals = SignalBundle(
            material_evidence={"scope-tile": SignalResult.ok(evidence)},
            searches_attempted=3,
            searches_failed=1,
        )

        estimate = engine.run(request_for(BATHROOM_TILE_ITEM, signals=signals))

        assert estimate.assumptions["evidence"] == {
            "searchesAttempted": 3,
            "searchesFailed": 1,
            "linesWithEvidence": 1,
            "samplesUsed": 2,
        }


class TestEngineReprice:

    @pytest.fixture
    def prior_lines(self, engine):
        baseline = engine.run(request_for(BATHROOM_TILE_ITEM))
        line = baseline.lines[0]
        return [line.model_copy(update={"material_unit_cost": 3.0, "material_cost": 300.0})]

    def test_user_cap_from_refinement_answers(self, engine, prior_lines):
        estimate = engine.run(request_for(
            BATHROOM_TILE_ITEM,
            prior_lines=prior_lines,
            refinement_answers=["Keep tile under $2 per sqft"],
        ))

        assert estimate.lines[0].material_unit_cost == pytest.approx(2.0)
        assert estimate.assumptions["userMaterialCap"] == 2.0
        assert estimate.assumptions["repriced"] is True
        assert estimate.assumptions["clampedAdjustments"] == 1

    def test_guardrail_failure_keeps_baseline(self, engine, prior_lines):
        with patch.object(Guardrails, "apply", side_effect=RuntimeError("boom")):
            estimate = engine.run(request_for(BATHROOM_TILE_ITEM, prior_lines=prior_lines))

        assert REPRICE_FAILED_WARNING in estimate.warnings
        assert estimate.assumptions["repriced"] is False
        assert estimate.lines[0].material_unit_cost == pytest.approx(4.095)


class TestAssembler:

    def test_totals_and_usage(self, fallback_pricer):
        lines = fallback_pricer.price_all(items(BATHROOM_TILE_ITEM, BATHROOM_RENOVATION_ITEM))

        totals = sum_totals(lines)
        usage = source_usage(lines)

        assert totals["grand_total"] == pytest.approx(sum(line.total for line in lines))
        assert usage["quantity"] == {"scope": 2}
        assert usage["labor_unit_rate"] == {"fallback": 1}

    def test_assumptions_record(self, fallback_pricer):
        lines = fallback_pricer.price_all(items(BATHROOM_TILE_ITEM))

        estimate = assemble_estimate(
            PROJECT_ID,
            lines,
            price_point="medium",
            jurisdiction=get_jurisdiction("ON"),
            warnings=["w1"],
            estimator_mode=ESTIMATOR_MODE_FALLBACK,
            extra_assumptions={"estimatePrompt": "Refresh bathroom"},
        )

        assert estimate.project_id == PROJECT_ID
        assert estimate.warnings == ["w1"]
        assert estimate.assumptions["lineCount"] == 1
        assert estimate.assumptions["taxName"] == "HST"
        assert estimate.assumptions["estimatePrompt"] == "Refresh bathroom"
        assert estimate.to_firestore_dict()["lineCount"] == 1
        assert "lines" not in estimate.to_firestore_dict()
