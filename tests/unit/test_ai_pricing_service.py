"""Unit tests for AiPricingService."""

import json

import pytest
from unittest.mock import MagicMock

from config.errors import ErrorCode
from models.pricing_signal import PricingSource, UserRate
from models.refinement_question import answered_question_ids, parse_questions
from models.scope_item import ScopeItem
from pricing.jurisdictions import get_jurisdiction
from services.ai_pricing_service import AiPricingService, strip_code_fence
from tests.fixtures.sample_scope_data import (
    AI_RESPONSE,
    BATHROOM_TILE_ITEM,
    FLOORING_ITEM,
    PAINT_ITEM,
    PROJECT_DOC,
    QUESTIONS_RESPONSE,
)


@pytest.fixture
def scope_items():
    return [ScopeItem.model_validate(doc) for doc in (BATHROOM_TILE_ITEM, PAINT_ITEM, FLOORING_ITEM)]


class TestStripCodeFence:

    def test_json_fence(self):
        assert strip_code_fence('```json\n{"lines": []}\n```') == '{"lines": []}'

    def test_plain_content(self):
        assert strip_code_fence('  {"a": 1} ') == '{"a": 1}'


class TestParseLines:

    def test_parses_and_type_checks(self):
        results = AiPricingService.parse_lines(AI_RESPONSE, ["scope-tile", "scope-paint", "scope-floor"])

        tile = results["scope-tile"]
        assert tile.is_ok
        assert tile.value.quantity == 110
        assert tile.value.material_unit_cost == 5.5

        paint = results["scope-paint"]
        assert paint.is_ok
        assert paint.value.quantity is None
        assert paint.value.labor_hours is None
        assert paint.value.labor_rate == 50
        assert paint.provenance == PricingSource.USER

        assert not results["scope-floor"].is_ok
        assert not results["scope-floor"].is_err
        assert "scope-unknown" not in results

    def test_payload_without_lines(self):
        results = AiPricingService.parse_lines({"estimate": 12}, ["scope-tile"])
        assert results["scope-tile"].is_err

    def test_bare_list_payload(self):
        results = AiPricingService.parse_lines([{"scopeItemId": "scope-tile", "quantity": 3}], ["scope-tile"])
        assert results["scope-tile"].value.quantity == 3


class TestSuggestLines:

    @pytest.mark.asyncio
    async def test_suggest_lines_success(self, mock_ai_pricing_service, mock_chat_openai, scope_items):
        mock_chat_openai.ainvoke.return_value = MagicMock(
            content=f"```json\n{json.dumps(AI_RESPONSE)}\n```",
            response_metadata={"token_usage": {"total_tokens": 250}},
        )

        results = await mock_ai_pricing_service.suggest_lines(
            scope_items, "medium", get_jurisdiction("ON"), [], PROJECT_DOC
        )

        assert set(results) == {"scope-tile", "scope-paint", "scope-floor"}
        assert results["scope-tile"].is_ok
        assert mock_ai_pricing_service.total_tokens_used == 250
        mock_chat_openai.ainvoke.assert_called_once()

    @pytest.mark.asyncio
    async def test_prompt_carries_scope_and_province(self, mock_ai_pricing_service, mock_chat_openai, scope_items):
        await mock_ai_pricing_service.suggest_lines(scope_items, "high", get_jurisdiction("BC"))

        messages = mock_chat_openai.ainvoke.call_args[0][0]
        payload = json.loads(messages[1].content)
        assert payload["pricePoint"] == "high"
        assert payload["project"]["province"] == "BC"
        assert [item["scopeItemId"] for item in payload["scopeItems"]] == ["scope-tile", "scope-paint", "scope-floor"]

    @pytest.mark.asyncio
    async def test_rate_limit_degrades_to_errors(self, mock_ai_pricing_service, mock_chat_openai, scope_items):
        mock_chat_openai.ainvoke.side_effect = Exception("rate_limit_exceeded")

        results = await mock_ai_pricing_service.suggest_lines(scope_items, "medium", get_jurisdiction("ON"))

        assert all(result.is_err for result in results.values())
        assert results["scope-tile"].error.code == ErrorCode.LLM_RATE_LIMIT
        assert results["scope-tile"].error.source == "ai"

    @pytest.mark.asyncio
    async def test_invalid_json_degrades(self, mock_ai_pricing_service, mock_chat_openai, scope_items):
        mock_chat_openai.ainvoke.return_value = MagicMock(content="Sure! Here are your prices.", response_metadata={})

        results = await mock_ai_pricing_service.suggest_lines(scope_items, "medium", get_jurisdiction("ON"))

        assert results["scope-paint"].is_err
        assert results["scope-paint"].error.code == ErrorCode.LLM_ERROR

    @pytest.mark.asyncio
    async def test_empty_scope(self, mock_ai_pricing_service, mock_chat_openai):
        assert await mock_ai_pricing_service.suggest_lines([], "medium", get_jurisdiction("ON")) == {}
        mock_chat_openai.ainvoke.assert_not_called()


class TestParseQuestions:

    def test_keeps_valid_questions(self):
        questions = parse_questions(QUESTIONS_RESPONSE)

        assert [q.id for q in questions] == ["tile_finish", "material_budget", "subfloor_condition"]
        finish, budget, subfloor = questions
        assert [option.id for option in finish.options] == ["porcelain", "ceramic"]
        assert finish.options[1].emoji is None
        assert budget.type == "text"
        assert budget.placeholder == "e.g. under $8/sqft"
        # a single option is not a choice
        assert subfloor.options is None
        assert subfloor.type == "multiple_choice"

    def test_drops_answered_questions(self):
        questions = parse_questions(QUESTIONS_RESPONSE, answered={"tile_finish"})
        assert [q.id for q in questions] == ["material_budget", "subfloor_condition"]

    def test_at_most_six(self):
        payload = [{"id": f"q{i}", "question": f"Question {i}?"} for i in range(9)]
        assert len(parse_questions(payload)) == 6

    def test_non_list_payload(self):
        assert parse_questions({"questions": "none"}) == []

    def test_answered_ids_from_answer_strings(self):
        answers = ["tile_finish: porcelain", "material_budget:  ", "Keep it simple"]
        assert answered_question_ids(answers) == {"tile_finish"}

    def test_response_dict_omits_empty_fields(self):
        question = parse_questions(QUESTIONS_RESPONSE)[1]
        assert question.to_response_dict() == {
            "id": "material_budget",
            "question": "Any cap on material cost per sq ft?",
            "type": "text",
            "placeholder": "e.g. under $8/sqft",
        }


class TestSuggestQuestions:

    @pytest.mark.asyncio
    async def test_fenced_response_parsed(self, mock_ai_pricing_service, mock_chat_openai, scope_items):
        mock_chat_openai.ainvoke.return_value = MagicMock(
            content=f"```json\n{json.dumps(QUESTIONS_RESPONSE)}\n```",
            response_metadata={"token_usage": {"total_tokens": 120}},
        )

        questions = await mock_ai_pricing_service.suggest_questions(
            scope_items, [], ["tile_finish: porcelain"], PROJECT_DOC
        )

        assert [q.id for q in questions] == ["material_budget", "subfloor_condition"]
        assert mock_ai_pricing_service.total_tokens_used == 120

    @pytest.mark.asyncio
    async def test_prompt_carries_answers_and_saved_rates(self, mock_ai_pricing_service, mock_chat_openai, scope_items):
        rates = [UserRate(key="flooring_sqft", rate=4.0)]

        await mock_ai_pricing_service.suggest_questions(
            scope_items, rates, ["tile_finish: porcelain"], PROJECT_DOC, "Mid-range finishes"
        )

        system, human = mock_chat_openai.ainvoke.call_args[0][0]
        assert "refinement wizard" in system.content
        payload = json.loads(human.content)
        assert payload["answered"] == ["tile_finish: porcelain"]
        assert payload["savedRates"] == [{"key": "flooring_sqft", "rate": 4.0, "unit": "sqft"}]
        assert payload["estimatePrompt"] == "Mid-range finishes"
        assert len(payload["scopeItems"]) == 3

    @pytest.mark.asyncio
    async def test_llm_failure_returns_no_questions(self, mock_ai_pricing_service, mock_chat_openai, scope_items):
        mock_chat_openai.ainvoke.side_effect = Exception("rate_limit_exceeded")
        assert await mock_ai_pricing_service.suggest_questions(scope_items) == []

    @pytest.mark.asyncio
    async def test_invalid_json_returns_no_questions(self, mock_ai_pricing_service, mock_chat_openai, scope_items):
        mock_chat_openai.ainvoke.return_value = MagicMock(content="1. What tile?", response_metadata={})
        assert await mock_ai_pricing_service.suggest_questions(scope_items) == []

    @pytest.mark.asyncio
    async def test_empty_scope(self, mock_ai_pricing_service, mock_chat_openai):
        assert await mock_ai_pricing_service.suggest_questions([]) == []
        mock_chat_openai.ainvoke.assert_not_called()
