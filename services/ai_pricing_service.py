"""AI line pricing service.

Asks the LLM for per-line quantity, labor and material suggestions, and for
the refinement questions shown before a regeneration. Every response is
untrusted: it is parsed defensively and every failure mode (transport, rate
limit, bad JSON, wrong types) degrades to SignalResult errors for the
affected lines, or to no questions, instead of failing the request.
"""

import json
from typing import Any, Dict, List, Optional

import structlog
from langchain_openai import ChatOpenAI
from langchain_core.messages import HumanMessage, SystemMessage

from config.settings import settings
from config.errors import ErrorCode, PricingError, SignalError
from models.pricing_signal import AiLineSuggestion, SignalResult, UserRate
from models.refinement_question import RefinementQuestion, answered_question_ids, parse_questions
from models.scope_item import ScopeItem
from pricing.jurisdictions import Jurisdiction

logger = structlog.get_logger()

SIGNAL_SOURCE = "ai"

SYSTEM_PROMPT = """You are a senior Canadian renovation estimator.
Price each scope item for a contractor. For every item return:
- scopeItemId: the id you were given
- quantity, unit: keep the given values unless they are clearly wrong
- laborHours, laborRate: total hours for the line and an hourly rate in CAD
- materialUnitCost: material cost per unit in CAD, before tax and markup
- materialName: the specific product assumed
- pricingSource: "user" when you used one of the contractor's saved rates, else "default"
- notes: one short sentence

Respond as {"lines": [...]} with one entry per scope item."""

QUESTIONS_PROMPT = """You write a short estimate refinement wizard for contractors.
Given the project and scope, return 4-6 concise questions that improve the estimate.
Prioritize questions affecting quantity, material cost, labor intensity and overlapping work.
Do not ask for labor or material rates the contractor already saved.
Do not repeat questions that were already answered; ask for new useful details.

Respond as {"questions": [...]} where each question is:
{"id": "snake_case_id", "question": "...", "emoji": "one emoji",
 "type": "multiple_choice" | "text",
 "options": [{"id": "option_id", "label": "...", "emoji": "one emoji"}],
 "placeholder": "..."}"""


def strip_code_fence(content: str) -> str:
    """Remove a markdown code fence around a JSON payload."""
    content = content.strip()
    if content.startswith("```json"):
        content = content[7:]
    if content.startswith("```"):
        content = content[3:]
    if content.endswith("```"):
        content = content[:-3]
    return content.strip()


class AiPricingService:
    """LLM-backed per-line pricing suggestions."""

    def __init__(
        self,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        api_key: Optional[str] = None
    ):
        self.model = model or settings.llm_model
        self.temperature = temperature if temperature is not None else settings.llm_temperature
        self.api_key = api_key or settings.openai_api_key
        self._client: Optional[ChatOpenAI] = None
        self._total_tokens_used = 0

    @property
    def client(self) -> ChatOpenAI:
        """Get LangChain ChatOpenAI client (lazy initialization)."""
        if self._client is None:
            self._client = ChatOpenAI(
                model=self.model,
                temperature=self.temperature,
                api_key=self.api_key
            )
        return self._client

    @property
    def total_tokens_used(self) -> int:
        return self._total_tokens_used

    def build_prompt(
        self,
        scope_items: List[ScopeItem],
        price_point: str,
        jurisdiction: Jurisdiction,
        user_rates: List[UserRate],
        project: Optional[Dict[str, Any]] = None,
    ) -> str:
        project = project or {}
        payload = {
            "project": {
                "province": jurisdiction.code,
                "address": project.get("address"),
                "sqft": project.get("sqft"),
                "description": project.get("jobPrompt"),
            },
            "pricePoint": price_point,
            "savedRates": [{"key": r.key, "rate": r.rate, "unit": r.unit} for r in user_rates],
            "scopeItems": [
                {
                    "scopeItemId": item.id,
                    "segment": item.segment,
                    "task": item.task,
                    "material": item.material,
                    "quantity": item.quantity,
                    "unit": item.unit,
                }
                for item in scope_items
            ],
        }
        return json.dumps(payload, ensure_ascii=False)

    async def _generate_json(self, user_message: str, system_prompt: str = SYSTEM_PROMPT) -> Any:
        messages = [
            SystemMessage(content=f"{system_prompt}\n\nIMPORTANT: You MUST respond with valid JSON only."),
            HumanMessage(content=user_message),
        ]
        try:
            response = await self.client.ainvoke(messages)
        except Exception as e:
            error_msg = str(e)
            if "rate_limit" in error_msg.lower():
                code = ErrorCode.LLM_RATE_LIMIT
            elif "context_length" in error_msg.lower() or "maximum context" in error_msg.lower():
                code = ErrorCode.LLM_CONTEXT_TOO_LONG
            else:
                code = ErrorCode.LLM_ERROR
            raise PricingError(code=code, message=f"LLM generation failed: {error_msg}")

        if hasattr(response, "response_metadata"):
            usage = (response.response_metadata or {}).get("token_usage", {})
            self._total_tokens_used += usage.get("total_tokens", 0)

        try:
            return json.loads(strip_code_fence(str(response.content)))
        except json.JSONDecodeError as e:
            raise PricingError(
                code=ErrorCode.LLM_ERROR,
                message="LLM did not return valid JSON",
                details={"parse_error": str(e), "raw_content": str(response.content)[:500]}
            )

    @staticmethod
    def parse_lines(payload: Any, scope_item_ids: List[str]) -> Dict[str, SignalResult]:
        """Map a raw AI payload to per-item SignalResults.

        Items the AI skipped are Missing; malformed entries are Err.
        """
        results: Dict[str, SignalResult] = {item_id: SignalResult.missing() for item_id in scope_item_ids}
        raw_lines = payload.get("lines") if isinstance(payload, dict) else payload
        if not isinstance(raw_lines, list):
            error = SignalError(SIGNAL_SOURCE, "AI response has no lines array")
            return {item_id: SignalResult.err(error) for item_id in scope_item_ids}

        for raw in raw_lines:
            suggestion = AiLineSuggestion.from_raw(raw)
            if suggestion is None:
                continue
            if suggestion.scope_item_id not in results:
                logger.debug("ai_line_unknown_item", scope_item_id=suggestion.scope_item_id)
                continue
            results[suggestion.scope_item_id] = SignalResult.ok(suggestion, suggestion.pricing_source)
        return results

    async def suggest_lines(
        self,
        scope_items: List[ScopeItem],
        price_point: str,
        jurisdiction: Jurisdiction,
        user_rates: Optional[List[UserRate]] = None,
        project: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, SignalResult]:
        """Per scope item AI suggestions; never raises."""
        item_ids = [item.id for item in scope_items]
        if not scope_items:
            return {}

        try:
            prompt = self.build_prompt(scope_items, price_point, jurisdiction, user_rates or [], project)
            payload = await self._generate_json(prompt)
        except PricingError as e:
            logger.warning("signal_degraded", source=SIGNAL_SOURCE, code=e.code, error=e.message)
            error = SignalError(SIGNAL_SOURCE, e.message, code=e.code, details=e.details)
            return {item_id: SignalResult.err(error) for item_id in item_ids}
        except Exception as e:
            logger.warning("signal_degraded", source=SIGNAL_SOURCE, error=str(e))
            error = SignalError(SIGNAL_SOURCE, str(e))
            return {item_id: SignalResult.err(error) for item_id in item_ids}

        results = self.parse_lines(payload, item_ids)
        logger.info(
            "ai_lines_suggested",
            model=self.model,
            requested=len(item_ids),
            parsed=sum(1 for r in results.values() if r.is_ok),
            tokens_used=self._total_tokens_used,
        )
        return results

    def build_questions_prompt(
        self,
        scope_items: List[ScopeItem],
        user_rates: List[UserRate],
        answers: List[str],
        project: Optional[Dict[str, Any]] = None,
        estimate_prompt: Optional[str] = None,
    ) -> str:
        project = project or {}
        payload = {
            "project": {
                "address": project.get("address"),
                "province": project.get("province"),
                "sqft": project.get("sqft"),
                "description": project.get("jobPrompt"),
                "notes": project.get("notes"),
            },
            "savedRates": [{"key": r.key, "rate": r.rate, "unit": r.unit} for r in user_rates],
            "estimatePrompt": estimate_prompt,
            "answered": answers,
            "scopeItems": [
                {
                    "segment": item.segment,
                    "task": item.task,
                    "material": item.material,
                    "quantity": item.quantity,
                    "unit": item.unit,
                    "laborHours": item.labor_hours_hint or 0,
                }
                for item in scope_items
            ],
        }
        return json.dumps(payload, ensure_ascii=False)

    async def suggest_questions(
        self,
        scope_items: List[ScopeItem],
        user_rates: Optional[List[UserRate]] = None,
        answers: Optional[List[str]] = None,
        project: Optional[Dict[str, Any]] = None,
        estimate_prompt: Optional[str] = None,
    ) -> List[RefinementQuestion]:
        """Next-pass refinement questions, skipping answered ones; never raises."""
        answers = answers or []
        if not scope_items:
            return []

        try:
            prompt = self.build_questions_prompt(scope_items, user_rates or [], answers, project, estimate_prompt)
            payload = await self._generate_json(prompt, system_prompt=QUESTIONS_PROMPT)
        except PricingError as e:
            logger.warning("questions_unavailable", code=e.code, error=e.message)
            return []
        except Exception as e:
            logger.warning("questions_unavailable", error=str(e))
            return []

        questions = parse_questions(payload, answered_question_ids(answers))
        logger.info(
            "refinement_questions_suggested",
            model=self.model,
            count=len(questions),
            answered=len(answers),
            tokens_used=self._total_tokens_used,
        )
        return questions
