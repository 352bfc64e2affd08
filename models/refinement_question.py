"""Refinement wizard questions.

Before (re)generating, the client can ask for a short set of questions whose
answers sharpen the next estimate: quantities, finish levels, material
budgets. Questions come from the LLM and are parsed as untrusted JSON.
"""

from enum import Enum
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel, Field

MAX_QUESTIONS = 6
MAX_OPTIONS = 6


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TEXT = "text"


class QuestionOption(BaseModel):
    id: str = Field(..., min_length=1)
    label: str = Field(..., min_length=1)
    emoji: Optional[str] = None


class RefinementQuestion(BaseModel):
    """One wizard question; options only for multiple choice with 2+ choices."""

    id: str = Field(..., min_length=1)
    question: str = Field(..., min_length=1)
    emoji: Optional[str] = None
    type: QuestionType = QuestionType.MULTIPLE_CHOICE
    options: Optional[List[QuestionOption]] = None
    placeholder: Optional[str] = None

    class Config:
        use_enum_values = True

    @classmethod
    def from_raw(cls, raw: Any) -> Optional["RefinementQuestion"]:
        """Build a question from one LLM entry; None when id or text is missing."""
        if not isinstance(raw, dict):
            return None
        question_id = _text(raw.get("id"))
        question = _text(raw.get("question"))
        if not question_id or not question:
            return None

        options = []
        for option in raw.get("options") if isinstance(raw.get("options"), list) else []:
            if not isinstance(option, dict):
                continue
            option_id, label = _text(option.get("id")), _text(option.get("label"))
            if option_id and label:
                options.append(QuestionOption(id=option_id, label=label, emoji=_text(option.get("emoji")) or None))

        return cls(
            id=question_id,
            question=question,
            emoji=_text(raw.get("emoji")) or None,
            type=QuestionType.TEXT if raw.get("type") == "text" else QuestionType.MULTIPLE_CHOICE,
            options=options[:MAX_OPTIONS] if len(options) > 1 else None,
            placeholder=_text(raw.get("placeholder")) or None,
        )

    def to_response_dict(self) -> dict:
        return self.model_dump(exclude_none=True)


def _text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value).strip()


def answered_question_ids(answers: Iterable[str]) -> set:
    """Question ids already answered, from ``"<id>: <answer>"`` answer strings."""
    answered = set()
    for answer in answers:
        question_id, sep, value = (answer or "").partition(":")
        if sep and question_id.strip() and value.strip():
            answered.add(question_id.strip())
    return answered


def parse_questions(payload: Any, answered: Iterable[str] = ()) -> List[RefinementQuestion]:
    """Valid, unanswered questions from an LLM payload, at most six."""
    raw_questions = payload.get("questions") if isinstance(payload, dict) else payload
    if not isinstance(raw_questions, list):
        return []
    answered = set(answered)
    questions = []
    for raw in raw_questions:
        question = RefinementQuestion.from_raw(raw)
        if question is None or question.id in answered:
            continue
        questions.append(question)
    return questions[:MAX_QUESTIONS]
