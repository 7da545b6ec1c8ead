"""
Question drafts: parsing, per-kind validation and submission payloads.

Each question kind is its own model, so validation dispatches on the kind
and every kind is handled explicitly.
"""

from typing import Dict, List

from pydantic import TypeAdapter

from competency_kernel.models.question import (
    EssayQuestion,
    MultipleChoiceQuestion,
    Question,
    QuestionBase,
    ShortAnswerQuestion,
    TrueFalseQuestion,
)

MIN_TEXT_LENGTH = 10
MIN_OPTIONS = 2
MAX_OPTIONS = 6

_question_adapter = TypeAdapter(Question)


def parse_question(payload: dict) -> QuestionBase:
    """Build the right question variant from a payload tagged by `type`."""
    return _question_adapter.validate_python(payload)


def _option_errors(question: MultipleChoiceQuestion) -> Dict[str, str]:
    filled = [o for o in question.options if o.text.strip()]
    correct = [o for o in filled if o.is_correct]
    if len(question.options) > MAX_OPTIONS:
        return {"options": f"Multiple choice questions can have at most {MAX_OPTIONS} options"}
    if len(filled) < MIN_OPTIONS:
        return {"options": "Multiple choice questions need at least 2 options"}
    if not correct:
        return {"options": "At least one option must be marked as correct"}
    if len(correct) == len(filled):
        return {"options": "Not all options can be correct"}
    return {}


def validate_question(question: QuestionBase) -> Dict[str, str]:
    """Field name -> message for everything wrong with a draft. Empty when valid."""
    errors: Dict[str, str] = {}

    text = question.text.strip()
    if not text:
        errors["text"] = "Question text is required"
    elif len(text) < MIN_TEXT_LENGTH:
        errors["text"] = f"Question text must be at least {MIN_TEXT_LENGTH} characters"

    if not question.competency_id:
        errors["competency_id"] = "Competency is required"
    if not question.competency_level_id:
        errors["competency_level_id"] = "Competency level is required"
    if question.points < 1:
        errors["points"] = "Points must be at least 1"

    if isinstance(question, MultipleChoiceQuestion):
        errors.update(_option_errors(question))
    elif isinstance(question, TrueFalseQuestion):
        if question.correct_answer is None:
            errors["correct_answer"] = "Please select the correct answer (True or False)"
    elif isinstance(question, (ShortAnswerQuestion, EssayQuestion)):
        pass
    else:
        raise TypeError(f"Unsupported question kind: {type(question).__name__}")

    return errors


def question_payload(question: QuestionBase) -> dict:
    """The create/update body the competency API expects (camelCase)."""
    options: List[dict] = []
    correct_answer = None
    if isinstance(question, MultipleChoiceQuestion):
        options = [
            o.model_dump(by_alias=True)
            for o in question.options
            if o.text.strip()
        ]
    elif isinstance(question, TrueFalseQuestion):
        correct_answer = question.correct_answer.value if question.correct_answer else None

    return {
        "text": question.text.strip(),
        "type": question.type,
        "competencyId": question.competency_id,
        "competencyLevelId": question.competency_level_id,
        "points": question.points,
        "explanation": (question.explanation or "").strip() or None,
        "isActive": question.is_active,
        "correctAnswer": correct_answer,
        "options": options,
    }
