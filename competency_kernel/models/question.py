"""Question drafts: one variant per question kind, tagged by `type`."""

from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class TrueFalseAnswer(str, Enum):
    TRUE = "true"
    FALSE = "false"


class QuestionOption(BaseModel):
    """One answer option of a multiple choice question."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    text: str = ""
    is_correct: bool = False
    order_index: int = 1


class QuestionBase(BaseModel):
    """Fields every question kind carries. Accepts camelCase API payloads."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: Optional[str] = None
    text: str = ""
    competency_id: Optional[str] = None
    competency_level_id: Optional[str] = None
    points: int = 1
    explanation: Optional[str] = ""
    is_active: bool = True


class MultipleChoiceQuestion(QuestionBase):
    type: Literal["MULTIPLE_CHOICE"] = "MULTIPLE_CHOICE"
    options: List[QuestionOption] = [
        QuestionOption(order_index=1),
        QuestionOption(order_index=2),
    ]


class TrueFalseQuestion(QuestionBase):
    type: Literal["TRUE_FALSE"] = "TRUE_FALSE"
    correct_answer: Optional[TrueFalseAnswer] = None

    @field_validator("correct_answer", mode="before")
    @classmethod
    def _blank_is_unset(cls, value):
        if isinstance(value, str):
            value = value.strip().lower()
            return value or None
        if isinstance(value, bool):
            return "true" if value else "false"
        return value


class ShortAnswerQuestion(QuestionBase):
    type: Literal["SHORT_ANSWER"] = "SHORT_ANSWER"


class EssayQuestion(QuestionBase):
    type: Literal["ESSAY"] = "ESSAY"


Question = Annotated[
    Union[MultipleChoiceQuestion, TrueFalseQuestion, ShortAnswerQuestion, EssayQuestion],
    Field(discriminator="type"),
]
