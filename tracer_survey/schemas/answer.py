"""Pydantic schemas for answers.

Answers travel in two shapes:

- AnswerPayload: what a client sends per question
  (``{questionId, answerText?, answerOptionIds?}``)
- AnswerValue: the validated, type-specific union used everywhere else
  (TextAnswer | SingleChoiceAnswer | MultipleChoiceAnswer)
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TextAnswer(BaseModel):
    """Free-text answer to an ESSAY or LONG_TEXT question."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    text: str

    @property
    def is_answered(self) -> bool:
        return bool(self.text.strip())

    @property
    def option_ids(self) -> tuple[str, ...]:
        return ()


class SingleChoiceAnswer(BaseModel):
    """One selected option, with optional elaboration for an "other" option."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["single"] = "single"
    option_id: str
    other_text: Optional[str] = None

    @property
    def is_answered(self) -> bool:
        return True

    @property
    def option_ids(self) -> tuple[str, ...]:
        return (self.option_id,)


class MultipleChoiceAnswer(BaseModel):
    """Set of selected options of a MULTIPLE_CHOICE question."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["multi"] = "multi"
    option_ids: tuple[str, ...] = ()
    other_text: Optional[str] = None

    @field_validator("option_ids")
    @classmethod
    def dedupe_options(cls, v):
        """Keep first occurrence of each option, preserving order."""
        return tuple(dict.fromkeys(v))

    @property
    def is_answered(self) -> bool:
        return len(self.option_ids) > 0


AnswerValue = Annotated[
    Union[TextAnswer, SingleChoiceAnswer, MultipleChoiceAnswer],
    Field(discriminator="kind"),
]


class AnswerPayload(BaseModel):
    """Answer to one question as submitted by a client.

    Attributes:
        question_id: Question being answered
        answer_text: Free text (text questions, or elaboration of an "other" option)
        answer_option_ids: Selected option ids (one for single-choice questions)
    """
    model_config = ConfigDict(populate_by_name=True)

    question_id: str = Field(..., min_length=1, alias="questionId")
    answer_text: Optional[str] = Field(None, alias="answerText")
    answer_option_ids: Optional[list[str]] = Field(None, alias="answerOptionIds")

    @property
    def is_empty(self) -> bool:
        """Whether the payload carries neither text nor options."""
        has_text = self.answer_text is not None and self.answer_text.strip() != ""
        has_options = bool(self.answer_option_ids)
        return not has_text and not has_options


class DraftRequest(BaseModel):
    """Body of a save-draft request. Answers may be partial or empty."""
    answers: list[AnswerPayload] = Field(default_factory=list)

    @field_validator("answers", mode="before")
    @classmethod
    def none_is_empty(cls, v):
        return [] if v is None else v


class SubmitRequest(BaseModel):
    """Body of a submit request. Answers are applied before validation."""
    answers: list[AnswerPayload] = Field(default_factory=list)

    @field_validator("answers", mode="before")
    @classmethod
    def none_is_empty(cls, v):
        return [] if v is None else v
