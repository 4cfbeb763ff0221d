"""Pydantic schemas for data validation.

This package contains the question graph snapshot, answer payloads and
values, response/completion outputs, and survey authoring definitions.
"""

from tracer_survey.schemas.graph import (
    BranchRule,
    GraphCode,
    GraphOption,
    GraphQuestion,
    QuestionGraph,
    QuestionKind,
)
from tracer_survey.schemas.answer import (
    AnswerPayload,
    AnswerValue,
    DraftRequest,
    MultipleChoiceAnswer,
    SingleChoiceAnswer,
    SubmitRequest,
    TextAnswer,
)
from tracer_survey.schemas.response import (
    AnswerSet,
    Completion,
    OptionSelection,
    QuestionAnswerView,
    ResponseDetail,
    ResponseList,
    ResponseListItem,
    ResponseOut,
)
from tracer_survey.schemas.survey import (
    BranchDefinition,
    BuilderPayload,
    BuilderResult,
    CodeQuestionCreate,
    OptionDefinition,
    QuestionDefinition,
    QuestionUpdate,
    ReorderRequest,
    SurveyDefinition,
)

__all__ = [
    "BranchRule",
    "GraphCode",
    "GraphOption",
    "GraphQuestion",
    "QuestionGraph",
    "QuestionKind",
    "AnswerPayload",
    "AnswerValue",
    "DraftRequest",
    "MultipleChoiceAnswer",
    "SingleChoiceAnswer",
    "SubmitRequest",
    "TextAnswer",
    "AnswerSet",
    "Completion",
    "OptionSelection",
    "QuestionAnswerView",
    "ResponseDetail",
    "ResponseList",
    "ResponseListItem",
    "ResponseOut",
    "BranchDefinition",
    "BuilderPayload",
    "BuilderResult",
    "CodeQuestionCreate",
    "OptionDefinition",
    "QuestionDefinition",
    "QuestionUpdate",
    "ReorderRequest",
    "SurveyDefinition",
]
