"""Answer validation service.

This module checks a client answer payload against the question it answers
and converts it to the typed answer union stored by the answer repository.
"""

from typing import Optional

from tracer_survey.models.question import (
    QuestionType,
    SINGLE_OPTION_QUESTION_TYPES,
    TEXT_QUESTION_TYPES,
)
from tracer_survey.schemas.answer import (
    AnswerPayload,
    AnswerValue,
    MultipleChoiceAnswer,
    SingleChoiceAnswer,
    TextAnswer,
)
from tracer_survey.schemas.graph import GraphQuestion, QuestionGraph
from tracer_survey.services.errors import InvalidAnswerError
from tracer_survey.logging_config import get_logger

logger = get_logger(__name__)


class AnswerValidator:
    """Service for validating answer payloads against the question graph."""

    @staticmethod
    def answer_shape(graph: QuestionGraph, question: GraphQuestion) -> str:
        """Storage shape of a leaf question: "text", "single" or "multi".

        Matrix children are single-choice regardless of their declared type.
        """
        if question.parent_id is not None:
            parent = graph.question(question.parent_id)
            if parent is not None and parent.question_type == QuestionType.MATRIX_SINGLE_CHOICE:
                return "single"
        if question.question_type in TEXT_QUESTION_TYPES:
            return "text"
        if question.question_type in SINGLE_OPTION_QUESTION_TYPES:
            return "single"
        return "multi"

    @staticmethod
    def to_value(
        graph: QuestionGraph,
        payload: AnswerPayload,
    ) -> Optional[AnswerValue]:
        """Validate a payload and convert it to an answer value.

        Handles every question type:
        - ESSAY, LONG_TEXT: free text, no options
        - SINGLE_CHOICE, COMBO_BOX, matrix children: exactly one option
        - MULTIPLE_CHOICE: any number of distinct options

        Free text sent with a choice answer is kept only when a selected option
        accepts text ("Other: ___").

        Args:
            graph: Question graph of the survey
            payload: Client answer for one question

        Returns:
            Answer value, or None when the payload is empty (unanswered)

        Raises:
            InvalidAnswerError: If the payload does not fit the question

        Example:
            >>> payload = AnswerPayload(questionId="q1", answerOptionIds=["yes"])
            >>> AnswerValidator.to_value(graph, payload)
            SingleChoiceAnswer(kind='single', option_id='yes', other_text=None)
        """
        question = graph.question(payload.question_id)
        if question is None:
            raise InvalidAnswerError(payload.question_id, "question is not part of this survey")
        if not question.is_leaf:
            raise InvalidAnswerError(
                question.id, "container questions are answered through their children"
            )

        if payload.is_empty:
            return None

        shape = AnswerValidator.answer_shape(graph, question)
        if shape == "text":
            return AnswerValidator._to_text(question, payload)
        if shape == "single":
            return AnswerValidator._to_single(graph, question, payload)
        return AnswerValidator._to_multi(graph, question, payload)

    @staticmethod
    def _to_text(question: GraphQuestion, payload: AnswerPayload) -> TextAnswer:
        if payload.answer_option_ids:
            raise InvalidAnswerError(question.id, "text questions do not take options")
        return TextAnswer(text=payload.answer_text or "")

    @staticmethod
    def _check_options(
        graph: QuestionGraph,
        question: GraphQuestion,
        option_ids: list[str],
    ) -> list:
        allowed = {option.id: option for option in graph.options_for(question.id)}
        unknown = [option_id for option_id in option_ids if option_id not in allowed]
        if unknown:
            raise InvalidAnswerError(
                question.id, f"options do not belong to the question: {unknown}"
            )
        return [allowed[option_id] for option_id in option_ids]

    @staticmethod
    def _other_text(question: GraphQuestion, options: list, payload: AnswerPayload) -> Optional[str]:
        text = (payload.answer_text or "").strip()
        if not text:
            return None
        if not any(option.accepts_text for option in options):
            logger.debug(f"Dropping free text for question {question.id}: no option accepts text")
            return None
        return text

    @staticmethod
    def _to_single(
        graph: QuestionGraph,
        question: GraphQuestion,
        payload: AnswerPayload,
    ) -> SingleChoiceAnswer:
        option_ids = list(dict.fromkeys(payload.answer_option_ids or []))
        if not option_ids:
            raise InvalidAnswerError(question.id, "an option must be selected")
        if len(option_ids) > 1:
            raise InvalidAnswerError(question.id, "only one option may be selected")

        options = AnswerValidator._check_options(graph, question, option_ids)
        return SingleChoiceAnswer(
            option_id=options[0].id,
            other_text=AnswerValidator._other_text(question, options, payload),
        )

    @staticmethod
    def _to_multi(
        graph: QuestionGraph,
        question: GraphQuestion,
        payload: AnswerPayload,
    ) -> MultipleChoiceAnswer:
        option_ids = payload.answer_option_ids or []
        if not option_ids:
            raise InvalidAnswerError(question.id, "at least one option must be selected")

        options = AnswerValidator._check_options(graph, question, option_ids)
        return MultipleChoiceAnswer(
            option_ids=tuple(option.id for option in options),
            other_text=AnswerValidator._other_text(question, options, payload),
        )
