"""Unit tests for answer validation service.

Tests conversion of client payloads to typed answers for every question type.
"""

import pytest

from tracer_survey.schemas.answer import (
    AnswerPayload,
    MultipleChoiceAnswer,
    SingleChoiceAnswer,
    TextAnswer,
)
from tracer_survey.services.errors import InvalidAnswerError
from tracer_survey.services.validation import AnswerValidator


def _payload(question_id, text=None, options=None):
    return AnswerPayload(questionId=question_id, answerText=text, answerOptionIds=options)


class TestAnswerShape:
    """Tests for AnswerValidator.answer_shape."""

    def test_text_question(self, name_graph):
        assert AnswerValidator.answer_shape(name_graph, name_graph.question("name")) == "text"

    def test_single_choice_question(self, employment_graph):
        assert AnswerValidator.answer_shape(employment_graph, employment_graph.question("q1")) == "single"

    def test_multiple_choice_question(self, multi_graph):
        assert AnswerValidator.answer_shape(multi_graph, multi_graph.question("channels")) == "multi"

    def test_matrix_child_is_single(self, matrix_graph):
        assert AnswerValidator.answer_shape(matrix_graph, matrix_graph.question("c1")) == "single"


class TestTextAnswers:
    """Tests for ESSAY and LONG_TEXT payloads."""

    def test_text_is_kept(self, name_graph):
        value = AnswerValidator.to_value(name_graph, _payload("name", text="Ana"))
        assert value == TextAnswer(text="Ana")

    def test_empty_payload_is_unanswered(self, name_graph):
        assert AnswerValidator.to_value(name_graph, _payload("name", text="  ")) is None
        assert AnswerValidator.to_value(name_graph, _payload("name")) is None

    def test_options_rejected(self, name_graph):
        with pytest.raises(InvalidAnswerError, match="do not take options"):
            AnswerValidator.to_value(name_graph, _payload("name", options=["x"]))


class TestSingleChoiceAnswers:
    """Tests for SINGLE_CHOICE, COMBO_BOX and matrix child payloads."""

    def test_one_option(self, employment_graph):
        value = AnswerValidator.to_value(employment_graph, _payload("q1", options=["yes"]))
        assert value == SingleChoiceAnswer(option_id="yes")

    def test_repeated_option_counts_once(self, employment_graph):
        value = AnswerValidator.to_value(employment_graph, _payload("q1", options=["yes", "yes"]))
        assert value.option_id == "yes"

    def test_two_options_rejected(self, employment_graph):
        with pytest.raises(InvalidAnswerError, match="only one option"):
            AnswerValidator.to_value(employment_graph, _payload("q1", options=["yes", "no"]))

    def test_text_without_option_rejected(self, employment_graph):
        with pytest.raises(InvalidAnswerError, match="must be selected"):
            AnswerValidator.to_value(employment_graph, _payload("q1", text="yes"))

    def test_foreign_option_rejected(self, employment_graph):
        with pytest.raises(InvalidAnswerError) as exc_info:
            AnswerValidator.to_value(employment_graph, _payload("q1", options=["nope"]))
        assert exc_info.value.details["question_id"] == "q1"

    def test_text_dropped_when_option_takes_no_text(self, employment_graph):
        value = AnswerValidator.to_value(employment_graph, _payload("q1", text="extra", options=["no"]))
        assert value.other_text is None

    def test_matrix_child_uses_parent_options(self, matrix_graph):
        value = AnswerValidator.to_value(matrix_graph, _payload("c1", options=["bad"]))
        assert value == SingleChoiceAnswer(option_id="bad")

    def test_matrix_container_rejected(self, matrix_graph):
        with pytest.raises(InvalidAnswerError, match="container"):
            AnswerValidator.to_value(matrix_graph, _payload("skills", options=["good"]))


class TestMultipleChoiceAnswers:
    """Tests for MULTIPLE_CHOICE payloads."""

    def test_options_kept_in_payload_order(self, multi_graph):
        value = AnswerValidator.to_value(multi_graph, _payload("channels", options=["c", "a"]))
        assert value == MultipleChoiceAnswer(option_ids=("c", "a"))

    def test_duplicates_removed(self, multi_graph):
        value = AnswerValidator.to_value(multi_graph, _payload("channels", options=["a", "a", "b"]))
        assert value.option_ids == ("a", "b")

    def test_other_text_kept_with_other_option(self, multi_graph):
        value = AnswerValidator.to_value(
            multi_graph, _payload("channels", text=" Job fair ", options=["a", "other"])
        )
        assert value.other_text == "Job fair"

    def test_unknown_option_rejected(self, multi_graph):
        with pytest.raises(InvalidAnswerError, match="do not belong"):
            AnswerValidator.to_value(multi_graph, _payload("channels", options=["a", "zzz"]))


class TestUnknownQuestion:
    """Tests for payloads naming questions outside the graph."""

    def test_unknown_question_rejected(self, name_graph):
        with pytest.raises(InvalidAnswerError, match="not part of this survey"):
            AnswerValidator.to_value(name_graph, _payload("other-survey-question", text="x"))
