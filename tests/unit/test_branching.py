"""Unit tests for branching evaluation.

Tests visibility of conditional questions, rule chains, and containers.
"""

import pytest

from tracer_survey.models.question import QuestionType
from tracer_survey.schemas.answer import MultipleChoiceAnswer, SingleChoiceAnswer, TextAnswer
from tracer_survey.schemas.graph import (
    BranchRule,
    GraphCode,
    GraphOption,
    GraphQuestion,
    QuestionGraph,
)
from tracer_survey.services.branching import BranchingService


def _single(question_id, options, **kwargs):
    return GraphQuestion(
        id=question_id, code="A", text=question_id,
        question_type=QuestionType.SINGLE_CHOICE,
        options=tuple(GraphOption(id=o, text=o) for o in options),
        **kwargs,
    )


def _essay(question_id, **kwargs):
    return GraphQuestion(id=question_id, code="A", text=question_id,
                         question_type=QuestionType.ESSAY, **kwargs)


class TestRuleSatisfied:
    """Tests for BranchingService.rule_satisfied."""

    rule = BranchRule(trigger_id="q1", option_id="yes", target_id="q2")

    def test_selected_option_satisfies(self):
        answers = {"q1": SingleChoiceAnswer(option_id="yes")}
        assert BranchingService.rule_satisfied(self.rule, answers, {"q1"}) is True

    def test_other_option_does_not_satisfy(self):
        answers = {"q1": SingleChoiceAnswer(option_id="no")}
        assert BranchingService.rule_satisfied(self.rule, answers, {"q1"}) is False

    def test_unanswered_trigger_does_not_satisfy(self):
        assert BranchingService.rule_satisfied(self.rule, {}, {"q1"}) is False

    def test_hidden_trigger_does_not_satisfy(self):
        """A stale answer on a hidden trigger is ignored."""
        answers = {"q1": SingleChoiceAnswer(option_id="yes")}
        assert BranchingService.rule_satisfied(self.rule, answers, set()) is False

    def test_multiple_choice_containing_option_satisfies(self):
        answers = {"q1": MultipleChoiceAnswer(option_ids=("maybe", "yes"))}
        assert BranchingService.rule_satisfied(self.rule, answers, {"q1"}) is True

    def test_text_answer_never_satisfies(self):
        answers = {"q1": TextAnswer(text="yes")}
        assert BranchingService.rule_satisfied(self.rule, answers, {"q1"}) is False


class TestVisibleQuestions:
    """Tests for BranchingService.visible_questions."""

    def test_unconditional_questions_always_visible(self, name_graph):
        assert BranchingService.visible_questions(name_graph, {}) == {"name"}

    def test_conditional_hidden_without_answer(self, employment_graph):
        assert BranchingService.visible_questions(employment_graph, {}) == {"q1"}

    def test_conditional_shown_by_trigger_option(self, employment_graph):
        answers = {"q1": SingleChoiceAnswer(option_id="yes")}
        assert BranchingService.visible_questions(employment_graph, answers) == {"q1", "q2"}

    def test_conditional_hidden_by_other_option(self, employment_graph):
        answers = {"q1": SingleChoiceAnswer(option_id="no"), "q2": TextAnswer(text="Acme")}
        assert BranchingService.visible_questions(employment_graph, answers) == {"q1"}

    def test_rules_are_or_combined(self):
        graph = QuestionGraph(
            survey_id="s",
            codes=(GraphCode(code="A", questions=(
                _single("q1", ["a", "b", "c"], sort_order=1),
                _essay("q2", sort_order=2),
            )),),
            rules=(
                BranchRule(trigger_id="q1", option_id="a", target_id="q2"),
                BranchRule(trigger_id="q1", option_id="b", target_id="q2"),
            ),
        )

        for option, expected in (("a", True), ("b", True), ("c", False)):
            visible = BranchingService.visible_questions(
                graph, {"q1": SingleChoiceAnswer(option_id=option)}
            )
            assert ("q2" in visible) is expected

    def test_chained_rules_resolve_regardless_of_order(self):
        """q3 depends on q2 which depends on q1; rules are declared backwards."""
        graph = QuestionGraph(
            survey_id="s",
            codes=(GraphCode(code="A", questions=(
                _single("q1", ["yes1", "no1"], sort_order=1),
                _single("q2", ["yes2", "no2"], sort_order=2),
                _essay("q3", sort_order=3),
            )),),
            rules=(
                BranchRule(trigger_id="q2", option_id="yes2", target_id="q3"),
                BranchRule(trigger_id="q1", option_id="yes1", target_id="q2"),
            ),
        )

        answers = {
            "q1": SingleChoiceAnswer(option_id="yes1"),
            "q2": SingleChoiceAnswer(option_id="yes2"),
        }
        assert BranchingService.visible_questions(graph, answers) == {"q1", "q2", "q3"}

        # Hiding q2 also hides q3 even though q2's stale answer still says yes
        answers["q1"] = SingleChoiceAnswer(option_id="no1")
        assert BranchingService.visible_questions(graph, answers) == {"q1"}

    def test_container_children_follow_parent(self, matrix_graph):
        assert BranchingService.visible_questions(matrix_graph, {}) == {"skills", "c1", "c2"}

    def test_children_of_hidden_container_are_hidden(self):
        matrix = GraphQuestion(
            id="m", code="D", text="Matrix",
            question_type=QuestionType.MATRIX_SINGLE_CHOICE,
            options=(GraphOption(id="good", text="Good"),),
            children=(
                GraphQuestion(id="m1", code="D", parent_id="m", text="Row",
                              question_type=QuestionType.SINGLE_CHOICE),
            ),
        )
        graph = QuestionGraph(
            survey_id="s",
            codes=(
                GraphCode(code="A", questions=(_single("q1", ["yes", "no"]),)),
                GraphCode(code="D", questions=(matrix,)),
            ),
            rules=(BranchRule(trigger_id="q1", option_id="yes", target_id="m"),),
        )

        assert BranchingService.visible_questions(graph, {}) == {"q1"}
        visible = BranchingService.visible_questions(graph, {"q1": SingleChoiceAnswer(option_id="yes")})
        assert visible == {"q1", "m", "m1"}

    def test_matrix_row_can_trigger_with_shared_option(self):
        matrix = GraphQuestion(
            id="m", code="D", text="Matrix",
            question_type=QuestionType.MATRIX_SINGLE_CHOICE,
            options=(GraphOption(id="low", text="Low"), GraphOption(id="high", text="High")),
            children=(
                GraphQuestion(id="m1", code="D", parent_id="m", text="Row",
                              question_type=QuestionType.SINGLE_CHOICE),
            ),
        )
        graph = QuestionGraph(
            survey_id="s",
            codes=(GraphCode(code="D", questions=(matrix, _essay("why", sort_order=2))),),
            rules=(BranchRule(trigger_id="m1", option_id="low", target_id="why"),),
        )

        visible = BranchingService.visible_questions(graph, {"m1": SingleChoiceAnswer(option_id="low")})
        assert "why" in visible


class TestHiddenQuestions:
    """Tests for BranchingService.hidden_questions."""

    @pytest.mark.parametrize("option,hidden", [("yes", set()), ("no", {"q2"})])
    def test_hidden_is_complement_of_visible(self, employment_graph, option, hidden):
        answers = {"q1": SingleChoiceAnswer(option_id=option)}
        assert BranchingService.hidden_questions(employment_graph, answers) == hidden
