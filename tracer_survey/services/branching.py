"""Branching evaluation over a question graph.

Branching is a flat list of OR-combined rules ``(trigger, option, target)``:
a target question is visible when ANY rule naming it is satisfied. A rule is
satisfied when its trigger question is itself visible and the trigger's
current answer contains the rule's option. Questions no rule targets are
always visible. AND-combinations of triggers cannot be expressed.
"""

from typing import Mapping

from tracer_survey.schemas.answer import AnswerValue
from tracer_survey.schemas.graph import BranchRule, QuestionGraph
from tracer_survey.logging_config import get_logger

logger = get_logger(__name__)


class BranchingService:
    """Service for evaluating conditional question visibility."""

    @staticmethod
    def rule_satisfied(
        rule: BranchRule,
        answers: Mapping[str, AnswerValue],
        visible: set[str],
    ) -> bool:
        """Check a single rule against the answers.

        Args:
            rule: Branching rule
            answers: Current answers keyed by question id
            visible: Questions already known to be visible

        Returns:
            True if the trigger is visible and its answer includes the option
        """
        if rule.trigger_id not in visible:
            return False
        answer = answers.get(rule.trigger_id)
        if answer is None:
            return False
        return rule.option_id in answer.option_ids

    @staticmethod
    def visible_questions(
        graph: QuestionGraph,
        answers: Mapping[str, AnswerValue],
    ) -> set[str]:
        """Compute the ids of every currently visible question.

        Starts from the unconditional questions and repeatedly adds targets of
        satisfied rules until nothing changes, so chains of rules resolve
        regardless of declaration order. Children of a hidden container are
        hidden too.

        Args:
            graph: Question graph of the survey
            answers: Current answers keyed by question id

        Returns:
            Set of visible question ids (containers and leaves)

        Example:
            >>> # Q2 shown only when Q1 is answered "Yes"
            >>> BranchingService.visible_questions(graph, {"q1": SingleChoiceAnswer(option_id="yes")})
            {'q1', 'q2'}
        """
        conditional = {rule.target_id for rule in graph.rules}
        questions = graph.all_questions()

        def parent_visible(question, visible):
            return question.parent_id is None or question.parent_id in visible

        visible: set[str] = set()
        for question in questions:
            if question.parent_id is None and question.id not in conditional:
                visible.add(question.id)

        changed = True
        while changed:
            changed = False
            for question in questions:
                if question.id in visible or not parent_visible(question, visible):
                    continue
                if question.id not in conditional:
                    # Unconditional child of a visible container
                    visible.add(question.id)
                    changed = True
                    continue
                for rule in graph.rules_targeting(question.id):
                    if BranchingService.rule_satisfied(rule, answers, visible):
                        logger.debug(
                            f"Rule {rule.trigger_id}/{rule.option_id} shows {question.id}"
                        )
                        visible.add(question.id)
                        changed = True
                        break

        logger.debug(
            f"Survey {graph.survey_id}: {len(visible)} of {len(graph)} questions visible"
        )
        return visible

    @staticmethod
    def hidden_questions(
        graph: QuestionGraph,
        answers: Mapping[str, AnswerValue],
    ) -> set[str]:
        """Complement of visible_questions within the graph."""
        visible = BranchingService.visible_questions(graph, answers)
        return {q.id for q in graph.all_questions()} - visible
