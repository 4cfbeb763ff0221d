"""Completion scoring for survey responses.

Only leaf questions are scored: a matrix (or any question with children) is
never counted itself, its children are. Questions hidden by branching are
skipped, so stale answers to hidden questions never affect the score.
"""

from typing import Mapping, Optional

from tracer_survey.schemas.answer import AnswerValue
from tracer_survey.schemas.graph import GraphQuestion, QuestionGraph
from tracer_survey.schemas.response import Completion
from tracer_survey.services.branching import BranchingService
from tracer_survey.logging_config import get_logger

logger = get_logger(__name__)


def percentage(answered: int, total: int) -> int:
    """Integer percentage rounded half up; 100 when there is nothing to answer."""
    if total <= 0:
        return 100
    return (answered * 200 + total) // (2 * total)


class CompletionScorer:
    """Service for computing response completion."""

    @staticmethod
    def is_answered(answer: Optional[AnswerValue]) -> bool:
        return answer is not None and answer.is_answered

    @staticmethod
    def scored_questions(
        graph: QuestionGraph,
        visible: set[str],
    ) -> list[GraphQuestion]:
        """Visible leaf questions in display order."""
        return [q for q in graph.leaf_questions() if q.id in visible]

    @staticmethod
    def completion(
        graph: QuestionGraph,
        answers: Mapping[str, AnswerValue],
        visible: Optional[set[str]] = None,
    ) -> Completion:
        """Compute completion of a set of answers.

        Args:
            graph: Question graph of the survey
            answers: Answers keyed by question id
            visible: Precomputed visible set (evaluated from answers when omitted)

        Returns:
            Completion with required and overall counts
        """
        if visible is None:
            visible = BranchingService.visible_questions(graph, answers)

        scored = CompletionScorer.scored_questions(graph, visible)
        required = [q for q in scored if q.is_required]

        answered_required = sum(
            1 for q in required if CompletionScorer.is_answered(answers.get(q.id))
        )
        answered_questions = sum(
            1 for q in scored if CompletionScorer.is_answered(answers.get(q.id))
        )

        return Completion(
            total_required=len(required),
            answered_required=answered_required,
            percentage=percentage(answered_required, len(required)),
            total_questions=len(scored),
            answered_questions=answered_questions,
        )

    @staticmethod
    def unanswered_required(
        graph: QuestionGraph,
        answers: Mapping[str, AnswerValue],
        visible: Optional[set[str]] = None,
    ) -> list[str]:
        """Ids of visible required leaf questions without an answer, in display order."""
        if visible is None:
            visible = BranchingService.visible_questions(graph, answers)

        missing = [
            q.id
            for q in CompletionScorer.scored_questions(graph, visible)
            if q.is_required and not CompletionScorer.is_answered(answers.get(q.id))
        ]
        if missing:
            logger.debug(f"Survey {graph.survey_id}: unanswered required {missing}")
        return missing
