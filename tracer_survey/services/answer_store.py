"""Answer repository.

Answers are handled as one union (text, single option, option set) in memory
and stored across two tables:

- answers: text answers, single-option answers, and the free-text
  elaboration of a multi-select "other" option
- answer_multiple_choices: one row per selected option of a multi-select

A question with rows in answer_multiple_choices is a multi-select answer; any
answers row for it only carries the elaboration text.
"""

from collections import defaultdict
from typing import Mapping, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from tracer_survey.models.question import AnswerOptionQuestion
from tracer_survey.models.response import Answer, AnswerMultipleChoice
from tracer_survey.schemas.answer import (
    AnswerValue,
    MultipleChoiceAnswer,
    SingleChoiceAnswer,
    TextAnswer,
)
from tracer_survey.schemas.graph import GraphQuestion, QuestionGraph
from tracer_survey.schemas.response import AnswerSet, OptionSelection, QuestionAnswerView
from tracer_survey.services.branching import BranchingService
from tracer_survey.logging_config import get_logger

logger = get_logger(__name__)


class AnswerRepository:
    """Repository for storing and reading a response's answers."""

    def __init__(self, db: Session):
        """Initialize answer repository.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    def upsert_answer(
        self,
        response_id: str,
        question_id: str,
        value: Optional[AnswerValue],
    ) -> None:
        """Replace the answer to one question.

        Any prior rows for (response_id, question_id) are deleted before the
        new rows are written, so a multi-select save replaces the whole option
        set. Saving the same value twice leaves identical rows.

        Args:
            response_id: Response identifier
            question_id: Question identifier
            value: New answer, or None to clear the answer
        """
        self.db.execute(
            delete(Answer).where(
                Answer.response_id == response_id,
                Answer.question_id == question_id,
            )
        )
        self.db.execute(
            delete(AnswerMultipleChoice).where(
                AnswerMultipleChoice.response_id == response_id,
                AnswerMultipleChoice.question_id == question_id,
            )
        )

        if isinstance(value, TextAnswer):
            self.db.add(Answer(
                response_id=response_id,
                question_id=question_id,
                text_answer=value.text,
            ))
        elif isinstance(value, SingleChoiceAnswer):
            self.db.add(Answer(
                response_id=response_id,
                question_id=question_id,
                answer_option_id=value.option_id,
                text_answer=value.other_text,
            ))
        elif isinstance(value, MultipleChoiceAnswer):
            for option_id in value.option_ids:
                self.db.add(AnswerMultipleChoice(
                    response_id=response_id,
                    question_id=question_id,
                    answer_option_id=option_id,
                ))
            if value.other_text:
                self.db.add(Answer(
                    response_id=response_id,
                    question_id=question_id,
                    text_answer=value.other_text,
                ))

        self.db.flush()
        logger.debug(
            f"Saved answer to {question_id}: {value.kind if value else 'cleared'}",
            extra={"response_id": response_id, "question_id": question_id},
        )

    def upsert_answers(
        self,
        response_id: str,
        values: Mapping[str, Optional[AnswerValue]],
    ) -> None:
        """Replace the answers to several questions. Other questions are untouched."""
        for question_id, value in values.items():
            self.upsert_answer(response_id, question_id, value)

    def get_answers(self, response_id: str) -> dict[str, AnswerValue]:
        """Read every answer of a response back into the answer union.

        Args:
            response_id: Response identifier

        Returns:
            Dictionary mapping question id to answer value
        """
        return self.get_answers_for_responses([response_id]).get(response_id, {})

    def get_answers_for_responses(
        self,
        response_ids: list[str],
    ) -> dict[str, dict[str, AnswerValue]]:
        """Read the answers of several responses with two queries.

        Selected options of a multi-select come back in option order.

        Returns:
            Dictionary mapping response id to its answers (responses without
            answers are absent)
        """
        if not response_ids:
            return {}

        rows = self.db.scalars(
            select(Answer).where(Answer.response_id.in_(response_ids))
        ).all()
        choices = self.db.scalars(
            select(AnswerMultipleChoice)
            .join(AnswerOptionQuestion, AnswerMultipleChoice.answer_option_id == AnswerOptionQuestion.id)
            .where(AnswerMultipleChoice.response_id.in_(response_ids))
            .order_by(AnswerOptionQuestion.sort_order, AnswerOptionQuestion.id)
        ).all()

        rows_by_response = defaultdict(list)
        for row in rows:
            rows_by_response[row.response_id].append(row)
        choices_by_response = defaultdict(list)
        for choice in choices:
            choices_by_response[choice.response_id].append(choice)

        return {
            response_id: self._to_values(
                rows_by_response.get(response_id, []),
                choices_by_response.get(response_id, []),
            )
            for response_id in set(rows_by_response) | set(choices_by_response)
        }

    @staticmethod
    def _to_values(rows: list[Answer], choices: list[AnswerMultipleChoice]) -> dict[str, AnswerValue]:
        selected = defaultdict(list)
        for choice in choices:
            selected[choice.question_id].append(choice.answer_option_id)
        by_question = {row.question_id: row for row in rows}

        answers: dict[str, AnswerValue] = {}
        for question_id, option_ids in selected.items():
            row = by_question.get(question_id)
            answers[question_id] = MultipleChoiceAnswer(
                option_ids=tuple(option_ids),
                other_text=row.text_answer if row is not None else None,
            )
        for question_id, row in by_question.items():
            if question_id in answers:
                continue
            if row.answer_option_id is not None:
                answers[question_id] = SingleChoiceAnswer(
                    option_id=row.answer_option_id,
                    other_text=row.text_answer,
                )
            else:
                answers[question_id] = TextAnswer(text=row.text_answer or "")

        return answers

    def get_answer_set(
        self,
        response_id: str,
        graph: QuestionGraph,
        answers: Optional[Mapping[str, AnswerValue]] = None,
        visible: Optional[set[str]] = None,
    ) -> AnswerSet:
        """Build display-ready answers for every question of the graph.

        Option answers are shown by option text (", " joined in option order
        for multi-select), text answers as written. Answers to hidden
        questions are kept and flagged ``is_visible=False``.

        Args:
            response_id: Response identifier
            graph: Question graph of the survey
            answers: Preloaded answers (read from storage when omitted)
            visible: Precomputed visible set

        Returns:
            AnswerSet in display order
        """
        if answers is None:
            answers = self.get_answers(response_id)
        if visible is None:
            visible = BranchingService.visible_questions(graph, answers)

        views = []
        for code in graph.codes:
            for question in code.questions:
                views.append(self._view(graph, question, answers, visible))
        return AnswerSet(response_id=response_id, questions=views)

    def _view(
        self,
        graph: QuestionGraph,
        question: GraphQuestion,
        answers: Mapping[str, AnswerValue],
        visible: set[str],
    ) -> QuestionAnswerView:
        children = [
            self._view(graph, child, answers, visible) for child in question.children
        ]

        view = QuestionAnswerView(
            question_id=question.id,
            question_text=question.text,
            question_type=question.question_type.value,
            is_required=question.is_required,
            is_visible=question.id in visible,
            is_answered=False,
            sort_order=question.sort_order,
            children=children,
        )

        if not question.is_leaf:
            view.options = [
                OptionSelection(id=option.id, text=option.text, is_selected=False)
                for option in question.options
            ]
            if children and all(child.is_answered for child in children):
                view.is_answered = True
                view.answer = ", ".join(f"{child.question_text}: {child.answer}" for child in children)
            return view

        answer = answers.get(question.id)
        options = graph.options_for(question.id)
        selected = set(answer.option_ids) if answer is not None else set()

        view.options = [
            OptionSelection(id=option.id, text=option.text, is_selected=option.id in selected)
            for option in options
        ]
        if answer is None or not answer.is_answered:
            return view

        view.is_answered = True
        if isinstance(answer, TextAnswer):
            view.answer = answer.text
        else:
            view.answer = ", ".join(option.text for option in options if option.id in selected)
            view.other_text = answer.other_text
        return view
