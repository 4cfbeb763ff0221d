"""Question graph repository.

Loads a survey's question graph into an immutable snapshot and performs the
authoring writes that change it. Deleting a question is an explicit ordered
multi-table delete; no database cascade is involved.
"""

from collections import defaultdict
from typing import Iterable, Optional

from pydantic import ValidationError
from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from tracer_survey.models.question import (
    AnswerOptionQuestion,
    CodeQuestion,
    GroupQuestion,
    Question,
    QuestionTree,
)
from tracer_survey.models.response import Answer, AnswerMultipleChoice
from tracer_survey.models.survey import Survey, SurveyRule
from tracer_survey.schemas.graph import (
    BranchRule,
    GraphCode,
    GraphOption,
    GraphQuestion,
    QuestionGraph,
)
from tracer_survey.schemas.survey import (
    BuilderPayload,
    BuilderResult,
    CodeQuestionCreate,
    OptionDefinition,
    QuestionDefinition,
    QuestionUpdate,
    ReorderRequest,
    SurveyDefinition,
)
from tracer_survey.services.errors import (
    DuplicateCodeError,
    GraphIntegrityError,
    GraphStructureError,
    QuestionNotFoundError,
    SurveyEngineError,
    SurveyNotFoundError,
)
from tracer_survey.services.greetings import default_greetings
from tracer_survey.services.survey_validator import GraphStructure, GraphValidator
from tracer_survey.logging_config import get_logger

logger = get_logger(__name__)


class GraphRepository:
    """Repository for reading and authoring survey question graphs."""

    def __init__(self, db: Session):
        """Initialize graph repository.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    # Reading

    def get_survey(self, survey_id: str) -> Survey:
        survey = self.db.get(Survey, survey_id)
        if survey is None:
            raise SurveyNotFoundError(survey_id)
        return survey

    def load_graph(self, survey_id: str) -> QuestionGraph:
        """Load the complete question graph of a survey.

        Code buckets are ordered by the position of their first root question,
        questions and options by sort_order. Children are nested under their
        parent.

        Args:
            survey_id: Survey identifier

        Returns:
            Immutable QuestionGraph snapshot

        Raises:
            SurveyNotFoundError: If the survey doesn't exist
            GraphIntegrityError: If stored rows do not form a valid graph
        """
        self.get_survey(survey_id)

        questions = self.db.scalars(
            select(Question)
            .join(CodeQuestion, Question.code_question_id == CodeQuestion.id)
            .where(CodeQuestion.survey_id == survey_id)
            .options(selectinload(Question.options), selectinload(Question.code_question))
            .order_by(Question.page_number, Question.sort_order, Question.id)
        ).all()
        question_ids = [q.id for q in questions]

        rules = []
        if question_ids:
            rules = self.db.scalars(
                select(QuestionTree)
                .where(QuestionTree.question_pointer_to_id.in_(question_ids))
                .order_by(QuestionTree.id)
            ).all()

        children_by_parent = defaultdict(list)
        roots = []
        for question in questions:
            if question.parent_id is None:
                roots.append(question)
            else:
                children_by_parent[question.parent_id].append(question)

        root_ids = {q.id for q in roots}
        orphans = [pid for pid in children_by_parent if pid not in root_ids]
        if orphans:
            logger.error(
                f"Survey {survey_id} has children of non-root or foreign parents: {orphans}",
                extra={"survey_id": survey_id},
            )
            raise GraphIntegrityError(
                f"Survey {survey_id} has questions nested under invalid parents",
                {"parent_ids": orphans},
            )

        codes = defaultdict(list)
        for question in roots:
            codes[question.code_question.code].append(
                self._to_graph_question(question, children_by_parent.get(question.id, []))
            )

        def first_position(item):
            code, code_questions = item
            first = min(code_questions, key=lambda q: (q.page_number, q.sort_order))
            return (first.page_number, first.sort_order, code)

        try:
            graph = QuestionGraph(
                survey_id=survey_id,
                codes=tuple(
                    GraphCode(
                        code=code,
                        questions=tuple(sorted(code_questions, key=lambda q: q.sort_order)),
                    )
                    for code, code_questions in sorted(codes.items(), key=first_position)
                ),
                rules=tuple(
                    BranchRule(
                        trigger_id=rule.question_trigger_id,
                        option_id=rule.answer_option_trigger_id,
                        target_id=rule.question_pointer_to_id,
                    )
                    for rule in rules
                ),
            )
        except ValidationError as e:
            logger.error(f"Stored graph of survey {survey_id} is invalid: {e}")
            raise GraphIntegrityError(f"Stored graph of survey {survey_id} is invalid: {e}")

        logger.debug(
            f"Loaded graph for survey {survey_id}: {len(graph)} questions, {len(graph.rules)} rules",
            extra={"survey_id": survey_id},
        )
        return graph

    @staticmethod
    def _to_graph_question(question: Question, children: list[Question]) -> GraphQuestion:
        return GraphQuestion(
            id=question.id,
            code=question.code_question.code,
            parent_id=question.parent_id,
            group_id=question.group_question_id,
            text=question.question_text,
            question_type=question.question_type,
            is_required=question.is_required,
            sort_order=question.sort_order,
            page_number=question.page_number,
            placeholder=question.placeholder,
            options=tuple(
                GraphOption(
                    id=option.id,
                    text=option.answer_text,
                    sort_order=option.sort_order,
                    is_triggered=option.is_triggered,
                    other_placeholder=option.other_option_placeholder,
                )
                for option in question.options
            ),
            children=tuple(
                GraphRepository._to_graph_question(child, [])
                for child in sorted(children, key=lambda c: c.sort_order)
            ),
        )

    def survey_question_ids(self, survey_id: str) -> list[str]:
        return list(self.db.scalars(
            select(Question.id)
            .join(CodeQuestion, Question.code_question_id == CodeQuestion.id)
            .where(CodeQuestion.survey_id == survey_id)
        ))

    def question_survey_id(self, question_id: str) -> Optional[str]:
        return self.db.scalar(
            select(CodeQuestion.survey_id)
            .join(Question, Question.code_question_id == CodeQuestion.id)
            .where(Question.id == question_id)
        )

    def structure(self, survey_id: str) -> GraphStructure:
        """Collect the flat structure of a survey for GraphValidator."""
        structure = GraphStructure(survey_id=survey_id)

        rows = self.db.execute(
            select(Question.id, Question.parent_id, CodeQuestion.survey_id)
            .join(CodeQuestion, Question.code_question_id == CodeQuestion.id)
            .where(CodeQuestion.survey_id == survey_id)
        ).all()
        for question_id, parent_id, owner_survey in rows:
            structure.question_survey[question_id] = owner_survey
            structure.question_parent[question_id] = parent_id

        # Parents referenced from this survey, wherever they live
        foreign_parents = {
            pid for pid in structure.question_parent.values()
            if pid is not None and pid not in structure.question_parent
        }
        if foreign_parents:
            for question_id, parent_id, owner_survey in self.db.execute(
                select(Question.id, Question.parent_id, CodeQuestion.survey_id)
                .join(CodeQuestion, Question.code_question_id == CodeQuestion.id)
                .where(Question.id.in_(foreign_parents))
            ):
                structure.question_survey[question_id] = owner_survey
                structure.question_parent[question_id] = parent_id

        question_ids = list(structure.question_parent)
        if not question_ids:
            return structure

        for option_id, owner_id, is_triggered in self.db.execute(
            select(
                AnswerOptionQuestion.id,
                AnswerOptionQuestion.question_id,
                AnswerOptionQuestion.is_triggered,
            ).where(AnswerOptionQuestion.question_id.in_(question_ids))
        ):
            structure.option_owner[option_id] = owner_id
            if is_triggered:
                structure.triggered_options.add(option_id)

        structure.rules = [
            (rule.question_trigger_id, rule.answer_option_trigger_id, rule.question_pointer_to_id)
            for rule in self.db.scalars(
                select(QuestionTree).where(
                    or_(
                        QuestionTree.question_trigger_id.in_(question_ids),
                        QuestionTree.question_pointer_to_id.in_(question_ids),
                    )
                )
            )
        ]
        # Rule endpoints outside the survey are reported by the validator
        for trigger_id, _, target_id in structure.rules:
            for question_id in (trigger_id, target_id):
                if question_id not in structure.question_survey:
                    structure.question_survey[question_id] = self.question_survey_id(question_id)
        return structure

    def validate_structure(self, survey_id: str) -> list[str]:
        """Flush pending writes and validate the survey's graph structure.

        Raises:
            GraphStructureError: If the structure is invalid
        """
        self.db.flush()
        return GraphValidator.validate(self.structure(survey_id))

    # Ordered deletes

    def _delete_option_references(self, option_ids: list[str]) -> None:
        """Delete rules and answers pointing at options about to be removed."""
        if not option_ids:
            return
        self.db.execute(
            delete(QuestionTree).where(QuestionTree.answer_option_trigger_id.in_(option_ids))
        )
        self.db.execute(delete(Answer).where(Answer.answer_option_id.in_(option_ids)))
        self.db.execute(
            delete(AnswerMultipleChoice).where(AnswerMultipleChoice.answer_option_id.in_(option_ids))
        )

    def _delete_question_tree(self, question_id: str) -> int:
        """Delete a question and everything depending on it, children first.

        Returns:
            Number of question rows deleted
        """
        deleted = 0
        child_ids = self.db.scalars(
            select(Question.id).where(Question.parent_id == question_id)
        ).all()
        for child_id in child_ids:
            deleted += self._delete_question_tree(child_id)

        option_ids = list(self.db.scalars(
            select(AnswerOptionQuestion.id).where(AnswerOptionQuestion.question_id == question_id)
        ))

        self.db.execute(
            delete(QuestionTree).where(
                or_(
                    QuestionTree.question_trigger_id == question_id,
                    QuestionTree.question_pointer_to_id == question_id,
                )
            )
        )
        # Answers reference options, so they go before the options
        self.db.execute(delete(Answer).where(Answer.question_id == question_id))
        self.db.execute(
            delete(AnswerMultipleChoice).where(AnswerMultipleChoice.question_id == question_id)
        )
        self._delete_option_references(option_ids)
        self.db.execute(
            delete(AnswerOptionQuestion).where(AnswerOptionQuestion.question_id == question_id)
        )
        self.db.execute(delete(Question).where(Question.id == question_id))
        self.db.flush()

        logger.debug(f"Deleted question {question_id}", extra={"question_id": question_id})
        return deleted + 1

    def delete_question_cascade(self, question_id: str) -> int:
        """Delete a question, its children and every row referencing them.

        Order per question: children (recursively), branching rules where the
        question is trigger or target, answers, options, the question row.
        The whole delete runs in one transaction.

        Args:
            question_id: Question identifier

        Returns:
            Number of question rows deleted

        Raises:
            QuestionNotFoundError: If the question doesn't exist
            GraphIntegrityError: If any delete fails (nothing is deleted)
        """
        if self.db.get(Question, question_id) is None:
            raise QuestionNotFoundError(question_id)

        try:
            deleted = self._delete_question_tree(question_id)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"Cascade delete of question {question_id} failed: {e}",
                extra={"question_id": question_id},
            )
            raise GraphIntegrityError(f"Failed to delete question {question_id}: {e}")

        self.db.expire_all()
        logger.info(
            f"Deleted question {question_id} and {deleted - 1} descendant(s)",
            extra={"question_id": question_id},
        )
        return deleted

    # Authoring

    def create_code_question(self, survey_id: str, payload: CodeQuestionCreate) -> CodeQuestion:
        """Create a code bucket with its questions.

        Raises:
            SurveyNotFoundError: If the survey doesn't exist
            DuplicateCodeError: If the survey already has the code
            GraphStructureError: If the questions form an invalid graph
        """
        self.get_survey(survey_id)
        if self._find_code(survey_id, payload.code) is not None:
            raise DuplicateCodeError(survey_id, payload.code)

        try:
            code_question = CodeQuestion(survey_id=survey_id, code=payload.code)
            self.db.add(code_question)
            self.db.flush()
            self._apply_questions(survey_id, payload.questions)
            self.validate_structure(survey_id)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DuplicateCodeError(survey_id, payload.code)
        except SurveyEngineError:
            self.db.rollback()
            raise

        logger.info(
            f"Created code {payload.code} with {len(payload.questions)} question(s)",
            extra={"survey_id": survey_id},
        )
        return code_question

    def delete_code_question(self, survey_id: str, code: str) -> int:
        """Cascade-delete every question of a code bucket, then the bucket.

        Returns:
            Number of question rows deleted

        Raises:
            QuestionNotFoundError: If the survey has no such code
            GraphIntegrityError: If any delete fails (nothing is deleted)
        """
        code_question = self._find_code(survey_id, code)
        if code_question is None:
            raise QuestionNotFoundError(f"{survey_id}/{code}")

        try:
            deleted = 0
            root_ids = self.db.scalars(
                select(Question.id).where(
                    Question.code_question_id == code_question.id,
                    Question.parent_id.is_(None),
                )
            ).all()
            for root_id in root_ids:
                deleted += self._delete_question_tree(root_id)
            # Children filed under this code but nested under another code's parent
            for question_id in self.db.scalars(
                select(Question.id).where(Question.code_question_id == code_question.id)
            ).all():
                deleted += self._delete_question_tree(question_id)
            self.db.execute(delete(CodeQuestion).where(CodeQuestion.id == code_question.id))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Cascade delete of code {code} failed: {e}", extra={"survey_id": survey_id})
            raise GraphIntegrityError(f"Failed to delete code {code}: {e}")

        self.db.expire_all()
        logger.info(f"Deleted code {code} ({deleted} question(s))", extra={"survey_id": survey_id})
        return deleted

    def save_builder(self, survey_id: str, payload: BuilderPayload) -> BuilderResult:
        """Bulk save a survey's questions, options and branching rules.

        Args:
            survey_id: Survey identifier
            payload: Questions to create or update; branches replace all rules
                of the survey when given

        Returns:
            BuilderResult with the survey's question and page counts

        Raises:
            SurveyNotFoundError: If the survey doesn't exist
            GraphStructureError: If the result would be an invalid graph
        """
        self.get_survey(survey_id)
        try:
            result = self._apply_builder(survey_id, payload)
            self.db.commit()
        except SurveyEngineError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Builder save failed: {e}", extra={"survey_id": survey_id})
            raise GraphIntegrityError(f"Failed to save builder for survey {survey_id}: {e}")

        logger.info(
            f"Saved builder: {result.total_questions} questions on {result.total_pages} page(s)",
            extra={"survey_id": survey_id},
        )
        return result

    def update_question(self, question_id: str, payload: QuestionUpdate) -> Question:
        """Apply a partial update to one question.

        Raises:
            QuestionNotFoundError: If the question doesn't exist
            GraphStructureError: If the update breaks the graph structure
            GraphIntegrityError: If the database rejects the update
        """
        question = self.db.get(Question, question_id)
        if question is None:
            raise QuestionNotFoundError(question_id)
        survey_id = self.question_survey_id(question_id)

        try:
            changes = payload.model_dump(exclude_unset=True, exclude={"options", "group_name"})
            for field, value in changes.items():
                setattr(question, field, value)
            if "group_name" in payload.model_fields_set:
                question.group_question_id = self._group_id(payload.group_name)
            if payload.options is not None:
                self._apply_options(question, payload.options)
            self.validate_structure(survey_id)
            self.db.commit()
        except SurveyEngineError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Question update failed: {e}", extra={"question_id": question_id})
            raise GraphIntegrityError(f"Failed to update question {question_id}: {e}")

        self.db.refresh(question)
        logger.info(f"Updated question {question_id}", extra={"question_id": question_id})
        return question

    def reorder_questions(self, survey_id: str, payload: ReorderRequest) -> int:
        """Set sort_order of several questions of a survey.

        Raises:
            QuestionNotFoundError: If a question is not part of the survey
            GraphIntegrityError: If the database rejects the update
        """
        self.get_survey(survey_id)
        known = set(self.survey_question_ids(survey_id))
        missing = [o.question_id for o in payload.orders if o.question_id not in known]
        if missing:
            raise QuestionNotFoundError(missing[0])

        try:
            for order in payload.orders:
                self.db.get(Question, order.question_id).sort_order = order.sort_order
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Reorder failed: {e}", extra={"survey_id": survey_id})
            raise GraphIntegrityError(f"Failed to reorder questions of survey {survey_id}: {e}")

        logger.info(f"Reordered {len(payload.orders)} question(s)", extra={"survey_id": survey_id})
        return len(payload.orders)

    def import_definition(self, definition: SurveyDefinition) -> BuilderResult:
        """Create or update a survey from a validated definition.

        Survey metadata, greetings and eligibility rules are replaced; the
        question graph is saved through the builder.
        """
        meta = definition.metadata
        try:
            survey = self.db.get(Survey, meta.id)
            if survey is None:
                survey = Survey(id=meta.id)
                self.db.add(survey)
            survey.title = meta.title
            survey.description = meta.description
            survey.target_role = meta.target_role
            survey.status = meta.status

            opening, closing = default_greetings(meta.target_role, meta.title)
            survey.greeting_opening = definition.greeting_opening or opening
            survey.greeting_closing = definition.greeting_closing or closing
            survey.rules = [SurveyRule(**rule.model_dump()) for rule in definition.rules]
            self.db.flush()

            result = self._apply_builder(survey.id, definition.builder)
            self.db.commit()
        except SurveyEngineError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Import of survey {meta.id} failed: {e}", extra={"survey_id": meta.id})
            raise GraphIntegrityError(f"Failed to import survey {meta.id}: {e}")

        logger.info(
            f"Imported survey {meta.id} ({result.total_questions} questions)",
            extra={"survey_id": meta.id},
        )
        return result

    # Builder internals

    def _find_code(self, survey_id: str, code: str) -> Optional[CodeQuestion]:
        return self.db.scalar(
            select(CodeQuestion).where(CodeQuestion.survey_id == survey_id, CodeQuestion.code == code)
        )

    def _code_id(self, survey_id: str, code: str) -> str:
        code_question = self._find_code(survey_id, code)
        if code_question is None:
            code_question = CodeQuestion(survey_id=survey_id, code=code)
            self.db.add(code_question)
            self.db.flush()
        return code_question.id

    def _group_id(self, group_name: Optional[str]) -> Optional[str]:
        if not group_name:
            return None
        group = self.db.scalar(select(GroupQuestion).where(GroupQuestion.group_name == group_name))
        if group is None:
            group = GroupQuestion(group_name=group_name)
            self.db.add(group)
            self.db.flush()
        return group.id

    def _apply_builder(self, survey_id: str, payload: BuilderPayload) -> BuilderResult:
        self._apply_questions(survey_id, payload.questions)
        if payload.branches is not None:
            self._replace_branches(survey_id, payload.branches)
        self.validate_structure(survey_id)

        total_questions, total_pages = self.db.execute(
            select(func.count(Question.id), func.max(Question.page_number))
            .join(CodeQuestion, Question.code_question_id == CodeQuestion.id)
            .where(CodeQuestion.survey_id == survey_id)
        ).one()
        return BuilderResult(
            survey_id=survey_id,
            total_questions=total_questions,
            total_pages=total_pages or 0,
        )

    def _apply_questions(self, survey_id: str, definitions: Iterable[QuestionDefinition]) -> None:
        """Upsert questions and their options.

        Runs in two passes: rows are written without parents first so that
        parents declared later in the payload exist before children point at
        them.
        """
        definitions = list(definitions)
        known = set(self.survey_question_ids(survey_id))
        payload_ids = {d.id for d in definitions if d.id}
        written: list[tuple[Question, QuestionDefinition]] = []

        for definition in definitions:
            question = self.db.get(Question, definition.id) if definition.id else None
            if question is not None and question.id not in known:
                raise GraphStructureError(
                    [f"Question {question.id} belongs to another survey"]
                )

            # Lookups may flush, so resolve them before adding a new row
            code_id = self._code_id(survey_id, definition.code)
            group_id = self._group_id(definition.group_name)

            if question is None:
                question = Question(parent_id=None)
                if definition.id:
                    question.id = definition.id
                self.db.add(question)

            question.code_question_id = code_id
            question.group_question_id = group_id
            question.question_text = definition.question_text
            question.question_type = definition.question_type
            question.is_required = definition.is_required
            question.sort_order = definition.sort_order
            question.page_number = definition.page_number
            question.placeholder = definition.placeholder
            question.search_placeholder = definition.search_placeholder
            written.append((question, definition))
        self.db.flush()

        for question, definition in written:
            parent_id = definition.parent_id
            if parent_id and parent_id not in known and parent_id not in payload_ids:
                if self.db.get(Question, parent_id) is None:
                    raise GraphStructureError(
                        [f"Question {question.id} references unknown parent {parent_id}"]
                    )
            question.parent_id = parent_id
            self._apply_options(question, definition.options)
        self.db.flush()

    def _apply_options(self, question: Question, definitions: list[OptionDefinition]) -> None:
        """Replace a question's option set, keeping ids of options that survive."""
        self.db.flush()
        existing = {
            option.id: option
            for option in self.db.scalars(
                select(AnswerOptionQuestion).where(AnswerOptionQuestion.question_id == question.id)
            )
        }
        keep = set()

        for definition in definitions:
            option = existing.get(definition.id) if definition.id else None
            if option is None and definition.id:
                if self.db.get(AnswerOptionQuestion, definition.id) is not None:
                    raise GraphStructureError(
                        [f"Option {definition.id} belongs to another question"]
                    )
                option = AnswerOptionQuestion(id=definition.id, question_id=question.id)
                self.db.add(option)
            elif option is None:
                option = AnswerOptionQuestion(question_id=question.id)
                self.db.add(option)

            option.answer_text = definition.answer_text
            option.sort_order = definition.sort_order
            option.is_triggered = definition.is_triggered
            option.other_option_placeholder = definition.other_option_placeholder
            if option.id:
                keep.add(option.id)

        removed = [option_id for option_id in existing if option_id not in keep]
        if removed:
            self._delete_option_references(removed)
            self.db.execute(
                delete(AnswerOptionQuestion).where(AnswerOptionQuestion.id.in_(removed))
            )
            logger.debug(f"Removed {len(removed)} option(s) of question {question.id}")
        self.db.flush()

    def _replace_branches(self, survey_id: str, branches) -> None:
        question_ids = self.survey_question_ids(survey_id)
        if question_ids:
            self.db.execute(
                delete(QuestionTree).where(
                    or_(
                        QuestionTree.question_trigger_id.in_(question_ids),
                        QuestionTree.question_pointer_to_id.in_(question_ids),
                    )
                )
            )

        known = set(question_ids)
        for branch in branches:
            missing = [
                qid for qid in (branch.trigger_question_id, branch.target_question_id)
                if qid not in known
            ]
            if missing:
                raise GraphStructureError(
                    [f"Branching rule references questions outside the survey: {missing}"]
                )
            if self.db.get(AnswerOptionQuestion, branch.trigger_option_id) is None:
                raise GraphStructureError(
                    [f"Branching rule references unknown option {branch.trigger_option_id}"]
                )
            self.db.add(QuestionTree(
                question_trigger_id=branch.trigger_question_id,
                answer_option_trigger_id=branch.trigger_option_id,
                question_pointer_to_id=branch.target_question_id,
            ))
        self.db.flush()
