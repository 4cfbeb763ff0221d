"""Pydantic schemas for the in-memory question graph.

A QuestionGraph is a read-only snapshot of a survey's structure: code buckets,
questions (containers with their children nested), options and branching
rules. The branching evaluator and completion scorer work on this snapshot
only, never on ORM rows.
"""

from enum import Enum
from functools import cached_property
from typing import Iterator, Optional

from pydantic import BaseModel, ConfigDict, model_validator

from tracer_survey.models.question import QuestionType


class QuestionKind(str, Enum):
    """Whether a question is answered directly or through its children."""
    LEAF = "LEAF"
    CONTAINER = "CONTAINER"


class GraphOption(BaseModel):
    """A selectable option of a question."""
    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    sort_order: int = 0
    is_triggered: bool = False
    other_placeholder: Optional[str] = None

    @property
    def accepts_text(self) -> bool:
        """Whether selecting this option asks for a free-text elaboration."""
        return self.other_placeholder is not None


class GraphQuestion(BaseModel):
    """A question node of the graph.

    Attributes:
        id: Question identifier
        code: Code bucket the question belongs to
        parent_id: Container question, None for root questions
        group_id: Display group
        text: Question text
        question_type: Question type
        is_required: Whether a visible leaf must be answered before submit
        sort_order: Ordering among siblings
        page_number: Form page
        placeholder: Input placeholder
        options: Own options, ordered by sort_order
        children: Nested child questions (only on containers)
    """
    model_config = ConfigDict(frozen=True)

    id: str
    code: str
    parent_id: Optional[str] = None
    group_id: Optional[str] = None
    text: str
    question_type: QuestionType
    is_required: bool = False
    sort_order: int = 0
    page_number: int = 1
    placeholder: str = ""
    options: tuple[GraphOption, ...] = ()
    children: tuple["GraphQuestion", ...] = ()

    @property
    def kind(self) -> QuestionKind:
        """Containers are matrix questions or any question with children."""
        if self.children or self.question_type == QuestionType.MATRIX_SINGLE_CHOICE:
            return QuestionKind.CONTAINER
        return QuestionKind.LEAF

    @property
    def is_leaf(self) -> bool:
        return self.kind == QuestionKind.LEAF

    @model_validator(mode="after")
    def validate_depth(self):
        """Children never have children of their own."""
        for child in self.children:
            if child.children:
                raise ValueError(
                    f"Question '{child.id}' is nested under '{self.id}' and cannot have children"
                )
            if child.parent_id != self.id:
                raise ValueError(f"Child '{child.id}' does not point at parent '{self.id}'")
        return self


class GraphCode(BaseModel):
    """A code bucket and its root questions."""
    model_config = ConfigDict(frozen=True)

    code: str
    questions: tuple[GraphQuestion, ...] = ()


class BranchRule(BaseModel):
    """Branching rule: ``target_id`` is visible when the answer to
    ``trigger_id`` contains ``option_id``."""
    model_config = ConfigDict(frozen=True)

    trigger_id: str
    option_id: str
    target_id: str


class QuestionGraph(BaseModel):
    """Complete, ordered question graph of one survey."""
    model_config = ConfigDict(frozen=True)

    survey_id: str
    codes: tuple[GraphCode, ...] = ()
    rules: tuple[BranchRule, ...] = ()

    @model_validator(mode="after")
    def validate_references(self):
        """Reject duplicate ids and rules pointing outside the graph."""
        questions, options, _ = self.indexes

        for rule in self.rules:
            missing = {rule.trigger_id, rule.target_id} - set(questions)
            if missing:
                raise ValueError(f"Branch rule references unknown questions: {sorted(missing)}")
            if rule.option_id not in options:
                raise ValueError(f"Branch rule references unknown option: {rule.option_id}")
        return self

    @cached_property
    def indexes(self) -> tuple[dict, dict, dict]:
        """Questions by id, options by id, and the question owning each option."""
        questions: dict[str, GraphQuestion] = {}
        options: dict[str, GraphOption] = {}
        owner: dict[str, str] = {}

        for question in self._iter_tree():
            if question.id in questions:
                raise ValueError(f"Duplicate question id: {question.id}")
            questions[question.id] = question
            for option in question.options:
                if option.id in options:
                    raise ValueError(f"Duplicate option id: {option.id}")
                options[option.id] = option
                owner[option.id] = question.id

        return questions, options, owner

    def _iter_tree(self) -> Iterator[GraphQuestion]:
        for code in self.codes:
            for question in code.questions:
                yield question
                yield from question.children

    def all_questions(self) -> list[GraphQuestion]:
        """All questions in display order, each container followed by its children."""
        return list(self._iter_tree())

    def leaf_questions(self) -> list[GraphQuestion]:
        """Answerable questions in display order."""
        return [q for q in self._iter_tree() if q.is_leaf]

    def question(self, question_id: str) -> Optional[GraphQuestion]:
        return self.indexes[0].get(question_id)

    def option(self, option_id: str) -> Optional[GraphOption]:
        return self.indexes[1].get(option_id)

    def option_owner(self, option_id: str) -> Optional[str]:
        """Id of the question declaring the option."""
        return self.indexes[2].get(option_id)

    def options_for(self, question_id: str) -> tuple[GraphOption, ...]:
        """Options a question is answered with.

        Matrix children without options of their own share their parent's set.
        """
        question = self.question(question_id)
        if question is None:
            return ()
        if question.options or question.parent_id is None:
            return question.options
        parent = self.question(question.parent_id)
        return parent.options if parent is not None else ()

    def rules_targeting(self, question_id: str) -> list[BranchRule]:
        return [rule for rule in self.rules if rule.target_id == question_id]

    def is_conditional(self, question_id: str) -> bool:
        """Whether at least one branching rule targets the question."""
        return any(rule.target_id == question_id for rule in self.rules)

    @property
    def total_pages(self) -> int:
        pages = {q.page_number for q in self._iter_tree()}
        return max(pages) if pages else 0

    def __len__(self) -> int:
        return len(self.indexes[0])
