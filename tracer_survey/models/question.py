"""Question graph models.

The graph of a survey is stored across five tables:

- code_questions: survey-scoped buckets ("A", "C1", ...) unique per survey
- group_questions: display-only group labels
- questions: questions, optionally nested one level under a parent
- answer_option_questions: selectable options of a question
- question_trees: branching rules (trigger question, trigger option, target)

No database-level cascades are declared between these tables. Deleting a
question is an explicit ordered delete performed by the graph repository.
"""

from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tracer_survey.models.database import Base, generate_id


class QuestionType(str, Enum):
    """Question types supported by the survey builder."""
    ESSAY = "ESSAY"
    LONG_TEXT = "LONG_TEXT"
    SINGLE_CHOICE = "SINGLE_CHOICE"
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    MATRIX_SINGLE_CHOICE = "MATRIX_SINGLE_CHOICE"
    COMBO_BOX = "COMBO_BOX"


TEXT_QUESTION_TYPES = frozenset({QuestionType.ESSAY, QuestionType.LONG_TEXT})
SINGLE_OPTION_QUESTION_TYPES = frozenset({QuestionType.SINGLE_CHOICE, QuestionType.COMBO_BOX})


class CodeQuestion(Base):
    """Named bucket scoping a set of questions to one survey."""

    __tablename__ = "code_questions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_id)
    survey_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("surveys.id"),
        nullable=False,
        index=True,
    )
    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Human code, unique within its survey"
    )

    questions: Mapped[list["Question"]] = relationship(
        "Question",
        back_populates="code_question",
        order_by="Question.sort_order",
    )

    __table_args__ = (
        UniqueConstraint("survey_id", "code", name="uq_code_question_survey_code"),
    )

    def __repr__(self) -> str:
        return f"<CodeQuestion(survey_id={self.survey_id}, code={self.code})>"


class GroupQuestion(Base):
    """Display label grouping questions on screen."""

    __tablename__ = "group_questions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_id)
    group_name: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<GroupQuestion(id={self.id}, group_name={self.group_name})>"


class Question(Base):
    """A single question of a survey.

    Attributes:
        id: Primary key
        code_question_id: Owning code bucket
        parent_id: Container question this question belongs to (depth <= 2)
        group_question_id: Optional display group
        question_text: Text shown to the respondent
        question_type: One of QuestionType
        is_required: Whether a visible instance must be answered to submit
        sort_order: Ordering among siblings
        page_number: Page of the form the question is rendered on
        placeholder: Input placeholder
        search_placeholder: Placeholder of the search box for combo boxes
    """

    __tablename__ = "questions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_id)
    code_question_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("code_questions.id"),
        nullable=False,
        index=True,
    )
    parent_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        ForeignKey("questions.id"),
        nullable=True,
        index=True,
    )
    group_question_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        ForeignKey("group_questions.id"),
        nullable=True,
    )

    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    question_type: Mapped[QuestionType] = mapped_column(
        SAEnum(QuestionType, native_enum=False, length=32),
        nullable=False,
    )
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    page_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    placeholder: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    search_placeholder: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    code_question: Mapped["CodeQuestion"] = relationship(
        "CodeQuestion",
        back_populates="questions",
    )
    parent: Mapped[Optional["Question"]] = relationship(
        "Question",
        back_populates="children",
        remote_side="Question.id",
    )
    children: Mapped[list["Question"]] = relationship(
        "Question",
        back_populates="parent",
        order_by="Question.sort_order",
    )
    options: Mapped[list["AnswerOptionQuestion"]] = relationship(
        "AnswerOptionQuestion",
        back_populates="question",
        order_by="AnswerOptionQuestion.sort_order",
    )

    def __repr__(self) -> str:
        return (
            f"<Question(id={self.id}, type={self.question_type}, "
            f"parent_id={self.parent_id}, sort_order={self.sort_order})>"
        )


class AnswerOptionQuestion(Base):
    """Selectable option of a question.

    ``is_triggered`` marks options used by branching rules, and
    ``other_option_placeholder`` is set on options that ask for free text
    ("Other: ___").
    """

    __tablename__ = "answer_option_questions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_id)
    question_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("questions.id"),
        nullable=False,
        index=True,
    )
    answer_text: Mapped[str] = mapped_column(Text, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_triggered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    other_option_placeholder: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    question: Mapped["Question"] = relationship("Question", back_populates="options")

    def __repr__(self) -> str:
        return f"<AnswerOptionQuestion(id={self.id}, question_id={self.question_id})>"


class QuestionTree(Base):
    """Branching rule: the target becomes visible when the trigger question's
    answer contains the trigger option."""

    __tablename__ = "question_trees"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_id)
    question_trigger_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("questions.id"),
        nullable=False,
    )
    answer_option_trigger_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("answer_option_questions.id"),
        nullable=False,
    )
    question_pointer_to_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("questions.id"),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint(
            "question_trigger_id",
            "answer_option_trigger_id",
            "question_pointer_to_id",
            name="uq_question_tree_rule",
        ),
        Index("idx_question_tree_trigger", "question_trigger_id"),
        Index("idx_question_tree_target", "question_pointer_to_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<QuestionTree(trigger={self.question_trigger_id}, "
            f"option={self.answer_option_trigger_id}, "
            f"target={self.question_pointer_to_id})>"
        )
