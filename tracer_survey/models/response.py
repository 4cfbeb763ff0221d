"""Response and answer models.

A respondent has at most one response row per survey. The row is a draft
while ``submitted_at`` is NULL and becomes final when it is set. Answers are
stored in two tables:

- answers: one row per answered text or single-option question
- answer_multiple_choices: one row per selected option of a multi-select question

An "other" option with free text on a multi-select question is stored in both:
the option in answer_multiple_choices and the elaboration in answers.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tracer_survey.models.database import Base, generate_id


class ResponseRespondent(Base):
    """Model for a respondent's response to one survey.

    Attributes:
        id: Primary key
        survey_id: Survey being answered
        respondent_id: Respondent answering
        submitted_at: Submission time, NULL while the response is a draft
        created_at: When the first draft was saved
        updated_at: Last save
    """

    __tablename__ = "response_respondents"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_id)
    survey_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("surveys.id"),
        nullable=False,
        index=True,
    )
    respondent_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("respondents.id"),
        nullable=False,
        index=True,
    )
    submitted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="NULL while the response is a draft"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    respondent: Mapped["Respondent"] = relationship("Respondent")

    __table_args__ = (
        UniqueConstraint("survey_id", "respondent_id", name="uq_response_survey_respondent"),
        Index("idx_response_submitted_at", "submitted_at"),
    )

    @property
    def is_draft(self) -> bool:
        return self.submitted_at is None

    def mark_submitted(self) -> None:
        """Mark the response as submitted at the current UTC time."""
        self.submitted_at = datetime.now(timezone.utc)

    def touch(self) -> None:
        """Record that the draft was saved again."""
        self.updated_at = datetime.now(timezone.utc)

    def __repr__(self) -> str:
        return (
            f"<ResponseRespondent(id={self.id}, survey_id={self.survey_id}, "
            f"respondent_id={self.respondent_id}, draft={self.is_draft})>"
        )


class Answer(Base):
    """Free-text or single-option answer to one question."""

    __tablename__ = "answers"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_id)
    response_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("response_respondents.id"),
        nullable=False,
        index=True,
    )
    question_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("questions.id"),
        nullable=False,
        index=True,
    )
    text_answer: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    answer_option_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        ForeignKey("answer_option_questions.id"),
        nullable=True,
    )

    __table_args__ = (
        UniqueConstraint("response_id", "question_id", name="uq_answer_response_question"),
    )

    def __repr__(self) -> str:
        return (
            f"<Answer(response_id={self.response_id}, question_id={self.question_id}, "
            f"option={self.answer_option_id})>"
        )


class AnswerMultipleChoice(Base):
    """One selected option of a multi-select question."""

    __tablename__ = "answer_multiple_choices"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_id)
    response_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("response_respondents.id"),
        nullable=False,
        index=True,
    )
    question_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("questions.id"),
        nullable=False,
        index=True,
    )
    answer_option_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("answer_option_questions.id"),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint(
            "response_id",
            "question_id",
            "answer_option_id",
            name="uq_answer_multiple_choice_option",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<AnswerMultipleChoice(response_id={self.response_id}, "
            f"question_id={self.question_id}, option={self.answer_option_id})>"
        )
