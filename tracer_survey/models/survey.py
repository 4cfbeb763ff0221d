"""Survey and eligibility rule models.

A survey targets one respondent role and owns its question graph through
code buckets (see question.py). Only published surveys accept drafts and
submissions.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    DateTime,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tracer_survey.models.database import Base, generate_id


class RespondentRole(str, Enum):
    """Roles a survey can target and a respondent can hold."""
    ALUMNI = "ALUMNI"
    MANAGER = "MANAGER"


class SurveyStatus(str, Enum):
    """Publication state of a survey."""
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"
    CLOSED = "CLOSED"


class Survey(Base):
    """Model for a survey definition header.

    Attributes:
        id: Primary key
        title: Display title
        description: Longer description shown to respondents
        target_role: Role of respondents this survey is meant for
        status: Publication status, only PUBLISHED accepts responses
        greeting_opening: Structured opening greeting (string leaves are templates)
        greeting_closing: Structured closing greeting
        rules: Eligibility rules narrowing which alumni may respond
    """

    __tablename__ = "surveys"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_id)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    target_role: Mapped[RespondentRole] = mapped_column(
        SAEnum(RespondentRole, native_enum=False, length=16),
        nullable=False,
        comment="Role of respondents this survey targets"
    )
    status: Mapped[SurveyStatus] = mapped_column(
        SAEnum(SurveyStatus, native_enum=False, length=16),
        nullable=False,
        default=SurveyStatus.DRAFT,
        comment="Only PUBLISHED surveys accept responses"
    )

    greeting_opening: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        comment="Opening greeting structure"
    )
    greeting_closing: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        comment="Closing greeting structure"
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

    rules: Mapped[list["SurveyRule"]] = relationship(
        "SurveyRule",
        back_populates="survey",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_survey_role_status", "target_role", "status"),
    )

    @property
    def accepts_responses(self) -> bool:
        """Whether respondents may save drafts or submit."""
        return self.status == SurveyStatus.PUBLISHED

    def __repr__(self) -> str:
        return (
            f"<Survey(id={self.id}, "
            f"target_role={self.target_role}, "
            f"status={self.status})>"
        )


class SurveyRule(Base):
    """Eligibility rule for alumni respondents.

    Empty fields are wildcards: a rule with only ``degree="S1"`` admits every
    S1 graduate regardless of faculty or major.
    """

    __tablename__ = "survey_rules"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_id)
    survey_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("surveys.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    faculty_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    major_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    degree: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    graduated_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    survey: Mapped["Survey"] = relationship("Survey", back_populates="rules")

    def matches(self, faculty_code: Optional[str], major_code: Optional[str],
                degree: Optional[str], graduated_year: Optional[int]) -> bool:
        """Check whether an alumni profile satisfies this rule."""
        checks = (
            (self.faculty_code, faculty_code),
            (self.major_code, major_code),
            (self.degree, degree),
            (self.graduated_year, graduated_year),
        )
        return all(expected is None or expected == actual for expected, actual in checks)

    def __repr__(self) -> str:
        return (
            f"<SurveyRule(survey_id={self.survey_id}, faculty={self.faculty_code}, "
            f"major={self.major_code}, degree={self.degree})>"
        )
