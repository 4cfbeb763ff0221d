"""Respondent models.

A respondent holds exactly one role and at most one matching profile row:
alumni respondents carry academic data used by survey eligibility rules,
manager respondents carry employer data.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Enum as SAEnum,
    ForeignKey,
    Integer,
    String,
    DateTime,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tracer_survey.models.database import Base, generate_id
from tracer_survey.models.survey import RespondentRole


class Respondent(Base):
    """Model for a survey respondent identity."""

    __tablename__ = "respondents"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_id)
    role: Mapped[RespondentRole] = mapped_column(
        SAEnum(RespondentRole, native_enum=False, length=16),
        nullable=False,
    )
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    alumni: Mapped[Optional["Alumni"]] = relationship(
        "Alumni",
        back_populates="respondent",
        uselist=False,
        cascade="all, delete-orphan",
    )
    manager: Mapped[Optional["Manager"]] = relationship(
        "Manager",
        back_populates="respondent",
        uselist=False,
        cascade="all, delete-orphan",
    )

    @property
    def profile(self):
        """Return the profile matching the respondent's role, if any."""
        if self.role == RespondentRole.ALUMNI:
            return self.alumni
        return self.manager

    def __repr__(self) -> str:
        return f"<Respondent(id={self.id}, role={self.role})>"


class Alumni(Base):
    """Academic profile of an alumni respondent."""

    __tablename__ = "alumni"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_id)
    respondent_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("respondents.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    nim: Mapped[str] = mapped_column(String(30), nullable=False, unique=True, comment="Student number")
    faculty_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    major_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    degree: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    graduated_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    respondent: Mapped["Respondent"] = relationship("Respondent", back_populates="alumni")

    def __repr__(self) -> str:
        return f"<Alumni(nim={self.nim}, major={self.major_code})>"


class Manager(Base):
    """Employer profile of a manager respondent."""

    __tablename__ = "managers"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_id)
    respondent_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("respondents.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    position: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    respondent: Mapped["Respondent"] = relationship("Respondent", back_populates="manager")

    def __repr__(self) -> str:
        return f"<Manager(company_name={self.company_name})>"
