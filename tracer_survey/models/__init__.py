"""Database models and session management.

This package contains all SQLAlchemy ORM models and database utilities.
"""

from tracer_survey.models.database import Base, engine, SessionLocal, get_db, init_db
from tracer_survey.models.survey import RespondentRole, Survey, SurveyRule, SurveyStatus
from tracer_survey.models.question import (
    AnswerOptionQuestion,
    CodeQuestion,
    GroupQuestion,
    Question,
    QuestionTree,
    QuestionType,
)
from tracer_survey.models.respondent import Alumni, Manager, Respondent
from tracer_survey.models.response import Answer, AnswerMultipleChoice, ResponseRespondent

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "get_db",
    "init_db",
    "RespondentRole",
    "Survey",
    "SurveyRule",
    "SurveyStatus",
    "AnswerOptionQuestion",
    "CodeQuestion",
    "GroupQuestion",
    "Question",
    "QuestionTree",
    "QuestionType",
    "Alumni",
    "Manager",
    "Respondent",
    "Answer",
    "AnswerMultipleChoice",
    "ResponseRespondent",
]
