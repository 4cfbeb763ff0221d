"""Pytest configuration and shared fixtures.

This module provides fixtures and configuration used across all tests:
in-memory question graphs for the pure services, an SQLite database for the
repositories, and seeded surveys for engine and API tests.
"""

import os
from pathlib import Path
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Set required environment variables for tests BEFORE importing app modules
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ADMIN_API_TOKEN", "test_admin_token_for_testing_only")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("SURVEYS_DIR", str(Path(__file__).resolve().parents[1] / "surveys"))

from tracer_survey.main import app
from tracer_survey.middleware.auth import ADMIN_TOKEN_HEADER
from tracer_survey.models.database import Base, get_db
from tracer_survey.models.question import QuestionType
from tracer_survey.models.respondent import Alumni, Manager, Respondent
from tracer_survey.models.survey import RespondentRole, Survey, SurveyRule, SurveyStatus
from tracer_survey.schemas.graph import (
    BranchRule,
    GraphCode,
    GraphOption,
    GraphQuestion,
    QuestionGraph,
)
from tracer_survey.schemas.survey import BuilderPayload
from tracer_survey.services.graph_repository import GraphRepository
from tracer_survey.services.response_repository import ResponseRepository

ADMIN_TOKEN = os.environ["ADMIN_API_TOKEN"]


# Database

@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine with SQLite in-memory database.

    Yields:
        Engine: SQLAlchemy engine for testing

    Note:
        StaticPool keeps one connection so the API test client (which runs
        handlers in another thread) sees the same in-memory database.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,  # Set to True for SQL debugging
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Enable foreign key support for SQLite
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine) -> sessionmaker:
    return sessionmaker(
        bind=db_engine,
        autocommit=False,
        autoflush=False,
    )


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator[Session, None, None]:
    """Create a test database session.

    Yields:
        Session: SQLAlchemy session for testing

    Note:
        Session is rolled back after each test to ensure isolation.
    """
    session = session_factory()

    yield session

    session.rollback()
    session.close()


# In-memory graphs

def _option(option_id: str, text: str, sort_order: int = 0, **kwargs) -> GraphOption:
    return GraphOption(id=option_id, text=text, sort_order=sort_order, **kwargs)


@pytest.fixture
def name_graph() -> QuestionGraph:
    """One unconditional required ESSAY question, no branching."""
    return QuestionGraph(
        survey_id="s-name",
        codes=(
            GraphCode(code="A", questions=(
                GraphQuestion(id="name", code="A", text="Name",
                              question_type=QuestionType.ESSAY, is_required=True),
            )),
        ),
    )


@pytest.fixture
def employment_graph() -> QuestionGraph:
    """Q1 "Employed?" [Yes (trigger), No]; Q2 "Company name" shown when Q1 = Yes."""
    return QuestionGraph(
        survey_id="s-employment",
        codes=(
            GraphCode(code="A", questions=(
                GraphQuestion(
                    id="q1", code="A", text="Employed?",
                    question_type=QuestionType.SINGLE_CHOICE, is_required=True, sort_order=1,
                    options=(
                        _option("yes", "Yes", 1, is_triggered=True),
                        _option("no", "No", 2),
                    ),
                ),
                GraphQuestion(
                    id="q2", code="A", text="Company name",
                    question_type=QuestionType.ESSAY, is_required=True, sort_order=2,
                ),
            )),
        ),
        rules=(BranchRule(trigger_id="q1", option_id="yes", target_id="q2"),),
    )


@pytest.fixture
def matrix_graph() -> QuestionGraph:
    """Matrix "Skills" with required children C1, C2 sharing options [Good, Bad]."""
    return QuestionGraph(
        survey_id="s-matrix",
        codes=(
            GraphCode(code="D", questions=(
                GraphQuestion(
                    id="skills", code="D", text="Skills",
                    question_type=QuestionType.MATRIX_SINGLE_CHOICE, is_required=True,
                    options=(_option("good", "Good", 1), _option("bad", "Bad", 2)),
                    children=(
                        GraphQuestion(id="c1", code="D", parent_id="skills", text="Teamwork",
                                      question_type=QuestionType.SINGLE_CHOICE,
                                      is_required=True, sort_order=1),
                        GraphQuestion(id="c2", code="D", parent_id="skills", text="Ethics",
                                      question_type=QuestionType.SINGLE_CHOICE,
                                      is_required=True, sort_order=2),
                    ),
                ),
            )),
        ),
    )


@pytest.fixture
def multi_graph() -> QuestionGraph:
    """MULTIPLE_CHOICE question with options [A, B, C, Other: ___]."""
    return QuestionGraph(
        survey_id="s-multi",
        codes=(
            GraphCode(code="B", questions=(
                GraphQuestion(
                    id="channels", code="B", text="How did you find your job?",
                    question_type=QuestionType.MULTIPLE_CHOICE, is_required=True,
                    options=(
                        _option("a", "Ads", 1),
                        _option("b", "Network", 2),
                        _option("c", "Career center", 3),
                        _option("other", "Other", 4, other_placeholder="Please describe"),
                    ),
                ),
                GraphQuestion(
                    id="notes", code="B", text="Notes",
                    question_type=QuestionType.LONG_TEXT, is_required=False, sort_order=2,
                ),
            )),
        ),
    )


# Builder payloads (same shapes as the graphs above, stored in the database)

@pytest.fixture
def name_builder() -> BuilderPayload:
    return BuilderPayload.model_validate({
        "questions": [
            {"id": "name", "code": "A", "question_text": "Name",
             "question_type": "ESSAY", "is_required": True},
        ],
    })


@pytest.fixture
def employment_builder() -> BuilderPayload:
    return BuilderPayload.model_validate({
        "questions": [
            {"id": "q1", "code": "A", "question_text": "Employed?",
             "question_type": "SINGLE_CHOICE", "is_required": True, "sort_order": 1,
             "options": [
                 {"id": "yes", "answer_text": "Yes", "sort_order": 1, "is_triggered": True},
                 {"id": "no", "answer_text": "No", "sort_order": 2},
             ]},
            {"id": "q2", "code": "A", "question_text": "Company name",
             "question_type": "ESSAY", "is_required": True, "sort_order": 2},
        ],
        "branches": [
            {"trigger_question_id": "q1", "trigger_option_id": "yes", "target_question_id": "q2"},
        ],
    })


@pytest.fixture
def matrix_builder() -> BuilderPayload:
    return BuilderPayload.model_validate({
        "questions": [
            {"id": "skills", "code": "D", "question_text": "Skills",
             "question_type": "MATRIX_SINGLE_CHOICE", "is_required": True,
             "options": [
                 {"id": "good", "answer_text": "Good", "sort_order": 1},
                 {"id": "bad", "answer_text": "Bad", "sort_order": 2},
             ]},
            {"id": "c1", "code": "D", "parent_id": "skills", "question_text": "Teamwork",
             "question_type": "SINGLE_CHOICE", "is_required": True, "sort_order": 1},
            {"id": "c2", "code": "D", "parent_id": "skills", "question_text": "Ethics",
             "question_type": "SINGLE_CHOICE", "is_required": True, "sort_order": 2},
        ],
    })


@pytest.fixture
def multi_builder() -> BuilderPayload:
    return BuilderPayload.model_validate({
        "questions": [
            {"id": "channels", "code": "B", "question_text": "How did you find your job?",
             "question_type": "MULTIPLE_CHOICE", "is_required": True,
             "options": [
                 {"id": "a", "answer_text": "Ads", "sort_order": 1},
                 {"id": "b", "answer_text": "Network", "sort_order": 2},
                 {"id": "c", "answer_text": "Career center", "sort_order": 3},
                 {"id": "other", "answer_text": "Other", "sort_order": 4,
                  "other_option_placeholder": "Please describe"},
             ]},
            {"id": "notes", "code": "B", "question_text": "Notes",
             "question_type": "LONG_TEXT", "is_required": False, "sort_order": 2},
        ],
    })


# Seeded rows

@pytest.fixture
def make_survey(db_session) -> Callable[..., str]:
    """Factory creating a survey and saving a builder payload into it.

    Returns:
        Function(survey_id, builder, status, target_role, rules) -> survey id
    """
    def _make(
        survey_id: str = "survey-1",
        builder: BuilderPayload = None,
        status: SurveyStatus = SurveyStatus.PUBLISHED,
        target_role: RespondentRole = RespondentRole.ALUMNI,
        rules: list = None,
    ) -> str:
        survey = Survey(
            id=survey_id,
            title=f"Survey {survey_id}",
            target_role=target_role,
            status=status,
            greeting_opening={},
            greeting_closing={},
            rules=[SurveyRule(**rule) for rule in (rules or [])],
        )
        db_session.add(survey)
        db_session.commit()
        if builder is not None:
            GraphRepository(db_session).save_builder(survey_id, builder)
        return survey_id

    return _make


@pytest.fixture
def alumni(db_session) -> Respondent:
    """Alumni respondent (S1 graduate of faculty ENG, major CS, 2023)."""
    respondent = Respondent(
        id="alumni-1",
        role=RespondentRole.ALUMNI,
        full_name="Jane Doe",
        email="jane@example.com",
        alumni=Alumni(
            nim="2011520001",
            faculty_code="ENG",
            major_code="CS",
            degree="S1",
            graduated_year=2023,
        ),
    )
    db_session.add(respondent)
    db_session.commit()
    return respondent


@pytest.fixture
def manager(db_session) -> Respondent:
    respondent = Respondent(
        id="manager-1",
        role=RespondentRole.MANAGER,
        full_name="John Roe",
        email="john@example.com",
        manager=Manager(company_name="Acme", position="Head of Engineering"),
    )
    db_session.add(respondent)
    db_session.commit()
    return respondent


@pytest.fixture
def make_draft(db_session) -> Callable[[str, str], str]:
    """Factory creating (or fetching) a committed draft response.

    Returns:
        Function(survey_id, respondent_id) -> response id
    """
    def _make(survey_id: str, respondent_id: str) -> str:
        response = ResponseRepository(db_session).get_or_create_draft(survey_id, respondent_id)
        db_session.commit()
        return response.id

    return _make


# API

@pytest.fixture
def client(session_factory) -> Generator[TestClient, None, None]:
    """Test client whose requests use the test database.

    Seed data through db_session and commit before issuing requests.
    """
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers() -> dict:
    return {ADMIN_TOKEN_HEADER: ADMIN_TOKEN}
