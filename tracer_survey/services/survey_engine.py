"""Survey engine for orchestrating survey responses.

This module coordinates the graph, answer and response repositories to
process one respondent request: check access, validate answers, store them,
re-evaluate branching and completion, and move the response through its
draft/submit lifecycle. Each call is one transaction.
"""

from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tracer_survey.models.respondent import Respondent
from tracer_survey.models.response import ResponseRespondent
from tracer_survey.models.survey import RespondentRole, Survey
from tracer_survey.schemas.answer import AnswerPayload, AnswerValue
from tracer_survey.schemas.graph import QuestionGraph
from tracer_survey.schemas.response import ResponseDetail, ResponseOut
from tracer_survey.services.answer_store import AnswerRepository
from tracer_survey.services.branching import BranchingService
from tracer_survey.services.completion import CompletionScorer
from tracer_survey.services.errors import (
    RespondentNotEligibleError,
    RespondentNotFoundError,
    ResponseAlreadySubmittedError,
    ResponseNotFoundError,
    SurveyClosedError,
    SurveyEngineError,
)
from tracer_survey.services.graph_repository import GraphRepository
from tracer_survey.services.greetings import render_greetings
from tracer_survey.services.response_repository import ResponseRepository
from tracer_survey.services.template_renderer import TemplateRenderError
from tracer_survey.services.validation import AnswerValidator
from tracer_survey.logging_config import get_logger

logger = get_logger(__name__)


class SurveyEngine:
    """Main survey response orchestration service.

    Collaborators are injected; when omitted they are built on the given
    session.
    """

    def __init__(
        self,
        db: Session,
        graphs: Optional[GraphRepository] = None,
        answers: Optional[AnswerRepository] = None,
        responses: Optional[ResponseRepository] = None,
    ):
        """Initialize survey engine.

        Args:
            db: SQLAlchemy database session
            graphs: Graph repository
            answers: Answer repository
            responses: Response repository
        """
        self.db = db
        self.graphs = graphs or GraphRepository(db)
        self.answers = answers or AnswerRepository(db)
        self.responses = responses or ResponseRepository(db, self.graphs, self.answers)

    # Access checks

    def get_respondent(self, respondent_id: str) -> Respondent:
        respondent = self.db.get(Respondent, respondent_id)
        if respondent is None:
            raise RespondentNotFoundError(respondent_id)
        return respondent

    def check_eligibility(self, survey: Survey, respondent: Respondent) -> None:
        """Check that a respondent may answer a survey.

        The respondent's role must match the survey's target role. Alumni must
        also match at least one eligibility rule when the survey has any.

        Raises:
            RespondentNotEligibleError: If the respondent may not answer
        """
        if respondent.role != survey.target_role:
            raise RespondentNotEligibleError(
                survey.id, respondent.id,
                f"survey targets {survey.target_role.value} respondents",
            )

        if respondent.role != RespondentRole.ALUMNI or not survey.rules:
            return

        alumni = respondent.alumni
        if alumni is None or not any(
            rule.matches(alumni.faculty_code, alumni.major_code, alumni.degree, alumni.graduated_year)
            for rule in survey.rules
        ):
            raise RespondentNotEligibleError(
                survey.id, respondent.id, "no eligibility rule matches the alumni profile"
            )

    def _open_survey(self, survey_id: str, respondent_id: str) -> tuple[Survey, Respondent]:
        survey = self.graphs.get_survey(survey_id)
        respondent = self.get_respondent(respondent_id)
        self.check_eligibility(survey, respondent)
        return survey, respondent

    # Read operations

    def greeting(self, survey_id: str, respondent_id: str) -> dict:
        """Rendered opening and closing greetings of a survey for a respondent.

        Raises:
            SurveyEngineError: If a greeting template cannot be rendered
        """
        survey, respondent = self._open_survey(survey_id, respondent_id)
        try:
            return render_greetings(survey, respondent)
        except TemplateRenderError as e:
            logger.error(f"Greeting rendering failed: {e}", extra={"survey_id": survey_id})
            raise SurveyEngineError(f"Greeting rendering failed: {e}")

    def questions(self, survey_id: str, respondent_id: str) -> QuestionGraph:
        """Question graph of a survey the respondent may answer."""
        self._open_survey(survey_id, respondent_id)
        return self.graphs.load_graph(survey_id)

    def get_progress(self, survey_id: str, respondent_id: str) -> ResponseDetail:
        """Current answers, visibility and completion of a respondent's response.

        Raises:
            ResponseNotFoundError: If the respondent has not saved anything yet
        """
        self._open_survey(survey_id, respondent_id)
        response = self.responses.find_response(survey_id, respondent_id)
        if response is None:
            raise ResponseNotFoundError(f"{survey_id}/{respondent_id}")
        return self._detail(response, self.graphs.load_graph(survey_id))

    def response_detail(self, response_id: str) -> ResponseDetail:
        """Full detail of any response, for administrators."""
        response = self.responses.get_response(response_id)
        return self._detail(response, self.graphs.load_graph(response.survey_id))

    # Write operations

    def save_draft(
        self,
        survey_id: str,
        respondent_id: str,
        payloads: Iterable[AnswerPayload],
    ) -> ResponseOut:
        """Save a partial set of answers to the respondent's draft.

        Questions present in the payloads are replaced (an empty payload
        clears the answer); other questions keep their stored answers.

        Args:
            survey_id: Survey identifier
            respondent_id: Respondent identifier
            payloads: Answers to save

        Returns:
            Response state after the save

        Raises:
            SurveyClosedError: If the survey is not published
            ResponseAlreadySubmittedError: If the response was submitted
            InvalidAnswerError: If an answer does not fit its question
        """
        try:
            graph, response = self._prepare(survey_id, respondent_id, payloads)
            response.touch()
            self.db.flush()
            state = self._out(response, graph)
            self.db.commit()
        except SurveyEngineError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            logger.error(f"Unexpected database error saving draft: {e}", extra={"survey_id": survey_id})
            self.db.rollback()
            raise SurveyEngineError(f"Processing failed: {e}")

        logger.info(
            f"Draft saved ({state.completion.percentage}% complete)",
            extra={"survey_id": survey_id, "respondent_id": respondent_id, "response_id": state.id},
        )
        return state

    def submit(
        self,
        survey_id: str,
        respondent_id: str,
        payloads: Optional[Iterable[AnswerPayload]] = None,
    ) -> ResponseOut:
        """Apply final answers and submit the respondent's response.

        Answers in ``payloads`` are stored first; the required-question check
        then runs on the persisted state. Nothing is kept if the check fails.

        Raises:
            SurveyClosedError: If the survey is not published
            ResponseAlreadySubmittedError: If the response was submitted
            ResponseValidationError: If visible required questions are unanswered
        """
        try:
            graph, response = self._prepare(survey_id, respondent_id, payloads or [])
            self.responses.submit(response.id, graph)
            state = self._out(response, graph)
            self.db.commit()
        except SurveyEngineError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            logger.error(f"Unexpected database error submitting: {e}", extra={"survey_id": survey_id})
            self.db.rollback()
            raise SurveyEngineError(f"Processing failed: {e}")

        return state

    # Internals

    def _prepare(
        self,
        survey_id: str,
        respondent_id: str,
        payloads: Iterable[AnswerPayload],
    ) -> tuple[QuestionGraph, ResponseRespondent]:
        """Check access, validate payloads, lock the draft and store answers."""
        survey, _ = self._open_survey(survey_id, respondent_id)
        if not survey.accepts_responses:
            raise SurveyClosedError(survey_id, survey.status.value)

        graph = self.graphs.load_graph(survey_id)
        values = self._to_values(graph, payloads)

        response = self.responses.get_or_create_draft(survey_id, respondent_id)
        if not response.is_draft:
            raise ResponseAlreadySubmittedError(response.id)

        self.answers.upsert_answers(response.id, values)
        return graph, response

    @staticmethod
    def _to_values(
        graph: QuestionGraph,
        payloads: Iterable[AnswerPayload],
    ) -> dict[str, Optional[AnswerValue]]:
        """Validate payloads; a later payload for the same question wins."""
        values: dict[str, Optional[AnswerValue]] = {}
        for payload in payloads:
            values[payload.question_id] = AnswerValidator.to_value(graph, payload)
        return values

    def _out(self, response: ResponseRespondent, graph: QuestionGraph) -> ResponseOut:
        answers = self.answers.get_answers(response.id)
        visible = BranchingService.visible_questions(graph, answers)
        return ResponseOut(
            id=response.id,
            survey_id=response.survey_id,
            respondent_id=response.respondent_id,
            submitted_at=response.submitted_at,
            is_draft=response.is_draft,
            completion=CompletionScorer.completion(graph, answers, visible),
            visible_question_ids=[q.id for q in graph.all_questions() if q.id in visible],
        )

    def _detail(self, response: ResponseRespondent, graph: QuestionGraph) -> ResponseDetail:
        answers = self.answers.get_answers(response.id)
        visible = BranchingService.visible_questions(graph, answers)
        return ResponseDetail(
            id=response.id,
            survey_id=response.survey_id,
            respondent_id=response.respondent_id,
            submitted_at=response.submitted_at,
            is_draft=response.is_draft,
            completion=CompletionScorer.completion(graph, answers, visible),
            visible_question_ids=[q.id for q in graph.all_questions() if q.id in visible],
            answers=self.answers.get_answer_set(response.id, graph, answers, visible),
        )
