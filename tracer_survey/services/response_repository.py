"""Response repository: draft/submit lifecycle of survey responses.

A respondent has one response row per survey. It is created as a draft on
the first save, stays a draft across saves, and becomes final when submitted:

    NoResponse -> Draft -> Submitted (terminal)

Writes are flushed, not committed. The caller (SurveyEngine) owns the
transaction so that the required-question check and the submitted_at write
commit together.
"""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tracer_survey.models.respondent import Respondent
from tracer_survey.models.response import ResponseRespondent
from tracer_survey.schemas.graph import QuestionGraph
from tracer_survey.schemas.response import (
    Completion,
    PageMeta,
    ResponseList,
    ResponseListItem,
    ResponseListStats,
)
from tracer_survey.services.answer_store import AnswerRepository
from tracer_survey.services.branching import BranchingService
from tracer_survey.services.completion import CompletionScorer, percentage
from tracer_survey.services.errors import (
    ResponseAlreadySubmittedError,
    ResponseNotFoundError,
    ResponseValidationError,
)
from tracer_survey.services.graph_repository import GraphRepository
from tracer_survey.logging_config import get_logger

logger = get_logger(__name__)


class ResponseRepository:
    """Repository for response rows and their lifecycle."""

    def __init__(
        self,
        db: Session,
        graphs: Optional[GraphRepository] = None,
        answers: Optional[AnswerRepository] = None,
    ):
        """Initialize response repository.

        Args:
            db: SQLAlchemy database session
            graphs: Graph repository (built on the same session when omitted)
            answers: Answer repository (built on the same session when omitted)
        """
        self.db = db
        self.graphs = graphs or GraphRepository(db)
        self.answers = answers or AnswerRepository(db)

    def find_response(
        self,
        survey_id: str,
        respondent_id: str,
        for_update: bool = False,
    ) -> Optional[ResponseRespondent]:
        """Find the response of a respondent to a survey.

        Args:
            survey_id: Survey identifier
            respondent_id: Respondent identifier
            for_update: Lock the row (SELECT ... FOR UPDATE where supported)

        Returns:
            ResponseRespondent if found, None otherwise
        """
        stmt = select(ResponseRespondent).where(
            ResponseRespondent.survey_id == survey_id,
            ResponseRespondent.respondent_id == respondent_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.scalar(stmt)

    def get_response(self, response_id: str, for_update: bool = False) -> ResponseRespondent:
        """Get a response by id.

        Raises:
            ResponseNotFoundError: If the response doesn't exist
        """
        stmt = select(ResponseRespondent).where(ResponseRespondent.id == response_id)
        if for_update:
            stmt = stmt.with_for_update()
        response = self.db.scalar(stmt)
        if response is None:
            raise ResponseNotFoundError(response_id)
        return response

    def get_or_create_draft(self, survey_id: str, respondent_id: str) -> ResponseRespondent:
        """Get the respondent's response row, creating a draft if none exists.

        The returned row is locked for the rest of the transaction. It may
        already be submitted; callers decide whether that is allowed.

        Args:
            survey_id: Survey identifier
            respondent_id: Respondent identifier

        Returns:
            Existing or newly created ResponseRespondent
        """
        response = self.find_response(survey_id, respondent_id, for_update=True)
        if response is not None:
            return response

        response = ResponseRespondent(survey_id=survey_id, respondent_id=respondent_id)
        self.db.add(response)
        try:
            self.db.flush()
        except IntegrityError:
            # Concurrent first save created the row; nothing else is pending yet
            self.db.rollback()
            response = self.find_response(survey_id, respondent_id, for_update=True)
            if response is None:
                raise
            return response

        logger.info(
            f"Created draft response {response.id}",
            extra={"survey_id": survey_id, "respondent_id": respondent_id, "response_id": response.id},
        )
        return response

    def completion(
        self,
        response: ResponseRespondent,
        graph: Optional[QuestionGraph] = None,
    ) -> Completion:
        """Compute completion of a response from its persisted answers."""
        graph = graph or self.graphs.load_graph(response.survey_id)
        return CompletionScorer.completion(graph, self.answers.get_answers(response.id))

    def submit(self, response_id: str, graph: Optional[QuestionGraph] = None) -> ResponseRespondent:
        """Submit a draft response.

        Visibility and completion are evaluated on the persisted answers, with
        the response row locked, and submitted_at is set in the same
        transaction.

        Args:
            response_id: Response identifier
            graph: Question graph (loaded when omitted)

        Returns:
            The submitted ResponseRespondent

        Raises:
            ResponseNotFoundError: If the response doesn't exist
            ResponseAlreadySubmittedError: If the response is already submitted
            ResponseValidationError: If visible required questions are unanswered
        """
        response = self.get_response(response_id, for_update=True)
        if not response.is_draft:
            raise ResponseAlreadySubmittedError(response_id)

        graph = graph or self.graphs.load_graph(response.survey_id)
        answers = self.answers.get_answers(response_id)
        missing = CompletionScorer.unanswered_required(graph, answers)
        if missing:
            logger.info(
                f"Submit rejected: {len(missing)} required question(s) unanswered",
                extra={"response_id": response_id, "survey_id": response.survey_id},
            )
            raise ResponseValidationError(missing)

        response.mark_submitted()
        self.db.flush()
        logger.info(
            f"Response {response_id} submitted",
            extra={"response_id": response_id, "survey_id": response.survey_id},
        )
        return response

    def list_responses(
        self,
        survey_id: str,
        page: int = 1,
        limit: int = 10,
        submitted: Optional[bool] = None,
    ) -> ResponseList:
        """List a survey's responses with completion and summary stats.

        Args:
            survey_id: Survey identifier
            page: 1-based page number
            limit: Page size
            submitted: Only submitted (True) or only drafts (False) when set

        Returns:
            ResponseList with one page of rows and stats over all responses

        Raises:
            SurveyNotFoundError: If the survey doesn't exist
        """
        graph = self.graphs.load_graph(survey_id)

        all_responses = self.db.scalars(
            select(ResponseRespondent).where(ResponseRespondent.survey_id == survey_id)
        ).all()
        answers_by_response = self.answers.get_answers_for_responses([r.id for r in all_responses])
        completions = {
            response.id: CompletionScorer.completion(graph, answers_by_response.get(response.id, {}))
            for response in all_responses
        }

        stmt = (
            select(ResponseRespondent, Respondent)
            .join(Respondent, ResponseRespondent.respondent_id == Respondent.id)
            .where(ResponseRespondent.survey_id == survey_id)
        )
        count_stmt = select(func.count(ResponseRespondent.id)).where(
            ResponseRespondent.survey_id == survey_id
        )
        if submitted is True:
            stmt = stmt.where(ResponseRespondent.submitted_at.is_not(None))
            count_stmt = count_stmt.where(ResponseRespondent.submitted_at.is_not(None))
        elif submitted is False:
            stmt = stmt.where(ResponseRespondent.submitted_at.is_(None))
            count_stmt = count_stmt.where(ResponseRespondent.submitted_at.is_(None))

        total = self.db.scalar(count_stmt)
        rows = self.db.execute(
            stmt.order_by(ResponseRespondent.created_at.desc(), ResponseRespondent.id)
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()

        items = [
            ResponseListItem(
                id=response.id,
                respondent_id=respondent.id,
                full_name=respondent.full_name,
                email=respondent.email,
                submitted_at=response.submitted_at,
                completion=completions[response.id],
            )
            for response, respondent in rows
        ]

        submitted_count = sum(1 for r in all_responses if not r.is_draft)
        average = 0
        if completions:
            total_percentage = sum(c.percentage for c in completions.values())
            average = percentage(total_percentage, len(completions) * 100)

        return ResponseList(
            responses=items,
            meta=PageMeta(
                page=page,
                limit=limit,
                total=total,
                total_pages=(total + limit - 1) // limit,
            ),
            stats=ResponseListStats(
                total=len(all_responses),
                submitted=submitted_count,
                drafts=len(all_responses) - submitted_count,
                average_completion=average,
            ),
        )

    def complete_responses(self, survey_id: str) -> list[ResponseListItem]:
        """Submitted responses with every visible required question answered.

        These feed downstream record generation (e.g. manager records built
        from tracer-study answers).

        Raises:
            SurveyNotFoundError: If the survey doesn't exist
        """
        graph = self.graphs.load_graph(survey_id)
        rows = self.db.execute(
            select(ResponseRespondent, Respondent)
            .join(Respondent, ResponseRespondent.respondent_id == Respondent.id)
            .where(
                ResponseRespondent.survey_id == survey_id,
                ResponseRespondent.submitted_at.is_not(None),
            )
            .order_by(ResponseRespondent.submitted_at, ResponseRespondent.id)
        ).all()
        answers_by_response = self.answers.get_answers_for_responses([r.id for r, _ in rows])

        complete = []
        for response, respondent in rows:
            answers = answers_by_response.get(response.id, {})
            visible = BranchingService.visible_questions(graph, answers)
            completion = CompletionScorer.completion(graph, answers, visible)
            if completion.is_complete:
                complete.append(ResponseListItem(
                    id=response.id,
                    respondent_id=respondent.id,
                    full_name=respondent.full_name,
                    email=respondent.email,
                    submitted_at=response.submitted_at,
                    completion=completion,
                ))

        logger.info(
            f"{len(complete)} of {len(rows)} submitted responses complete",
            extra={"survey_id": survey_id},
        )
        return complete
