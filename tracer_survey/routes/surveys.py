"""Respondent survey endpoints.

Respondents read a survey's greeting and questions, save drafts of their
answers and submit them. The respondent is resolved from the request by the
auth dependency; engine errors are turned into JSON responses by the
application's exception handler.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from tracer_survey.middleware.auth import get_current_respondent
from tracer_survey.models.database import get_db
from tracer_survey.models.respondent import Respondent
from tracer_survey.schemas.answer import DraftRequest, SubmitRequest
from tracer_survey.schemas.graph import QuestionGraph
from tracer_survey.schemas.response import ResponseDetail, ResponseOut
from tracer_survey.services.survey_engine import SurveyEngine
from tracer_survey.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/surveys")


@router.get("/{survey_id}/greeting")
async def get_greeting(
    survey_id: str,
    respondent: Respondent = Depends(get_current_respondent),
    db: Session = Depends(get_db)
) -> dict:
    """Opening and closing greeting rendered for the respondent."""
    return SurveyEngine(db).greeting(survey_id, respondent.id)


@router.get("/{survey_id}/questions", response_model=QuestionGraph)
async def get_questions(
    survey_id: str,
    respondent: Respondent = Depends(get_current_respondent),
    db: Session = Depends(get_db)
) -> QuestionGraph:
    """Question graph: code buckets, nested questions, options and branching rules."""
    return SurveyEngine(db).questions(survey_id, respondent.id)


@router.get("/{survey_id}/response", response_model=ResponseDetail)
async def get_response(
    survey_id: str,
    respondent: Respondent = Depends(get_current_respondent),
    db: Session = Depends(get_db)
) -> ResponseDetail:
    """Current answers, visible questions and completion of the respondent's response."""
    return SurveyEngine(db).get_progress(survey_id, respondent.id)


@router.put("/{survey_id}/response/draft", response_model=ResponseOut)
async def save_draft(
    survey_id: str,
    request: DraftRequest,
    respondent: Respondent = Depends(get_current_respondent),
    db: Session = Depends(get_db)
) -> ResponseOut:
    """Save a (possibly partial) set of answers to the respondent's draft.

    Example request:
        {
            "answers": [
                {"questionId": "q1", "answerOptionIds": ["opt-yes"]},
                {"questionId": "q2", "answerText": "Acme Corp"}
            ]
        }
    """
    logger.info(
        f"Draft save with {len(request.answers)} answer(s)",
        extra={"survey_id": survey_id, "respondent_id": respondent.id}
    )
    return SurveyEngine(db).save_draft(survey_id, respondent.id, request.answers)


@router.post("/{survey_id}/response/submit", response_model=ResponseOut)
async def submit_response(
    survey_id: str,
    request: Optional[SubmitRequest] = Body(None),
    respondent: Respondent = Depends(get_current_respondent),
    db: Session = Depends(get_db)
) -> ResponseOut:
    """Submit the respondent's response, applying any final answers first.

    Fails with 422 and the list of unanswered question ids when a visible
    required question has no answer, and with 409 when already submitted.
    """
    answers = request.answers if request is not None else []
    return SurveyEngine(db).submit(survey_id, respondent.id, answers)
