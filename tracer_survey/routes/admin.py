"""Admin endpoints for survey authoring and response review.

Every endpoint requires the X-Admin-Token header.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from tracer_survey.config import get_settings
from tracer_survey.middleware.auth import verify_admin_token
from tracer_survey.models.database import get_db
from tracer_survey.schemas.response import ResponseDetail, ResponseList, ResponseListItem
from tracer_survey.schemas.survey import (
    BuilderPayload,
    BuilderResult,
    CodeQuestionCreate,
    QuestionUpdate,
    ReorderRequest,
)
from tracer_survey.services.graph_repository import GraphRepository
from tracer_survey.services.response_repository import ResponseRepository
from tracer_survey.services.survey_engine import SurveyEngine
from tracer_survey.services.survey_loader import (
    DefinitionNotFoundError,
    DefinitionValidationError,
    get_definition_loader,
)
from tracer_survey.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/admin", dependencies=[Depends(verify_admin_token)])


# Responses

@router.get("/surveys/{survey_id}/responses", response_model=ResponseList)
async def list_responses(
    survey_id: str,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    submitted: Optional[bool] = Query(None),
    db: Session = Depends(get_db)
) -> ResponseList:
    """Paginated responses of a survey with completion and summary stats."""
    limit = limit or get_settings().default_page_size
    return ResponseRepository(db).list_responses(survey_id, page, limit, submitted)


@router.get("/surveys/{survey_id}/responses/complete", response_model=list[ResponseListItem])
async def list_complete_responses(
    survey_id: str,
    db: Session = Depends(get_db)
) -> list[ResponseListItem]:
    """Submitted responses with every visible required question answered."""
    return ResponseRepository(db).complete_responses(survey_id)


@router.get("/responses/{response_id}", response_model=ResponseDetail)
async def get_response_detail(
    response_id: str,
    db: Session = Depends(get_db)
) -> ResponseDetail:
    """Full answer set of one response."""
    return SurveyEngine(db).response_detail(response_id)


# Authoring

@router.post("/surveys/{survey_id}/codes", status_code=201)
async def create_code(
    survey_id: str,
    payload: CodeQuestionCreate,
    db: Session = Depends(get_db)
) -> dict:
    """Create a code bucket together with its questions."""
    code_question = GraphRepository(db).create_code_question(survey_id, payload)
    return {"id": code_question.id, "survey_id": survey_id, "code": code_question.code}


@router.delete("/surveys/{survey_id}/codes/{code}")
async def delete_code(
    survey_id: str,
    code: str,
    db: Session = Depends(get_db)
) -> dict:
    """Delete a code bucket and every question in it."""
    deleted = GraphRepository(db).delete_code_question(survey_id, code)
    return {"code": code, "deleted_questions": deleted}


@router.put("/surveys/{survey_id}/builder", response_model=BuilderResult)
async def save_builder(
    survey_id: str,
    payload: BuilderPayload,
    db: Session = Depends(get_db)
) -> BuilderResult:
    """Bulk save questions, options and (when given) branching rules."""
    return GraphRepository(db).save_builder(survey_id, payload)


@router.patch("/surveys/{survey_id}/questions/order")
async def reorder_questions(
    survey_id: str,
    payload: ReorderRequest,
    db: Session = Depends(get_db)
) -> dict:
    """Change the sort order of questions."""
    updated = GraphRepository(db).reorder_questions(survey_id, payload)
    return {"updated": updated}


@router.patch("/questions/{question_id}")
async def update_question(
    question_id: str,
    payload: QuestionUpdate,
    db: Session = Depends(get_db)
) -> dict:
    """Partially update one question."""
    question = GraphRepository(db).update_question(question_id, payload)
    return {
        "id": question.id,
        "question_text": question.question_text,
        "question_type": question.question_type.value,
        "is_required": question.is_required,
        "sort_order": question.sort_order,
        "page_number": question.page_number,
    }


@router.delete("/questions/{question_id}")
async def delete_question(
    question_id: str,
    db: Session = Depends(get_db)
) -> dict:
    """Delete a question, its children, options, branching rules and answers."""
    deleted = GraphRepository(db).delete_question_cascade(question_id)
    return {"id": question_id, "deleted_questions": deleted}


@router.post("/surveys/import/{definition_id}", response_model=BuilderResult)
async def import_survey(
    definition_id: str,
    db: Session = Depends(get_db)
) -> BuilderResult:
    """Create or update a survey from a YAML definition in SURVEYS_DIR."""
    loader = get_definition_loader()
    try:
        definition = loader.load_definition(definition_id)
    except DefinitionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DefinitionValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return GraphRepository(db).import_definition(definition)
