"""Health check endpoint for monitoring and deployment verification.

Besides database connectivity, the check reports how many surveys currently
accept responses and how many YAML definitions are available for import, so
a deploy with an empty SURVEYS_DIR or no published survey is visible at a
glance.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tracer_survey.models.database import get_db
from tracer_survey.models.survey import Survey, SurveyStatus
from tracer_survey.services.survey_loader import get_definition_loader
from tracer_survey.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(db: Session = Depends(get_db)) -> dict:
    """Health check endpoint.

    Raises:
        HTTPException: If the database query fails (503 Service Unavailable)

    Example response:
        {
            "status": "healthy",
            "database": "connected",
            "published_surveys": 1,
            "definitions": ["tracer_study_alumni"]
        }
    """
    try:
        published = db.scalar(
            select(func.count(Survey.id)).where(Survey.status == SurveyStatus.PUBLISHED)
        )
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(
            status_code=503,
            detail="Service unavailable - database connection failed"
        )

    definitions = get_definition_loader().list_definitions()
    if published == 0:
        logger.warning("Health check: no published survey accepts responses")

    return {
        "status": "healthy",
        "database": "connected",
        "published_surveys": published,
        "definitions": definitions,
    }
