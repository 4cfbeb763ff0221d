"""Default greeting structures and greeting rendering.

Greetings are free-form structures shown before (opening) and after
(closing) a survey. Their string leaves may use ``{{ full_name }}``,
``{{ survey_title }}`` and ``{{ role }}``.
"""

from typing import Optional

from tracer_survey.models.respondent import Respondent
from tracer_survey.models.survey import RespondentRole, Survey
from tracer_survey.services.template_renderer import TemplateRenderer, get_template_renderer
from tracer_survey.logging_config import get_logger

logger = get_logger(__name__)

SIGN_OFF = {
    "department": "Career Center and Tracer Study Office",
    "university": "University",
}


def default_greetings(target_role: RespondentRole, title: str) -> tuple[dict, dict]:
    """Build the opening and closing greetings used when a survey has none.

    Args:
        target_role: Role the survey targets
        title: Survey title

    Returns:
        Tuple of (opening, closing) structures
    """
    is_tracer_study = target_role == RespondentRole.ALUMNI

    opening = {
        "title": title,
        "greeting": "Dear {{ full_name }},",
        "addressee": (
            "To all graduates, wherever you are."
            if is_tracer_study
            else "To the supervisors of our graduates."
        ),
        "introduction": (
            "We are collecting data from every graduate of the past year to measure "
            "how our alumni continue their careers."
            if is_tracer_study
            else "We are asking employers to evaluate the performance of the graduates "
                 "they supervise."
        ),
        "indicators": {
            "title": "What this survey measures:" if is_tracer_study else "Aspects evaluated:",
            "items": (
                [
                    "Graduates who found employment",
                    "Graduates who became entrepreneurs",
                    "Graduates who continued their studies",
                    "Graduates not yet working",
                ]
                if is_tracer_study
                else [
                    "Integrity and professionalism",
                    "Expertise in their field",
                    "Communication and teamwork",
                    "Use of information technology",
                ]
            ),
        },
        "expectation": "Your participation in {{ survey_title }} is greatly appreciated.",
        "sign_off": dict(SIGN_OFF),
    }

    closing = {
        "title": "Thank You",
        "greeting": "Thank you, {{ full_name }}.",
        "message": "Your answers to {{ survey_title }} have been recorded.",
        "sign_off": dict(SIGN_OFF),
    }

    return opening, closing


def render_greetings(
    survey: Survey,
    respondent: Respondent,
    renderer: Optional[TemplateRenderer] = None,
) -> dict:
    """Render a survey's greetings for one respondent.

    Surveys without stored greetings fall back to default_greetings.

    Returns:
        Dictionary with "opening" and "closing" structures

    Raises:
        TemplateRenderError: If a greeting template is invalid
    """
    renderer = renderer or get_template_renderer()
    opening, closing = survey.greeting_opening, survey.greeting_closing
    if not opening or not closing:
        default_opening, default_closing = default_greetings(survey.target_role, survey.title)
        opening = opening or default_opening
        closing = closing or default_closing

    context = {
        "full_name": respondent.full_name,
        "survey_title": survey.title,
        "role": respondent.role.value,
    }
    logger.debug(f"Rendering greetings for survey {survey.id}")
    return {
        "opening": renderer.render_structure(opening, context),
        "closing": renderer.render_structure(closing, context),
    }
