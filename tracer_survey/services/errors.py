"""Exceptions raised by the survey response engine.

Every error carries the HTTP status the API surfaces it with, so route
handlers can re-raise engine errors without translating them one by one.
"""

from typing import Optional


class SurveyEngineError(Exception):
    """Base class for survey engine errors."""
    status_code = 500
    error = "survey_engine_error"

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# Not found (404)

class NotFoundError(SurveyEngineError):
    status_code = 404
    error = "not_found"


class SurveyNotFoundError(NotFoundError):
    def __init__(self, survey_id: str):
        super().__init__(f"Survey not found: {survey_id}", {"survey_id": survey_id})


class QuestionNotFoundError(NotFoundError):
    def __init__(self, question_id: str):
        super().__init__(f"Question not found: {question_id}", {"question_id": question_id})


class ResponseNotFoundError(NotFoundError):
    def __init__(self, response_id: str):
        super().__init__(f"Response not found: {response_id}", {"response_id": response_id})


class RespondentNotFoundError(NotFoundError):
    def __init__(self, respondent_id: str):
        super().__init__(
            f"Respondent not found: {respondent_id}", {"respondent_id": respondent_id}
        )


# Validation (422)

class ValidationError(SurveyEngineError):
    status_code = 422
    error = "validation_error"


class ResponseValidationError(ValidationError):
    """Submit attempted while visible required questions are unanswered."""

    def __init__(self, question_ids: list[str]):
        self.question_ids = list(question_ids)
        super().__init__(
            f"{len(self.question_ids)} required question(s) unanswered",
            {"question_ids": self.question_ids},
        )


class InvalidAnswerError(ValidationError):
    """Answer payload does not fit the question it answers."""

    def __init__(self, question_id: str, reason: str):
        self.question_id = question_id
        super().__init__(
            f"Invalid answer for question {question_id}: {reason}",
            {"question_id": question_id, "reason": reason},
        )


class GraphStructureError(ValidationError):
    """Authoring change would produce an invalid question graph."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors), {"errors": self.errors})


# Conflict (409)

class ConflictError(SurveyEngineError):
    status_code = 409
    error = "conflict"


class ResponseAlreadySubmittedError(ConflictError):
    def __init__(self, response_id: str):
        super().__init__(
            f"Response already submitted: {response_id}", {"response_id": response_id}
        )


class SurveyClosedError(ConflictError):
    def __init__(self, survey_id: str, status: str):
        super().__init__(
            f"Survey {survey_id} is not accepting responses (status: {status})",
            {"survey_id": survey_id, "status": status},
        )


class DuplicateCodeError(ConflictError):
    def __init__(self, survey_id: str, code: str):
        super().__init__(
            f"Code '{code}' already exists in survey {survey_id}",
            {"survey_id": survey_id, "code": code},
        )


# Forbidden (403)

class RespondentNotEligibleError(SurveyEngineError):
    status_code = 403
    error = "forbidden"

    def __init__(self, survey_id: str, respondent_id: str, reason: str):
        super().__init__(
            f"Respondent {respondent_id} is not eligible for survey {survey_id}: {reason}",
            {"survey_id": survey_id, "respondent_id": respondent_id},
        )


# Integrity (500)

class GraphIntegrityError(SurveyEngineError):
    """Dangling reference or failed ordered delete. Indicates a bug."""
    status_code = 500
    error = "integrity_error"
