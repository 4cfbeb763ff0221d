"""Request authentication dependencies.

Token issuance and session handling live outside this service. Requests
reach it with identity already established upstream:

- respondent endpoints carry the authenticated respondent's id in the
  X-Respondent-Id header
- admin endpoints carry the shared admin token in the X-Admin-Token header

Security: never log token values. Failed attempts are logged with client IP.
"""

import hmac

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from tracer_survey.config import get_settings
from tracer_survey.models.database import get_db
from tracer_survey.models.respondent import Respondent
from tracer_survey.logging_config import get_logger


logger = get_logger(__name__)

RESPONDENT_HEADER = "X-Respondent-Id"
ADMIN_TOKEN_HEADER = "X-Admin-Token"


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def is_valid_admin_token(token: str) -> bool:
    """Compare a token against ADMIN_API_TOKEN in constant time."""
    expected = get_settings().admin_api_token
    return hmac.compare_digest(token.encode(), expected.encode())


async def verify_admin_token(request: Request) -> None:
    """FastAPI dependency guarding admin endpoints.

    Raises:
        HTTPException(401): If the token header is missing
        HTTPException(403): If the token is invalid

    Usage:
        router = APIRouter(dependencies=[Depends(verify_admin_token)])
    """
    token = request.headers.get(ADMIN_TOKEN_HEADER)
    if not token:
        logger.warning(
            f"Missing {ADMIN_TOKEN_HEADER} header from IP: {_client_ip(request)}",
            extra={"client_ip": _client_ip(request)}
        )
        raise HTTPException(status_code=401, detail="Missing admin token")

    if not is_valid_admin_token(token):
        logger.warning(
            f"Invalid admin token from IP: {_client_ip(request)}",
            extra={"client_ip": _client_ip(request)}
        )
        raise HTTPException(status_code=403, detail="Invalid admin token")


async def get_current_respondent(
    request: Request,
    db: Session = Depends(get_db)
) -> Respondent:
    """FastAPI dependency resolving the authenticated respondent.

    Returns:
        Respondent identified by the X-Respondent-Id header

    Raises:
        HTTPException(401): If the header is missing or names no respondent
    """
    respondent_id = request.headers.get(RESPONDENT_HEADER, "").strip()
    if not respondent_id:
        raise HTTPException(status_code=401, detail="Missing respondent identity")

    respondent = db.get(Respondent, respondent_id)
    if respondent is None:
        logger.warning(
            f"Unknown respondent from IP: {_client_ip(request)}",
            extra={"client_ip": _client_ip(request), "respondent_id": respondent_id}
        )
        raise HTTPException(status_code=401, detail="Unknown respondent")

    return respondent
