from __future__ import annotations

import logging

from fastapi import HTTPException, status

from app.services.errors import (
    NotFoundError,
    ProgressError,
    QuizAttemptNotAllowedError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def to_http(exc: ProgressError) -> HTTPException:
    """Map a service error to the response the router raises instead."""
    if isinstance(exc, ValidationError):
        logger.warning("Rejected input: %s", exc.reason)
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.reason)
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, QuizAttemptNotAllowedError):
        logger.warning("Quiz attempt rejected: %s", exc)
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    # Anything else is a bug, not a client error
    raise exc
