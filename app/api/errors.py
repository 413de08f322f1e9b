import logging
from fastapi import HTTPException, status

from app.utils.exceptions import (
    AlreadyCompleted,
    NotFound,
    PersistenceError,
    PracticeError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def to_http_exception(exc: Exception, action: str) -> HTTPException:
    """
    Map a service error to the HTTP error the route should raise

    Args:
        exc: error raised by a service
        action: short description for logs and the generic 500 message

    Returns:
        HTTPException: ready to raise
    """
    if isinstance(exc, HTTPException):
        return exc
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, NotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, AlreadyCompleted):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, PersistenceError):
        logger.error(f"{action} failed: {exc}")
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
    if isinstance(exc, PracticeError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    logger.error(f"{action} failed: {exc}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"{action} failed"
    )
