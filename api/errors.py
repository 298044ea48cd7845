"""
Mapping from rotation errors to HTTP errors.

- NotFound -> 404
- AlreadyEnrolled, LeadNotAssigned -> 409
- BrokerNotEligible, ProtectedFieldError -> 422
- ContentionTimeout -> 503 with Retry-After (the caller may retry)
"""

from __future__ import annotations

from fastapi import HTTPException

from domain.errors import (
    AlreadyEnrolled,
    BrokerNotEligible,
    ContentionTimeout,
    LeadNotAssigned,
    NotFound,
    ProtectedFieldError,
    RotationError,
)

RETRY_AFTER_SECONDS = 1


def rotation_http_error(error: RotationError) -> HTTPException:
    if isinstance(error, NotFound):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, (AlreadyEnrolled, LeadNotAssigned)):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, (BrokerNotEligible, ProtectedFieldError)):
        return HTTPException(status_code=422, detail=str(error))
    if isinstance(error, ContentionTimeout):
        return HTTPException(
            status_code=503,
            detail=f"{error}. Retry the request.",
            headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
        )
    return HTTPException(status_code=500, detail=str(error))


__all__ = ["RETRY_AFTER_SECONDS", "rotation_http_error"]
