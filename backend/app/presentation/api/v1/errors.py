"""Map ServiceError kinds onto HTTP status codes."""

from fastapi import HTTPException, status

from app.domain.exceptions import ErrorKind, ServiceError

_STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CONSTRAINT_VIOLATION: status.HTTP_409_CONFLICT,
    ErrorKind.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    ErrorKind.PROVIDER: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.CONNECTION: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def to_http_exception(error: ServiceError) -> HTTPException:
    return HTTPException(
        status_code=_STATUS_BY_KIND.get(error.kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=error.user_message,
    )
