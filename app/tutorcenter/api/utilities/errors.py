# app/tutorcenter/api/utilities/errors.py

from fastapi import HTTPException, status

from ...services.exceptions import ServiceError, NotFoundError, ConflictError, AuthorizationError


def to_http_exception(error: ServiceError) -> HTTPException:
    """Maps a service layer error onto the HTTP status the routers answer with."""
    if isinstance(error, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, ConflictError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(error, AuthorizationError):
        code = status.HTTP_403_FORBIDDEN
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=str(error))
