"""
核心错误 -> HTTP 异常
"""
from fastapi import HTTPException, status

from hmis_core.errors import ConflictError, HMISError, NotFoundError, ValidationError


def to_http_exception(e: HMISError) -> HTTPException:
    """ValidationError -> 400, NotFoundError -> 404, ConflictError -> 409"""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    if isinstance(e, ConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    if isinstance(e, ValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.message)
