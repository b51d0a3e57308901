from fastapi import HTTPException, status

from services.common.errors import (
    ValidationError, NotFoundError, ConflictError, ExternalUnavailable, TransactionIntegrityError,
)
from services.common.result import Result

STATUS_BY_ERROR = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    ExternalUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
    TransactionIntegrityError: status.HTTP_409_CONFLICT,
}

def unwrap(result: Result):
    """성공이면 값을, 실패면 오류 종류에 맞는 HTTPException 을 던진다"""
    if result.ok:
        return result.value
    status_code = STATUS_BY_ERROR.get(type(result.error), status.HTTP_400_BAD_REQUEST)
    raise HTTPException(status_code=status_code, detail=result.reason)
