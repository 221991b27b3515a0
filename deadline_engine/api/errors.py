"""엔진 예외 -> HTTP 응답 변환"""

from fastapi import HTTPException, status

from ..core.errors import DeadlineEngineError

# 에러 코드별 HTTP 상태
STATUS_BY_CODE = {
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "NO_ACTIVE_RULE": status.HTTP_404_NOT_FOUND,
    "CONFLICT": status.HTTP_409_CONFLICT,
    "DUPLICATE_HOLIDAY": status.HTTP_409_CONFLICT,
    "ADJUSTMENT_LIMIT_EXCEEDED": status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def to_http_exception(error: DeadlineEngineError) -> HTTPException:
    """엔진 예외를 {"detail": {"code", "message"}} 형태의 HTTPException으로 변환"""
    return HTTPException(
        status_code=STATUS_BY_CODE.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=error.to_dict()
    )
