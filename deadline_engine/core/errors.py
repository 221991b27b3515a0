"""마감일 규칙 엔진 예외 계층

호출 계층이 "규칙 미설정", "잘못된 입력", "동시 변경 충돌"을 메시지 파싱 없이
타입과 code로 구분할 수 있도록 모든 실패를 명명된 예외로 표현합니다.

    DeadlineEngineError (base)
    +-- ValidationError
    +-- NotFound
    +-- NoActiveRule
    +-- Conflict
    +-- DuplicateHoliday
    +-- AdjustmentLimitExceeded
"""

from datetime import date
from typing import Any, Dict, Optional


class DeadlineEngineError(Exception):
    """엔진 예외 기본 클래스

    모든 하위 클래스는 기계가 읽을 수 있는 `code` 클래스 속성을 가집니다.
    """

    code: str = "DEADLINE_ENGINE_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """API 응답용 딕셔너리 (code와 설명만 노출)"""
        return {"code": self.code, "message": self.message}


class ValidationError(DeadlineEngineError):
    """잘못된 입력 (오프셋, 날짜, 필수 필드)"""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class NotFound(DeadlineEngineError):
    """참조한 ID가 존재하지 않음"""

    code: str = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class NoActiveRule(DeadlineEngineError):
    """해당 세목에 적용 가능한 활성 규칙이 없음

    기본값으로 대체하지 않습니다. 규칙 부재 자체가 보고 대상입니다.
    """

    code: str = "NO_ACTIVE_RULE"

    def __init__(self, tax_type: Any, as_of: Optional[date] = None):
        self.tax_type = tax_type
        self.as_of = as_of
        label = getattr(tax_type, "value", tax_type)
        if as_of is not None:
            message = f"No active deadline rule for {label} on {as_of.isoformat()}"
        else:
            message = f"No active deadline rule for {label}"
        super().__init__(message)


class Conflict(DeadlineEngineError):
    """활성 규칙 불변식을 깨뜨리거나 세목을 규칙 없이 남기는 작업"""

    code: str = "CONFLICT"


class DuplicateHoliday(DeadlineEngineError):
    """이미 등록된 날짜의 공휴일"""

    code: str = "DUPLICATE_HOLIDAY"

    def __init__(self, holiday_date: date):
        self.holiday_date = holiday_date
        super().__init__(f"Public holiday already exists on {holiday_date.isoformat()}")


class AdjustmentLimitExceeded(DeadlineEngineError):
    """영업일 탐색이 허용 횟수를 초과함 (비정상적인 공휴일 달력)"""

    code: str = "ADJUSTMENT_LIMIT_EXCEEDED"

    def __init__(self, start_date: date, limit: int, direction: str = "forward"):
        self.start_date = start_date
        self.limit = limit
        self.direction = direction
        super().__init__(
            f"No business day found within {limit} days {direction} of "
            f"{start_date.isoformat()}"
        )
