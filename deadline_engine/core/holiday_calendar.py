"""HolidayCalendar: 공휴일 달력과 영업일 계산"""

import logging
import threading
from dataclasses import replace
from datetime import MAXYEAR, MINYEAR, date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import uuid4

from .errors import AdjustmentLimitExceeded, DuplicateHoliday, NotFound, ValidationError
from .models import PublicHoliday, as_calendar_date

logger = logging.getLogger(__name__)

DEFAULT_ADJUSTMENT_LIMIT = 14


class HolidayCalendar:
    """공휴일 집합과 영업일 탐색

    영업일은 토요일/일요일이 아니고 공휴일도 아닌 날입니다.
    조회는 잠금 없이 수행되며, 추가/삭제만 단일 잠금으로 직렬화됩니다.

    Attributes:
        adjustment_limit: 영업일 탐색 최대 이동 일수
    """

    def __init__(
        self,
        holidays: Optional[Iterable[PublicHoliday]] = None,
        adjustment_limit: int = DEFAULT_ADJUSTMENT_LIMIT
    ):
        """
        Args:
            holidays: 초기 공휴일 (ID 유지)
            adjustment_limit: 영업일 탐색 최대 이동 일수
        """
        if adjustment_limit < 0:
            raise ValidationError("adjustment_limit must not be negative", field="adjustment_limit")

        self.adjustment_limit = adjustment_limit
        self._holidays: Dict[str, PublicHoliday] = {}
        self._by_date: Dict[date, str] = {}
        self._recurring: Dict[Tuple[int, int], str] = {}
        self._lock = threading.Lock()

        for holiday in holidays or []:
            self.restore(holiday)

    # ------------------------------------------------------------------
    # 조회
    # ------------------------------------------------------------------

    def is_holiday(self, target_date: date) -> bool:
        """공휴일 여부 (달력 날짜 기준, 시간 성분 무시)"""
        return self.holiday_on(target_date) is not None

    def holiday_on(self, target_date: date) -> Optional[PublicHoliday]:
        """해당 날짜의 공휴일, 없으면 None"""
        target_date = as_calendar_date(target_date, "date")
        holiday_id = self._by_date.get(target_date)
        if holiday_id is None:
            holiday_id = self._recurring.get((target_date.month, target_date.day))
        if holiday_id is None:
            return None
        return self._holidays.get(holiday_id)

    def is_business_day(self, target_date: date) -> bool:
        target_date = as_calendar_date(target_date, "date")
        return target_date.weekday() < 5 and not self.is_holiday(target_date)

    def next_business_day(self, target_date: date) -> date:
        """target_date가 영업일이면 그대로, 아니면 다음 영업일

        Raises:
            AdjustmentLimitExceeded: adjustment_limit일 안에 영업일이 없는 경우
        """
        return self._walk(target_date, step=1)

    def prior_business_day(self, target_date: date) -> date:
        """target_date가 영업일이면 그대로, 아니면 직전 영업일

        Raises:
            AdjustmentLimitExceeded: adjustment_limit일 안에 영업일이 없는 경우
        """
        return self._walk(target_date, step=-1)

    def _walk(self, start: date, step: int) -> date:
        start = as_calendar_date(start, "date")
        current = start
        for _ in range(self.adjustment_limit):
            if self.is_business_day(current):
                return current
            current += timedelta(days=step)
        if self.is_business_day(current):
            return current

        direction = "forward" if step > 0 else "backward"
        logger.error(
            "Business-day walk exceeded %d days %s of %s",
            self.adjustment_limit, direction, start.isoformat()
        )
        raise AdjustmentLimitExceeded(start, self.adjustment_limit, direction)

    def get_holiday(self, holiday_id: str) -> PublicHoliday:
        """
        Raises:
            NotFound: ID가 없는 경우
        """
        holiday = self._holidays.get(holiday_id)
        if holiday is None:
            raise NotFound("PublicHoliday", holiday_id)
        return holiday

    def list_holidays(self, year: int) -> List[PublicHoliday]:
        """해당 연도의 공휴일 목록 (날짜순)

        매년 반복 공휴일은 그 연도의 날짜로 투영해 반환합니다.

        Raises:
            ValidationError: 연도가 달력 범위(1..9999)를 벗어난 경우
        """
        if isinstance(year, bool) or not isinstance(year, int) or not MINYEAR <= year <= MAXYEAR:
            raise ValidationError(
                f"year must be between {MINYEAR} and {MAXYEAR}, got {year!r}", field="year"
            )

        result = []
        for holiday in list(self._holidays.values()):
            occurrence = holiday.occurrence_in(year)
            if occurrence is None:
                continue
            if occurrence != holiday.holiday_date:
                holiday = replace(holiday, holiday_date=occurrence)
            result.append(holiday)
        return sorted(result, key=lambda h: h.holiday_date)

    def all_holidays(self) -> List[PublicHoliday]:
        """저장된 원본 공휴일 전체"""
        return sorted(self._holidays.values(), key=lambda h: h.holiday_date)

    # ------------------------------------------------------------------
    # 변경
    # ------------------------------------------------------------------

    def add_holiday(
        self,
        holiday_date: date,
        name: str,
        recurring: bool = False,
        description: Optional[str] = None,
        created_by: str = "system"
    ) -> PublicHoliday:
        """공휴일 추가

        Raises:
            ValidationError: 이름이 비었거나 날짜가 잘못된 경우
            DuplicateHoliday: 같은 날짜가 이미 있는 경우
        """
        holiday_date = as_calendar_date(holiday_date, "date")
        if not name or not name.strip():
            raise ValidationError("Holiday name is required", field="name")

        holiday = PublicHoliday(
            holiday_id=str(uuid4()),
            holiday_date=holiday_date,
            name=name.strip(),
            recurring=recurring,
            description=description,
            created_by=created_by,
            created_at=datetime.now()
        )

        with self._lock:
            self._insert(holiday)

        logger.info("Added public holiday %s on %s", holiday.name, holiday_date.isoformat())
        return holiday

    def restore(self, holiday: PublicHoliday) -> PublicHoliday:
        """저장소에서 읽은 공휴일을 ID 그대로 적재

        Raises:
            DuplicateHoliday: 같은 날짜가 이미 있는 경우
        """
        with self._lock:
            self._insert(holiday)
        return holiday

    def remove_holiday(self, holiday_id: str) -> PublicHoliday:
        """공휴일 삭제

        Raises:
            NotFound: ID가 없는 경우
        """
        with self._lock:
            holiday = self._holidays.get(holiday_id)
            if holiday is None:
                raise NotFound("PublicHoliday", holiday_id)

            if holiday.recurring:
                del self._recurring[holiday.month_day]
            else:
                del self._by_date[holiday.holiday_date]
            del self._holidays[holiday_id]

        logger.info("Removed public holiday %s (%s)", holiday.name, holiday_id)
        return holiday

    def _insert(self, holiday: PublicHoliday) -> None:
        # 호출자가 self._lock을 잡고 있어야 함
        if holiday.holiday_id in self._holidays:
            raise DuplicateHoliday(holiday.holiday_date)
        if holiday.holiday_date in self._by_date or holiday.month_day in self._recurring:
            raise DuplicateHoliday(holiday.holiday_date)
        if holiday.recurring and any((d.month, d.day) == holiday.month_day for d in self._by_date):
            raise DuplicateHoliday(holiday.holiday_date)

        self._holidays[holiday.holiday_id] = holiday
        if holiday.recurring:
            self._recurring[holiday.month_day] = holiday.holiday_id
        else:
            self._by_date[holiday.holiday_date] = holiday.holiday_id

    def __len__(self) -> int:
        return len(self._holidays)

    def __str__(self) -> str:
        return f"HolidayCalendar({len(self)} holidays, limit={self.adjustment_limit})"
