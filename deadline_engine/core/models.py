"""마감일 규칙 엔진 도메인 모델

세목(TaxType), 기산일 오프셋(TriggerOffset), 주말/공휴일 조정 정책(AdjustmentPolicy),
마감일 규칙(DeadlineRuleConfiguration), 공휴일(PublicHoliday),
고객별 기한 연장(ClientDeadlineExtension)을 정의합니다.

모든 레코드는 불변 객체입니다. 변경은 dataclasses.replace()로 새 레코드를 만들어
저장소에서 통째로 교체하는 방식으로만 이루어집니다.
"""

import calendar
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, TYPE_CHECKING

from .errors import ValidationError

if TYPE_CHECKING:
    from .holiday_calendar import HolidayCalendar


MAX_OFFSET_DAYS = 3660
MAX_OFFSET_MONTHS = 120


class TaxType(str, Enum):
    """세목 (도메인이 정의하는 닫힌 집합)"""
    GST = "GST"
    PAYE = "PAYE"
    CORPORATE_INCOME_TAX = "CorporateIncomeTax"
    PERSONAL_INCOME_TAX = "PersonalIncomeTax"
    INCOME_TAX = "IncomeTax"
    PAYROLL_TAX = "PayrollTax"
    EXCISE_DUTY = "ExciseDuty"
    WITHHOLDING_TAX = "WithholdingTax"

    @classmethod
    def parse(cls, value: Any) -> "TaxType":
        """문자열 또는 TaxType을 TaxType으로 변환

        Raises:
            ValidationError: 알 수 없는 세목
        """
        if isinstance(value, cls):
            return value
        for member in cls:
            if value == member.value or value == member.name:
                return member
        raise ValidationError(f"Unknown tax type: {value!r}", field="tax_type")


class OffsetUnit(str, Enum):
    """오프셋 단위"""
    DAYS = "days"
    MONTHS = "months"


def as_calendar_date(value: Any, field_name: str) -> date:
    """date/datetime/ISO 문자열을 시간 성분 없는 date로 변환

    Raises:
        ValidationError: 날짜로 해석할 수 없는 값
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError:
            pass
    raise ValidationError(f"{field_name} must be a calendar date, got {value!r}", field=field_name)


def add_months(start: date, months: int) -> date:
    """달력 월 단위 덧셈

    대상 월에 같은 일자가 없으면 그 달의 마지막 날로 맞춥니다.
    (예: 2024-01-31 + 1개월 = 2024-02-29)
    """
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(start.day, last_day))


@dataclass(frozen=True)
class TriggerOffset:
    """기산일에 더하는 부호 있는 기간

    Attributes:
        amount: 기간 크기 (음수 허용)
        unit: 'days'는 달력일, 'months'는 달력월로 더함

    Example:
        >>> TriggerOffset(15, OffsetUnit.DAYS).apply(date(2024, 3, 16))
        datetime.date(2024, 3, 31)
    """

    amount: int
    unit: OffsetUnit = OffsetUnit.DAYS

    def __post_init__(self):
        """초기화 후 검증"""
        amount = self.amount
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            raise ValidationError(f"Offset amount must be a number, got {amount!r}", field="offset")
        if isinstance(amount, float):
            if not math.isfinite(amount) or not amount.is_integer():
                raise ValidationError(
                    f"Offset amount must be a finite whole number, got {amount!r}",
                    field="offset"
                )
            object.__setattr__(self, 'amount', int(amount))

        try:
            unit = OffsetUnit(self.unit)
        except ValueError:
            raise ValidationError(f"Unknown offset unit: {self.unit!r}", field="offset") from None
        object.__setattr__(self, 'unit', unit)

        limit = MAX_OFFSET_DAYS if unit is OffsetUnit.DAYS else MAX_OFFSET_MONTHS
        if abs(self.amount) > limit:
            raise ValidationError(
                f"Offset of {self.amount} {unit.value} exceeds the allowed range (±{limit})",
                field="offset"
            )

    @classmethod
    def parse(cls, value: Any) -> "TriggerOffset":
        """TriggerOffset, 매핑({'amount', 'unit'}), "15 days" 형식 문자열을 변환

        Raises:
            ValidationError: 형식이 잘못된 경우
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            if 'amount' not in value:
                raise ValidationError("Offset requires an 'amount'", field="offset")
            return cls(value['amount'], value.get('unit', OffsetUnit.DAYS))
        if isinstance(value, str):
            parts = value.split()
            if len(parts) == 2:
                try:
                    amount = int(parts[0])
                except ValueError:
                    raise ValidationError(f"Malformed offset: {value!r}", field="offset") from None
                unit = parts[1].lower()
                if not unit.endswith('s'):
                    unit += 's'
                return cls(amount, unit)
        raise ValidationError(f"Malformed offset: {value!r}", field="offset")

    def apply(self, trigger_date: date) -> date:
        """기산일에 오프셋 적용 (원 마감일 계산)"""
        if self.unit is OffsetUnit.DAYS:
            return trigger_date + timedelta(days=self.amount)
        return add_months(trigger_date, self.amount)

    def to_dict(self) -> Dict[str, Any]:
        return {'amount': self.amount, 'unit': self.unit.value}

    def __str__(self) -> str:
        return f"{self.amount:+d} {self.unit.value}"


def _roll_forward(raw: date, holiday_calendar: "HolidayCalendar") -> date:
    return holiday_calendar.next_business_day(raw)


def _roll_back(raw: date, holiday_calendar: "HolidayCalendar") -> date:
    return holiday_calendar.prior_business_day(raw)


def _no_adjustment(raw: date, holiday_calendar: "HolidayCalendar") -> date:
    return raw


class AdjustmentPolicy(str, Enum):
    """주말/공휴일 조정 정책

    각 정책은 (날짜, 달력) -> 날짜 순수 함수와 짝을 이룹니다.
    """
    ROLL_FORWARD = "RollForwardToNextBusinessDay"
    ROLL_BACK = "RollBackToPriorBusinessDay"
    NO_ADJUSTMENT = "NoAdjustment"

    @classmethod
    def parse(cls, value: Any) -> "AdjustmentPolicy":
        """문자열 또는 AdjustmentPolicy를 변환

        Raises:
            ValidationError: 알 수 없는 정책
        """
        if isinstance(value, cls):
            return value
        for member in cls:
            if value == member.value or value == member.name:
                return member
        raise ValidationError(f"Unknown weekend/holiday policy: {value!r}", field="policy")

    def adjust(self, raw: date, holiday_calendar: "HolidayCalendar") -> date:
        """원 마감일에 정책 적용"""
        return _POLICY_FUNCTIONS[self](raw, holiday_calendar)


_POLICY_FUNCTIONS: Dict[AdjustmentPolicy, Callable[[date, "HolidayCalendar"], date]] = {
    AdjustmentPolicy.ROLL_FORWARD: _roll_forward,
    AdjustmentPolicy.ROLL_BACK: _roll_back,
    AdjustmentPolicy.NO_ADJUSTMENT: _no_adjustment,
}


@dataclass
class RuleDefinition:
    """규칙 생성/수정 입력

    저장소가 식별자, 활성 상태, 타임스탬프를 관리하므로
    호출자가 지정할 수 있는 필드만 담습니다.
    """

    tax_type: Any
    offset: Any
    policy: Any = AdjustmentPolicy.ROLL_FORWARD
    rule_name: str = ""
    description: Optional[str] = None
    trigger_type: str = "PeriodEnd"
    statutory_minimum_days: Optional[int] = None
    effective_from: Optional[Any] = None
    effective_to: Optional[Any] = None

    def normalized(self) -> "RuleDefinition":
        """타입을 정규화하고 검증한 사본 반환

        Raises:
            ValidationError: 오프셋, 정책, 유효기간, 법정 최소일수 위반
        """
        tax_type = TaxType.parse(self.tax_type)
        offset = TriggerOffset.parse(self.offset)
        policy = AdjustmentPolicy.parse(self.policy)

        effective_from = None
        if self.effective_from is not None:
            effective_from = as_calendar_date(self.effective_from, "effective_from")
        effective_to = None
        if self.effective_to is not None:
            effective_to = as_calendar_date(self.effective_to, "effective_to")
        if effective_from and effective_to and effective_to < effective_from:
            raise ValidationError("effective_to cannot precede effective_from", field="effective_to")

        minimum = self.statutory_minimum_days
        if minimum is not None:
            if isinstance(minimum, bool) or not isinstance(minimum, int) or minimum < 0:
                raise ValidationError(
                    "statutory_minimum_days must be a non-negative integer",
                    field="statutory_minimum_days"
                )
            span = offset.amount if offset.unit is OffsetUnit.DAYS else offset.amount * 28
            if span < minimum:
                raise ValidationError(
                    f"Offset ({offset}) cannot be less than statutory minimum ({minimum} days)",
                    field="offset"
                )

        return RuleDefinition(
            tax_type=tax_type,
            offset=offset,
            policy=policy,
            rule_name=self.rule_name or f"{tax_type.value} deadline",
            description=self.description,
            trigger_type=self.trigger_type or "PeriodEnd",
            statutory_minimum_days=minimum,
            effective_from=effective_from,
            effective_to=effective_to,
        )


@dataclass(frozen=True)
class DeadlineRuleConfiguration:
    """세목별 마감일 규칙

    Attributes:
        rule_id: 규칙 고유 식별자
        tax_type: 세목
        offset: 기산일 오프셋
        policy: 주말/공휴일 조정 정책
        is_active: 활성 여부 (세목당 최대 하나)
        effective_from / effective_to: 유효기간 (양 끝 포함, None이면 열린 구간)
        activation_sequence: 활성화 순번 (클수록 최근)
        deleted_at: 삭제 시각 (향후 해석 대상에서만 제외, 레코드는 보존)
    """

    rule_id: str
    tax_type: TaxType
    offset: TriggerOffset
    policy: AdjustmentPolicy
    rule_name: str = ""
    description: Optional[str] = None
    trigger_type: str = "PeriodEnd"
    statutory_minimum_days: Optional[int] = None
    is_active: bool = False
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None
    activated_at: Optional[datetime] = None
    activation_sequence: int = 0
    created_by: str = "system"
    created_at: datetime = field(default_factory=datetime.now)
    updated_by: Optional[str] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def is_effective_on(self, target_date: date) -> bool:
        """유효기간이 target_date를 포함하는지 확인"""
        if self.effective_from is not None and target_date < self.effective_from:
            return False
        if self.effective_to is not None and target_date > self.effective_to:
            return False
        return True

    def is_eligible_on(self, target_date: date) -> bool:
        """해당 날짜의 마감일 해석에 사용할 수 있는지 확인"""
        return self.is_active and not self.is_deleted and self.is_effective_on(target_date)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rule_id': self.rule_id,
            'tax_type': self.tax_type.value,
            'offset': self.offset.to_dict(),
            'policy': self.policy.value,
            'rule_name': self.rule_name,
            'description': self.description,
            'trigger_type': self.trigger_type,
            'statutory_minimum_days': self.statutory_minimum_days,
            'is_active': self.is_active,
            'effective_from': _iso(self.effective_from),
            'effective_to': _iso(self.effective_to),
            'activated_at': _iso(self.activated_at),
            'activation_sequence': self.activation_sequence,
            'created_by': self.created_by,
            'created_at': _iso(self.created_at),
            'updated_by': self.updated_by,
            'updated_at': _iso(self.updated_at),
            'deleted_at': _iso(self.deleted_at),
        }

    def __str__(self) -> str:
        status = "active" if self.is_active else "inactive"
        return f"DeadlineRule({self.rule_id} {self.tax_type.value} {self.offset}, {status})"


@dataclass(frozen=True)
class PublicHoliday:
    """공휴일

    recurring이 True이면 매년 같은 월/일에 적용됩니다.
    """

    holiday_id: str
    holiday_date: date
    name: str
    recurring: bool = False
    description: Optional[str] = None
    created_by: str = "system"
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def year(self) -> int:
        return self.holiday_date.year

    @property
    def month_day(self) -> Tuple[int, int]:
        return (self.holiday_date.month, self.holiday_date.day)

    def occurs_on(self, target_date: date) -> bool:
        if self.recurring:
            return (target_date.month, target_date.day) == self.month_day
        return target_date == self.holiday_date

    def occurrence_in(self, year: int) -> Optional[date]:
        """해당 연도의 실제 공휴일 날짜 (없으면 None)"""
        if not self.recurring:
            return self.holiday_date if self.holiday_date.year == year else None
        month, day = self.month_day
        if day > calendar.monthrange(year, month)[1]:
            return None
        return date(year, month, day)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'holiday_id': self.holiday_id,
            'date': self.holiday_date.isoformat(),
            'name': self.name,
            'year': self.year,
            'recurring': self.recurring,
            'description': self.description,
            'created_by': self.created_by,
            'created_at': _iso(self.created_at),
        }


@dataclass(frozen=True)
class ClientDeadlineExtension:
    """고객별 마감일 연장

    연장은 법정 마감일을 늦추기만 합니다. 철회해도 레코드는 감사용으로 남습니다.
    """

    extension_id: str
    client_id: str
    tax_type: TaxType
    original_deadline: date
    extended_deadline: date
    granted_by: str
    granted_at: datetime = field(default_factory=datetime.now)
    reason: Optional[str] = None
    revoked_at: Optional[datetime] = None
    revoked_by: Optional[str] = None
    superseded_by: Optional[str] = None
    sequence: int = 0

    @property
    def is_active(self) -> bool:
        return self.revoked_at is None

    @property
    def key(self) -> Tuple[str, TaxType, date]:
        return (self.client_id, self.tax_type, self.original_deadline)

    @property
    def extension_days(self) -> int:
        return (self.extended_deadline - self.original_deadline).days

    def to_dict(self) -> Dict[str, Any]:
        return {
            'extension_id': self.extension_id,
            'client_id': self.client_id,
            'tax_type': self.tax_type.value,
            'original_deadline': self.original_deadline.isoformat(),
            'extended_deadline': self.extended_deadline.isoformat(),
            'extension_days': self.extension_days,
            'granted_by': self.granted_by,
            'granted_at': _iso(self.granted_at),
            'reason': self.reason,
            'revoked_at': _iso(self.revoked_at),
            'revoked_by': self.revoked_by,
            'superseded_by': self.superseded_by,
            'is_active': self.is_active,
        }


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None
