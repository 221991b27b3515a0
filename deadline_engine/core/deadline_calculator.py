"""DeadlineCalculator: 법정 마감일 해석 알고리즘"""

import logging
from datetime import date
from typing import Optional

from .deadline_trace import DeadlineResolution, ResolutionStep
from .errors import ValidationError
from .extension_ledger import ExtensionLedger
from .holiday_calendar import HolidayCalendar
from .models import AdjustmentPolicy, TaxType, as_calendar_date
from .rule_store import RuleStore

logger = logging.getLogger(__name__)


class DeadlineCalculator:
    """세목, 기산일, 고객으로 최종 마감일을 해석

    1. 기산일 기준 활성 규칙 조회 (없으면 NoActiveRule)
    2. 원 마감일 = 기산일 + 오프셋
    3. 규칙의 주말/공휴일 정책 적용
    4. 고객이 주어지면 (고객, 세목, 조정 마감일) 키의 유효한 연장 적용

    계산기 자체는 상태가 없으며, 세 협력 객체의 현재 상태와 입력만으로 결과가 정해집니다.
    """

    def __init__(
        self,
        rule_store: RuleStore,
        holiday_calendar: HolidayCalendar,
        extension_ledger: ExtensionLedger
    ):
        self.rule_store = rule_store
        self.holiday_calendar = holiday_calendar
        self.extension_ledger = extension_ledger

    def resolve(
        self,
        tax_type: TaxType,
        trigger_date: date,
        client_id: Optional[str] = None
    ) -> DeadlineResolution:
        """마감일 해석

        Args:
            tax_type: 세목
            trigger_date: 기산일 (예: 과세기간 종료일)
            client_id: 고객 ID (연장 조회용, 선택)

        Returns:
            최종 마감일과 규칙 ID, 조정 추적을 담은 DeadlineResolution

        Raises:
            NoActiveRule: 적용 가능한 활성 규칙이 없는 경우
            ValidationError: 입력이 잘못되었거나 날짜 범위를 벗어나는 경우
            AdjustmentLimitExceeded: 영업일 탐색 한도를 넘은 경우
        """
        tax_type = TaxType.parse(tax_type)
        trigger_date = as_calendar_date(trigger_date, "trigger_date")
        if client_id is not None:
            client_id = str(client_id).strip() or None

        # 1. 활성 규칙 (불변 레코드이므로 이후 규칙이 바뀌어도 이 계산에는 영향 없음)
        rule = self.rule_store.get_active_rule(tax_type, trigger_date)
        steps = [ResolutionStep(
            step_name="rule",
            description=f"Rule {rule.rule_id} ({rule.rule_name}) applied for {tax_type.value}",
            input_values={'tax_type': tax_type, 'trigger_date': trigger_date},
            output_value=rule.rule_id,
            applied_rule=rule.rule_id,
        )]

        # 2. 원 마감일
        try:
            raw_deadline = rule.offset.apply(trigger_date)
        except (OverflowError, ValueError):
            raise ValidationError(
                f"Offset {rule.offset} from {trigger_date.isoformat()} is outside the supported date range",
                field="trigger_date"
            ) from None
        steps.append(ResolutionStep(
            step_name="offset",
            description=f"Offset {rule.offset} from {trigger_date.isoformat()} gives {raw_deadline.isoformat()}",
            input_values={'trigger_date': trigger_date, 'offset': str(rule.offset)},
            output_value=raw_deadline,
            applied_rule=rule.rule_id,
        ))

        # 3. 주말/공휴일 조정
        try:
            adjusted_deadline = rule.policy.adjust(raw_deadline, self.holiday_calendar)
        except OverflowError:
            raise ValidationError(
                f"Adjusting {raw_deadline.isoformat()} runs outside the supported date range",
                field="trigger_date"
            ) from None
        steps.append(ResolutionStep(
            step_name="adjustment",
            description=self._describe_adjustment(rule.policy, raw_deadline, adjusted_deadline),
            input_values={'raw_deadline': raw_deadline, 'policy': rule.policy},
            output_value=adjusted_deadline,
            applied_rule=rule.rule_id,
        ))

        # 4. 고객별 연장
        deadline = adjusted_deadline
        extension_id = None
        if client_id is not None:
            extension = self.extension_ledger.get_active_extension(client_id, tax_type, adjusted_deadline)
            if extension is not None:
                deadline = extension.extended_deadline
                extension_id = extension.extension_id
                description = (
                    f"Extension {extension.extension_id} moved deadline from "
                    f"{adjusted_deadline.isoformat()} to {deadline.isoformat()}"
                )
            else:
                description = f"No active extension for client {client_id}"
            steps.append(ResolutionStep(
                step_name="extension",
                description=description,
                input_values={'client_id': client_id, 'original_deadline': adjusted_deadline},
                output_value=deadline,
                notes=extension.reason if extension is not None else None,
            ))

        resolution = DeadlineResolution(
            tax_type=tax_type.value,
            trigger_date=trigger_date,
            client_id=client_id,
            rule_id=rule.rule_id,
            raw_deadline=raw_deadline,
            adjusted_deadline=adjusted_deadline,
            deadline=deadline,
            extension_id=extension_id,
            steps=steps,
        )
        logger.debug(
            "Resolved %s deadline for trigger %s: %s (rule %s)",
            tax_type.value, trigger_date.isoformat(), deadline.isoformat(), rule.rule_id
        )
        return resolution

    def _describe_adjustment(self, policy: AdjustmentPolicy, raw: date, adjusted: date) -> str:
        if policy is AdjustmentPolicy.NO_ADJUSTMENT:
            return f"{policy.value}: deadline kept at {raw.isoformat()}"
        if raw == adjusted:
            return f"{policy.value}: {raw.isoformat()} is a business day, no change"
        return (
            f"{policy.value}: {raw.isoformat()} ({self._non_business_reason(raw)}) "
            f"moved to {adjusted.isoformat()}"
        )

    def _non_business_reason(self, day: date) -> str:
        holiday = self.holiday_calendar.holiday_on(day)
        if holiday is not None:
            return f"holiday: {holiday.name}"
        return day.strftime('%A')
