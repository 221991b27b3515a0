"""DeadlineCalculator 테스트"""

import pytest
from datetime import date, timedelta

from deadline_engine.core import (
    AdjustmentLimitExceeded,
    DeadlineCalculator,
    ExtensionLedger,
    HolidayCalendar,
    NoActiveRule,
    RuleDefinition,
    RuleStore,
    TaxType,
    ValidationError,
)


@pytest.fixture
def calculator(rule_store, holiday_calendar, extension_ledger):
    return DeadlineCalculator(rule_store, holiday_calendar, extension_ledger)


class TestEndToEndScenarios:
    """대표 시나리오"""

    def test_weekend_rolls_forward_to_monday(self, calculator, rule_store, make_definition, scenario_date):
        """GST +15일: 2024-03-16(토) -> 2024-03-31(일) -> 2024-04-01(월)"""
        rule = rule_store.create(make_definition(15), activate=True)

        result = calculator.resolve(TaxType.GST, scenario_date)

        assert result.raw_deadline == date(2024, 3, 31)
        assert result.adjusted_deadline == date(2024, 4, 1)
        assert result.deadline == date(2024, 4, 1)
        assert result.rule_id == rule.rule_id
        assert result.extension_id is None
        assert "RollForwardToNextBusinessDay: 2024-03-31 (Sunday) moved to 2024-04-01" in result.adjustments

    def test_client_extension_applies(
        self, calculator, rule_store, extension_ledger, make_definition, scenario_date
    ):
        """조정 마감일에 유효한 연장이 있으면 연장 마감일"""
        rule_store.create(make_definition(15), activate=True)
        extension = extension_ledger.grant(
            "C-1001", TaxType.GST, date(2024, 4, 1), date(2024, 4, 15), "officer"
        )

        result = calculator.resolve(TaxType.GST, scenario_date, client_id="C-1001")

        assert result.deadline == date(2024, 4, 15)
        assert result.extension_id == extension.extension_id
        assert extension.extension_id in result.adjustments[-1]

    def test_no_active_rule_is_hard_stop(self, calculator, rule_store, make_definition):
        """PAYE 규칙이 없으면 NoActiveRule"""
        rule_store.create(make_definition(), activate=True)

        with pytest.raises(NoActiveRule) as exc_info:
            calculator.resolve(TaxType.PAYE, date(2024, 3, 16))

        assert exc_info.value.code == "NO_ACTIVE_RULE"


class TestAdjustment:
    """주말/공휴일 조정 테스트"""

    def test_holiday_after_weekend(self, calculator, rule_store, holiday_calendar, make_definition, scenario_date):
        rule_store.create(make_definition(15), activate=True)
        holiday_calendar.add_holiday(date(2024, 4, 1), "Easter Monday")

        result = calculator.resolve(TaxType.GST, scenario_date)

        assert result.deadline == date(2024, 4, 2)

    def test_holiday_named_in_trace(self, calculator, rule_store, holiday_calendar, make_definition):
        rule_store.create(make_definition(10), activate=True)
        holiday_calendar.add_holiday(date(2024, 4, 1), "Easter Monday")

        result = calculator.resolve(TaxType.GST, date(2024, 3, 22))

        assert "holiday: Easter Monday" in result.adjustments[2]

    def test_roll_back(self, calculator, rule_store, make_definition, scenario_date):
        rule_store.create(make_definition(15, policy="RollBackToPriorBusinessDay"), activate=True)

        result = calculator.resolve(TaxType.GST, scenario_date)

        assert result.deadline == date(2024, 3, 29)

    def test_no_adjustment_keeps_weekend(self, calculator, rule_store, make_definition, scenario_date):
        rule_store.create(make_definition(15, policy="NoAdjustment"), activate=True)

        result = calculator.resolve(TaxType.GST, scenario_date)

        assert result.deadline == date(2024, 3, 31)
        assert result.adjustments[2] == "NoAdjustment: deadline kept at 2024-03-31"

    def test_business_day_unchanged(self, calculator, rule_store, make_definition):
        rule_store.create(make_definition(15), activate=True)

        result = calculator.resolve(TaxType.GST, date(2024, 3, 15))

        assert result.deadline == date(2024, 3, 30) + timedelta(days=2)
        result = calculator.resolve(TaxType.GST, date(2024, 3, 14))
        assert result.deadline == date(2024, 3, 29)
        assert "is a business day, no change" in result.adjustments[2]

    def test_adjustment_limit_propagates(self, rule_store, extension_ledger, make_definition):
        calendar = HolidayCalendar(adjustment_limit=1)
        calendar.add_holiday(date(2024, 4, 1), "Holiday")
        rule_store.create(make_definition(15), activate=True)
        calculator = DeadlineCalculator(rule_store, calendar, extension_ledger)

        with pytest.raises(AdjustmentLimitExceeded):
            calculator.resolve(TaxType.GST, date(2024, 3, 16))

    def test_roll_forward_never_lands_on_non_business_day(self, calculator, rule_store, holiday_calendar, make_definition):
        """다음 영업일 정책의 결과는 주말이나 공휴일이 아님"""
        rule_store.create(make_definition(15), activate=True)
        for holiday_date, name in [
            (date(2024, 1, 1), "New Year's Day"),
            (date(2024, 3, 29), "Good Friday"),
            (date(2024, 4, 1), "Easter Monday"),
            (date(2024, 4, 10), "Eid al-Fitr"),
            (date(2024, 4, 27), "Independence Day"),
            (date(2024, 12, 25), "Christmas Day"),
            (date(2024, 12, 26), "Boxing Day"),
        ]:
            holiday_calendar.add_holiday(holiday_date, name)

        trigger = date(2024, 1, 1)
        while trigger < date(2025, 1, 1):
            deadline = calculator.resolve(TaxType.GST, trigger).deadline
            assert deadline.weekday() < 5
            assert not holiday_calendar.is_holiday(deadline)
            trigger += timedelta(days=1)


class TestMonthOffset:
    """월 단위 오프셋 테스트"""

    @pytest.mark.parametrize("trigger, expected", [
        (date(2024, 1, 31), date(2024, 2, 29)),
        (date(2023, 1, 31), date(2023, 2, 28)),
    ])
    def test_month_end_clamping(self, calculator, rule_store, trigger, expected):
        rule_store.create(
            RuleDefinition(tax_type="CorporateIncomeTax", offset="1 months", policy="NoAdjustment"),
            activate=True
        )

        result = calculator.resolve(TaxType.CORPORATE_INCOME_TAX, trigger)

        assert result.raw_deadline == expected


class TestExtensionLookup:
    """연장 조회 테스트"""

    def test_extension_keyed_on_adjusted_deadline(
        self, calculator, rule_store, extension_ledger, make_definition, scenario_date
    ):
        """원 마감일(일요일) 기준 연장은 적용되지 않음"""
        rule_store.create(make_definition(15), activate=True)
        extension_ledger.grant("C-1001", TaxType.GST, date(2024, 3, 31), date(2024, 4, 15), "officer")

        result = calculator.resolve(TaxType.GST, scenario_date, client_id="C-1001")

        assert result.deadline == date(2024, 4, 1)
        assert result.adjustments[-1] == "No active extension for client C-1001"

    def test_revoked_extension_ignored(self, calculator, rule_store, extension_ledger, make_definition, scenario_date):
        rule_store.create(make_definition(15), activate=True)
        extension = extension_ledger.grant("C-1001", TaxType.GST, date(2024, 4, 1), date(2024, 4, 15), "officer")
        extension_ledger.revoke(extension.extension_id)

        result = calculator.resolve(TaxType.GST, scenario_date, client_id="C-1001")

        assert result.deadline == date(2024, 4, 1)

    def test_other_client_extension_ignored(self, calculator, rule_store, extension_ledger, make_definition, scenario_date):
        rule_store.create(make_definition(15), activate=True)
        extension_ledger.grant("C-2002", TaxType.GST, date(2024, 4, 1), date(2024, 4, 15), "officer")

        assert calculator.resolve(TaxType.GST, scenario_date, client_id="C-1001").deadline == date(2024, 4, 1)
        assert calculator.resolve(TaxType.GST, scenario_date).deadline == date(2024, 4, 1)


class TestResolutionTrace:
    """해석 추적 테스트"""

    def test_trace_steps_in_order(self, calculator, rule_store, make_definition, scenario_date):
        rule_store.create(make_definition(15), activate=True)

        result = calculator.resolve(TaxType.GST, scenario_date, client_id="C-1001")

        assert [step.step_name for step in result.steps] == ["rule", "offset", "adjustment", "extension"]
        assert len(result.adjustments) == 4

    def test_to_dict_and_summary(self, calculator, rule_store, make_definition, scenario_date):
        rule = rule_store.create(make_definition(15), activate=True)

        result = calculator.resolve(TaxType.GST, scenario_date)
        data = result.to_dict()

        assert data["deadline"] == "2024-04-01"
        assert data["raw_deadline"] == "2024-03-31"
        assert data["rule_id"] == rule.rule_id
        assert data["steps"][2]["output_value"] == "2024-04-01"
        assert "2024-04-01" in result.get_summary()

    def test_result_unaffected_by_later_rule_change(self, calculator, rule_store, make_definition, scenario_date):
        """이미 반환된 결과는 규칙 변경 후에도 그대로"""
        rule = rule_store.create(make_definition(15), activate=True)
        result = calculator.resolve(TaxType.GST, scenario_date)

        rule_store.update(rule.rule_id, make_definition(21))

        assert result.deadline == date(2024, 4, 1)
        assert calculator.resolve(TaxType.GST, scenario_date).deadline == date(2024, 4, 8)

    def test_invalid_trigger_date(self, calculator, rule_store, make_definition):
        rule_store.create(make_definition(15), activate=True)

        with pytest.raises(ValidationError):
            calculator.resolve(TaxType.GST, "16/03/2024")

    def test_unknown_tax_type(self, calculator):
        with pytest.raises(ValidationError):
            calculator.resolve("VAT", date(2024, 3, 16))

    def test_date_overflow_is_validation_error(self, calculator, rule_store, make_definition):
        rule_store.create(make_definition(15), activate=True)

        with pytest.raises(ValidationError):
            calculator.resolve(TaxType.GST, date(9999, 12, 25))
