"""공용 테스트 픽스처"""

import pytest
from datetime import date

from deadline_engine.core import (
    DeadlineService,
    ExtensionLedger,
    HolidayCalendar,
    RuleDefinition,
    RuleStore,
    TaxType,
)


def gst_definition(amount: int = 15, policy: str = "RollForwardToNextBusinessDay", **kwargs) -> RuleDefinition:
    """GST 규칙 정의 (기본: 15일 후, 다음 영업일로 이월)"""
    return RuleDefinition(
        tax_type=TaxType.GST,
        offset={"amount": amount, "unit": "days"},
        policy=policy,
        **kwargs
    )


@pytest.fixture
def make_definition():
    """RuleDefinition 생성 함수"""
    return gst_definition


@pytest.fixture
def holiday_calendar():
    return HolidayCalendar()


@pytest.fixture
def rule_store():
    return RuleStore()


@pytest.fixture
def extension_ledger():
    return ExtensionLedger()


@pytest.fixture
def service():
    """GST 15일 규칙이 활성화된 DeadlineService"""
    engine = DeadlineService()
    engine.create_rule(gst_definition(), actor="admin", activate=True)
    return engine


@pytest.fixture
def scenario_date():
    """토요일 기산일 (+15일 = 2024-03-31 일요일)"""
    return date(2024, 3, 16)
