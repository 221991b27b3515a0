"""핵심 비즈니스 로직"""

from .errors import (
    DeadlineEngineError,
    ValidationError,
    NotFound,
    NoActiveRule,
    Conflict,
    DuplicateHoliday,
    AdjustmentLimitExceeded,
)
from .models import (
    TaxType,
    OffsetUnit,
    TriggerOffset,
    AdjustmentPolicy,
    RuleDefinition,
    DeadlineRuleConfiguration,
    PublicHoliday,
    ClientDeadlineExtension,
)
from .holiday_calendar import HolidayCalendar
from .rule_store import RuleChangeSet, RuleStore
from .extension_ledger import ExtensionLedger
from .deadline_trace import ResolutionStep, DeadlineResolution
from .deadline_calculator import DeadlineCalculator
from .deadline_service import DeadlineService

__all__ = [
    'DeadlineEngineError',
    'ValidationError',
    'NotFound',
    'NoActiveRule',
    'Conflict',
    'DuplicateHoliday',
    'AdjustmentLimitExceeded',
    'TaxType',
    'OffsetUnit',
    'TriggerOffset',
    'AdjustmentPolicy',
    'RuleDefinition',
    'DeadlineRuleConfiguration',
    'PublicHoliday',
    'ClientDeadlineExtension',
    'HolidayCalendar',
    'RuleStore',
    'RuleChangeSet',
    'ExtensionLedger',
    'ResolutionStep',
    'DeadlineResolution',
    'DeadlineCalculator',
    'DeadlineService',
]
