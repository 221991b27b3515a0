"""DeadlineService: 마감일 규칙 엔진 퍼사드

규칙 저장소, 공휴일 달력, 연장 원장, 마감일 계산기를 하나의 소유 인스턴스로 묶고
모든 변경을 감사 로그에 남깁니다. 전역 싱글톤 없이 호출자가 인스턴스를 만들어 보유합니다.
"""

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from ..audit.audit_service import AuditEntity, AuditEventType, AuditService
from .deadline_calculator import DeadlineCalculator
from .deadline_trace import DeadlineResolution
from .extension_ledger import ExtensionLedger
from .holiday_calendar import DEFAULT_ADJUSTMENT_LIMIT, HolidayCalendar
from .models import (
    ClientDeadlineExtension,
    DeadlineRuleConfiguration,
    PublicHoliday,
    RuleDefinition,
    TaxType,
)
from .rule_store import RuleChangeSet, RuleStore

logger = logging.getLogger(__name__)


class DeadlineService:
    """마감일 규칙 엔진 퍼사드

    Attributes:
        rule_store: 규칙 저장소
        holiday_calendar: 공휴일 달력
        extension_ledger: 연장 원장
        calculator: 마감일 계산기
        audit_service: 감사 로그
    """

    def __init__(
        self,
        rule_store: Optional[RuleStore] = None,
        holiday_calendar: Optional[HolidayCalendar] = None,
        extension_ledger: Optional[ExtensionLedger] = None,
        audit_service: Optional[AuditService] = None,
        adjustment_limit: int = DEFAULT_ADJUSTMENT_LIMIT
    ):
        self.rule_store = rule_store or RuleStore()
        self.holiday_calendar = holiday_calendar or HolidayCalendar(adjustment_limit=adjustment_limit)
        self.extension_ledger = extension_ledger or ExtensionLedger()
        self.audit_service = audit_service or AuditService()
        self.calculator = DeadlineCalculator(
            self.rule_store,
            self.holiday_calendar,
            self.extension_ledger
        )

    @classmethod
    def from_records(
        cls,
        rules: Iterable[DeadlineRuleConfiguration] = (),
        holidays: Iterable[PublicHoliday] = (),
        extensions: Iterable[ClientDeadlineExtension] = (),
        audit_service: Optional[AuditService] = None,
        adjustment_limit: int = DEFAULT_ADJUSTMENT_LIMIT
    ) -> "DeadlineService":
        """저장된 레코드로 엔진 복원"""
        return cls(
            rule_store=RuleStore(rules),
            holiday_calendar=HolidayCalendar(holidays, adjustment_limit=adjustment_limit),
            extension_ledger=ExtensionLedger(extensions),
            audit_service=audit_service,
        )

    # ------------------------------------------------------------------
    # 규칙
    # ------------------------------------------------------------------

    def list_active_rules(
        self,
        tax_type: Optional[TaxType] = None,
        as_of: Optional[date] = None
    ) -> List[DeadlineRuleConfiguration]:
        return self.rule_store.list_active_rules(tax_type, as_of)

    def get_rule(self, rule_id: str) -> DeadlineRuleConfiguration:
        return self.rule_store.get_rule(rule_id)

    def create_rule(
        self,
        definition: RuleDefinition,
        actor: str = "system",
        activate: bool = False
    ) -> DeadlineRuleConfiguration:
        changes = self.rule_store.create_with_changes(definition, created_by=actor, activate=activate)
        self._audit_rule(AuditEventType.RULE_CREATED, changes.rule, actor, None)
        self._audit_deactivations(changes)
        return changes.rule

    def update_rule(
        self,
        rule_id: str,
        definition: RuleDefinition,
        actor: str = "system"
    ) -> DeadlineRuleConfiguration:
        changes = self.rule_store.update_with_changes(rule_id, definition, updated_by=actor)
        self._audit_rule(AuditEventType.RULE_UPDATED, changes.rule, actor, changes.before)
        return changes.rule

    def activate_rule(self, rule_id: str, actor: str = "system") -> DeadlineRuleConfiguration:
        changes = self.rule_store.activate_with_changes(rule_id, activated_by=actor)
        if changes.changed:
            self._audit_rule(AuditEventType.RULE_ACTIVATED, changes.rule, actor, changes.before)
            self._audit_deactivations(changes)
        return changes.rule

    def deactivate_rule(self, rule_id: str, actor: str = "system") -> DeadlineRuleConfiguration:
        changes = self.rule_store.deactivate_with_changes(rule_id, deactivated_by=actor)
        if changes.changed:
            self._audit_rule(AuditEventType.RULE_DEACTIVATED, changes.rule, actor, changes.before)
        return changes.rule

    def delete_rule(
        self,
        rule_id: str,
        replacement_id: Optional[str] = None,
        actor: str = "system"
    ) -> DeadlineRuleConfiguration:
        changes = self.rule_store.delete_with_changes(rule_id, replacement_id=replacement_id, deleted_by=actor)
        if changes.changed:
            self._audit_rule(AuditEventType.RULE_DELETED, changes.rule, actor, changes.before)
            if changes.activated is not None:
                before, after = changes.activated
                self._audit_rule(
                    AuditEventType.RULE_ACTIVATED, after, actor, before,
                    notes=f"Replaces deleted rule {rule_id}"
                )
            self._audit_deactivations(changes)
        return changes.rule

    def rules_for_type(self, tax_type: TaxType) -> List[DeadlineRuleConfiguration]:
        """세목의 모든 규칙 (삭제 포함) - 활성화 후 일괄 저장용"""
        return self.rule_store.list_rules(tax_type, include_deleted=True)

    # ------------------------------------------------------------------
    # 마감일 계산
    # ------------------------------------------------------------------

    def calculate_deadline(
        self,
        tax_type: TaxType,
        trigger_date: date,
        client_id: Optional[str] = None
    ) -> DeadlineResolution:
        return self.calculator.resolve(tax_type, trigger_date, client_id)

    # ------------------------------------------------------------------
    # 공휴일
    # ------------------------------------------------------------------

    def get_holidays(self, year: int) -> List[PublicHoliday]:
        return self.holiday_calendar.list_holidays(year)

    def add_holiday(
        self,
        holiday_date: date,
        name: str,
        recurring: bool = False,
        description: Optional[str] = None,
        actor: str = "system"
    ) -> PublicHoliday:
        holiday = self.holiday_calendar.add_holiday(
            holiday_date, name,
            recurring=recurring,
            description=description,
            created_by=actor
        )
        self.audit_service.record_change(
            AuditEventType.HOLIDAY_CREATED, AuditEntity.HOLIDAY, holiday.holiday_id,
            actor, new_values=holiday.to_dict()
        )
        return holiday

    def delete_holiday(self, holiday_id: str, actor: str = "system") -> PublicHoliday:
        holiday = self.holiday_calendar.remove_holiday(holiday_id)
        self.audit_service.record_change(
            AuditEventType.HOLIDAY_DELETED, AuditEntity.HOLIDAY, holiday.holiday_id,
            actor, old_values=holiday.to_dict()
        )
        return holiday

    # ------------------------------------------------------------------
    # 고객별 연장
    # ------------------------------------------------------------------

    def grant_extension(
        self,
        client_id: str,
        tax_type: TaxType,
        original_deadline: date,
        extended_deadline: date,
        granted_by: str,
        reason: Optional[str] = None
    ) -> ClientDeadlineExtension:
        extension, superseded = self.grant_extension_with_supersession(
            client_id, tax_type, original_deadline, extended_deadline, granted_by, reason
        )
        return extension

    def grant_extension_with_supersession(
        self,
        client_id: str,
        tax_type: TaxType,
        original_deadline: date,
        extended_deadline: date,
        granted_by: str,
        reason: Optional[str] = None
    ):
        extension, superseded = self.extension_ledger.grant_with_supersession(
            client_id, tax_type, original_deadline, extended_deadline, granted_by, reason
        )
        if superseded is not None:
            self.audit_service.record_change(
                AuditEventType.EXTENSION_SUPERSEDED, AuditEntity.EXTENSION, superseded.extension_id,
                granted_by, new_values=superseded.to_dict(),
                notes=f"Superseded by {extension.extension_id}"
            )
        self.audit_service.record_change(
            AuditEventType.EXTENSION_GRANTED, AuditEntity.EXTENSION, extension.extension_id,
            granted_by, new_values=extension.to_dict()
        )
        return extension, superseded

    def get_client_extensions(self, client_id: str) -> List[ClientDeadlineExtension]:
        return self.extension_ledger.list_by_client(client_id)

    def revoke_extension(self, extension_id: str, actor: str = "system") -> ClientDeadlineExtension:
        before = self.extension_ledger.get_extension(extension_id)
        extension = self.extension_ledger.revoke(extension_id, revoked_by=actor)
        if before.is_active:
            self.audit_service.record_change(
                AuditEventType.EXTENSION_REVOKED, AuditEntity.EXTENSION, extension_id,
                actor, old_values=before.to_dict(), new_values=extension.to_dict()
            )
        return extension

    # ------------------------------------------------------------------
    # 감사
    # ------------------------------------------------------------------

    def audit_trail(self, entity_type: AuditEntity, entity_id: str):
        return self.audit_service.get_entity_audit_trail(entity_type, entity_id)

    def audit_report(self, entity_type: AuditEntity, entity_id: str) -> Dict[str, Any]:
        """변경 이력 보고서 (이벤트 목록과 요약)"""
        return self.audit_service.generate_audit_report(entity_type, entity_id)

    def _audit_deactivations(self, changes: RuleChangeSet) -> None:
        """활성화에 따라 함께 비활성화된 규칙 기록 (잠금 안에서 확정된 전후 레코드 사용)"""
        activated_id = changes.activated[1].rule_id if changes.activated else changes.rule.rule_id
        for before, after in changes.deactivated:
            self._audit_rule(
                AuditEventType.RULE_DEACTIVATED, after, after.updated_by, before,
                notes=f"Superseded by activation of {activated_id}"
            )

    def _audit_rule(
        self,
        event_type: AuditEventType,
        rule: DeadlineRuleConfiguration,
        actor: str,
        before: Optional[DeadlineRuleConfiguration],
        notes: Optional[str] = None
    ) -> None:
        self.audit_service.record_change(
            event_type, AuditEntity.RULE, rule.rule_id, actor,
            old_values=before.to_dict() if before is not None else None,
            new_values=rule.to_dict(),
            notes=notes
        )

    def __str__(self) -> str:
        return f"DeadlineService({self.rule_store}, {self.holiday_calendar}, {len(self.extension_ledger)} extensions)"
