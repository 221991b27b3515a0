"""DeadlineService 및 감사 로그 테스트"""

import json
import pytest
from datetime import date

from deadline_engine.audit import AuditEntity, AuditEventType, AuditService
from deadline_engine.core import (
    Conflict,
    DeadlineService,
    NoActiveRule,
    TaxType,
)


def _actions(service, entity_type, entity_id):
    return [entry.action for entry in service.audit_trail(entity_type, entity_id)]


class TestRuleAudit:
    """규칙 변경 감사 테스트"""

    def test_create_and_update_recorded(self, make_definition):
        service = DeadlineService()
        rule = service.create_rule(make_definition(15), actor="admin")
        service.update_rule(rule.rule_id, make_definition(21), actor="manager")

        trail = service.audit_trail(AuditEntity.RULE, rule.rule_id)

        assert [entry.action for entry in trail] == ["Created", "Updated"]
        assert trail[0].old_values is None
        assert trail[1].old_values["offset"] == {"amount": 15, "unit": "days"}
        assert trail[1].new_values["offset"] == {"amount": 21, "unit": "days"}
        assert trail[1].user_id == "manager"

    def test_activation_records_implicit_deactivation(self, service, make_definition):
        previous = service.list_active_rules(TaxType.GST, date(2024, 3, 16))[0]
        rule = service.create_rule(make_definition(21), actor="admin")

        service.activate_rule(rule.rule_id, actor="admin")

        assert _actions(service, AuditEntity.RULE, rule.rule_id) == ["Created", "Activated"]
        assert _actions(service, AuditEntity.RULE, previous.rule_id)[-1] == "Deactivated"

    def test_idempotent_activation_not_recorded(self, service):
        rule = service.list_active_rules(TaxType.GST, date(2024, 3, 16))[0]
        before = len(service.audit_trail(AuditEntity.RULE, rule.rule_id))

        service.activate_rule(rule.rule_id)

        assert len(service.audit_trail(AuditEntity.RULE, rule.rule_id)) == before

    def test_delete_with_replacement(self, service, make_definition):
        old = service.list_active_rules(TaxType.GST, date(2024, 3, 16))[0]
        new = service.create_rule(make_definition(21))

        service.delete_rule(old.rule_id, replacement_id=new.rule_id, actor="admin")

        assert _actions(service, AuditEntity.RULE, old.rule_id)[-1] == "Deleted"
        assert _actions(service, AuditEntity.RULE, new.rule_id)[-1] == "Activated"
        assert service.calculate_deadline(TaxType.GST, date(2024, 3, 16)).rule_id == new.rule_id

    def test_failed_mutation_not_recorded(self, service):
        rule = service.list_active_rules(TaxType.GST, date(2024, 3, 16))[0]
        before = len(service.audit_service.entries)

        with pytest.raises(Conflict):
            service.delete_rule(rule.rule_id)

        assert len(service.audit_service.entries) == before

    def test_deactivate_then_calculate(self, service):
        rule = service.list_active_rules(TaxType.GST, date(2024, 3, 16))[0]

        service.deactivate_rule(rule.rule_id)

        with pytest.raises(NoActiveRule):
            service.calculate_deadline(TaxType.GST, date(2024, 3, 16))


class TestHolidayAndExtensionAudit:
    """공휴일/연장 감사 테스트"""

    def test_holiday_lifecycle(self, service):
        holiday = service.add_holiday(date(2024, 4, 1), "Easter Monday", actor="admin")

        assert service.calculate_deadline(TaxType.GST, date(2024, 3, 16)).deadline == date(2024, 4, 2)

        service.delete_holiday(holiday.holiday_id, actor="admin")

        assert service.calculate_deadline(TaxType.GST, date(2024, 3, 16)).deadline == date(2024, 4, 1)
        assert _actions(service, AuditEntity.HOLIDAY, holiday.holiday_id) == ["Created", "Deleted"]

    def test_grant_supersede_revoke(self, service):
        first = service.grant_extension("C-1001", TaxType.GST, date(2024, 4, 1), date(2024, 4, 15), "officer")
        second = service.grant_extension("C-1001", TaxType.GST, date(2024, 4, 1), date(2024, 4, 30), "officer")

        assert _actions(service, AuditEntity.EXTENSION, first.extension_id) == ["Granted", "Superseded"]
        assert service.calculate_deadline(TaxType.GST, date(2024, 3, 16), "C-1001").deadline == date(2024, 4, 30)

        service.revoke_extension(second.extension_id, actor="manager")
        service.revoke_extension(second.extension_id, actor="manager")

        assert _actions(service, AuditEntity.EXTENSION, second.extension_id) == ["Granted", "Revoked"]
        assert [e.extension_id for e in service.get_client_extensions("C-1001")] == [
            second.extension_id, first.extension_id
        ]


class TestAuditService:
    """AuditService 테스트"""

    def test_pending_changes_drained_once(self):
        audit = AuditService()
        audit.record_change(AuditEventType.RULE_CREATED, AuditEntity.RULE, "r-1", "admin", new_values={"a": 1})

        assert len(audit.take_pending_changes()) == 1
        assert audit.take_pending_changes() == []
        assert len(audit.entries) == 1

    def test_writes_json_lines(self, tmp_path):
        log_file = tmp_path / "audit" / "audit.jsonl"
        audit = AuditService(log_file=str(log_file))

        audit.record_change(AuditEventType.HOLIDAY_CREATED, AuditEntity.HOLIDAY, "h-1", "admin")

        record = json.loads(log_file.read_text(encoding="utf-8").strip())
        assert record["event_type"] == "HOLIDAY_CREATED"
        assert record["action"] == "Created"
        assert record["entity_type"] == "holiday"

    def test_audit_report(self):
        audit = AuditService()
        audit.record_change(AuditEventType.RULE_CREATED, AuditEntity.RULE, "r-1", "admin")
        audit.record_change(AuditEventType.RULE_ACTIVATED, AuditEntity.RULE, "r-1", "manager")

        report = audit.generate_audit_report(AuditEntity.RULE, "r-1")

        assert report["total_events"] == 2
        assert report["summary"]["event_counts"] == {"RULE_CREATED": 1, "RULE_ACTIVATED": 1}
        assert report["summary"]["last_action"] == "Activated"
        assert report["summary"]["last_changed_by"] == "manager"
        assert report["summary"]["changed_by"] == ["admin", "manager"]

    def test_empty_audit_report(self):
        report = AuditService().generate_audit_report(AuditEntity.RULE, "r-2")

        assert report["total_events"] == 0
        assert report["events"] == []
        assert report["summary"] is None
