"""도메인 레코드 <-> 데이터베이스 행 변환 및 저장

엔진은 메모리에서 불변식을 지키고, 변경이 끝난 레코드만 이 모듈을 통해 그대로 기록합니다.
시작 시에는 저장된 행으로 엔진을 복원하고, 비어 있으면 YAML 기본 데이터를 적재합니다.
"""

import logging
from pathlib import Path
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ..audit.audit_service import AuditEntity, AuditEntry, AuditEventType, AuditService
from ..core.deadline_service import DeadlineService
from ..core.holiday_calendar import DEFAULT_ADJUSTMENT_LIMIT
from ..core.models import (
    AdjustmentPolicy,
    ClientDeadlineExtension,
    DeadlineRuleConfiguration,
    PublicHoliday,
    TaxType,
    TriggerOffset,
)
from ..core.seed_loader import apply_seed, load_seed_dir
from .models import (
    ClientDeadlineExtensionDB,
    DeadlineRuleAuditLogDB,
    DeadlineRuleDB,
    PublicHolidayDB,
)

logger = logging.getLogger(__name__)


# ============================================================================
# 규칙
# ============================================================================

def rule_to_db(rule: DeadlineRuleConfiguration) -> DeadlineRuleDB:
    return DeadlineRuleDB(
        id=rule.rule_id,
        tax_type=rule.tax_type.value,
        rule_name=rule.rule_name,
        description=rule.description,
        trigger_type=rule.trigger_type,
        offset_amount=rule.offset.amount,
        offset_unit=rule.offset.unit.value,
        policy=rule.policy.value,
        statutory_minimum_days=rule.statutory_minimum_days,
        is_active=rule.is_active,
        activated_at=rule.activated_at,
        activation_sequence=rule.activation_sequence,
        effective_from=rule.effective_from,
        effective_to=rule.effective_to,
        created_at=rule.created_at,
        created_by=rule.created_by,
        updated_at=rule.updated_at,
        updated_by=rule.updated_by,
        deleted_at=rule.deleted_at,
    )


def rule_from_db(row: DeadlineRuleDB) -> DeadlineRuleConfiguration:
    return DeadlineRuleConfiguration(
        rule_id=row.id,
        tax_type=TaxType.parse(row.tax_type),
        offset=TriggerOffset(row.offset_amount, row.offset_unit),
        policy=AdjustmentPolicy.parse(row.policy),
        rule_name=row.rule_name,
        description=row.description,
        trigger_type=row.trigger_type,
        statutory_minimum_days=row.statutory_minimum_days,
        is_active=row.is_active,
        effective_from=row.effective_from,
        effective_to=row.effective_to,
        activated_at=row.activated_at,
        activation_sequence=row.activation_sequence or 0,
        created_by=row.created_by,
        created_at=row.created_at,
        updated_by=row.updated_by,
        updated_at=row.updated_at,
        deleted_at=row.deleted_at,
    )


def save_rules(db: Session, rules: Iterable[DeadlineRuleConfiguration]) -> None:
    """규칙 upsert (활성화처럼 여러 규칙이 함께 바뀌는 경우 한 트랜잭션으로 기록)"""
    for rule in rules:
        db.merge(rule_to_db(rule))


# ============================================================================
# 공휴일
# ============================================================================

def holiday_to_db(holiday: PublicHoliday) -> PublicHolidayDB:
    return PublicHolidayDB(
        id=holiday.holiday_id,
        date=holiday.holiday_date,
        name=holiday.name,
        year=holiday.year,
        is_recurring=holiday.recurring,
        description=holiday.description,
        created_at=holiday.created_at,
        created_by=holiday.created_by,
    )


def holiday_from_db(row: PublicHolidayDB) -> PublicHoliday:
    return PublicHoliday(
        holiday_id=row.id,
        holiday_date=row.date,
        name=row.name,
        recurring=row.is_recurring,
        description=row.description,
        created_by=row.created_by,
        created_at=row.created_at,
    )


def save_holiday(db: Session, holiday: PublicHoliday) -> None:
    db.merge(holiday_to_db(holiday))


def delete_holiday(db: Session, holiday_id: str) -> None:
    db.query(PublicHolidayDB).filter(PublicHolidayDB.id == holiday_id).delete()


# ============================================================================
# 연장
# ============================================================================

def extension_to_db(extension: ClientDeadlineExtension) -> ClientDeadlineExtensionDB:
    return ClientDeadlineExtensionDB(
        id=extension.extension_id,
        client_id=extension.client_id,
        tax_type=extension.tax_type.value,
        original_deadline=extension.original_deadline,
        extended_deadline=extension.extended_deadline,
        reason=extension.reason,
        granted_by=extension.granted_by,
        granted_at=extension.granted_at,
        sequence=extension.sequence,
        revoked_at=extension.revoked_at,
        revoked_by=extension.revoked_by,
        superseded_by=extension.superseded_by,
    )


def extension_from_db(row: ClientDeadlineExtensionDB) -> ClientDeadlineExtension:
    return ClientDeadlineExtension(
        extension_id=row.id,
        client_id=row.client_id,
        tax_type=TaxType.parse(row.tax_type),
        original_deadline=row.original_deadline,
        extended_deadline=row.extended_deadline,
        granted_by=row.granted_by,
        granted_at=row.granted_at,
        reason=row.reason,
        revoked_at=row.revoked_at,
        revoked_by=row.revoked_by,
        superseded_by=row.superseded_by,
        sequence=row.sequence or 0,
    )


def save_extensions(db: Session, extensions: Iterable[Optional[ClientDeadlineExtension]]) -> None:
    for extension in extensions:
        if extension is not None:
            db.merge(extension_to_db(extension))


# ============================================================================
# 감사 로그
# ============================================================================

def audit_to_db(entry: AuditEntry) -> DeadlineRuleAuditLogDB:
    return DeadlineRuleAuditLogDB(
        id=entry.entry_id,
        event_type=entry.event_type.value,
        entity_type=entry.entity_type.value,
        entity_id=entry.entity_id,
        action=entry.action,
        old_values=entry.old_values,
        new_values=entry.new_values,
        notes=entry.notes,
        changed_by=entry.user_id,
        changed_at=entry.timestamp,
    )


def audit_from_db(row: DeadlineRuleAuditLogDB) -> AuditEntry:
    return AuditEntry(
        event_type=AuditEventType(row.event_type),
        timestamp=row.changed_at,
        entity_type=AuditEntity(row.entity_type),
        entity_id=row.entity_id,
        user_id=row.changed_by,
        old_values=row.old_values,
        new_values=row.new_values,
        notes=row.notes,
        entry_id=row.id,
    )


def flush_audit(db: Session, audit_service: AuditService) -> int:
    """아직 저장하지 않은 변경 감사 엔트리를 기록"""
    pending = audit_service.take_pending_changes()
    for entry in pending:
        db.merge(audit_to_db(entry))
    return len(pending)


# ============================================================================
# 엔진 복원/초기화
# ============================================================================

def load_service(
    db: Session,
    audit_service: Optional[AuditService] = None,
    adjustment_limit: int = DEFAULT_ADJUSTMENT_LIMIT
) -> DeadlineService:
    """저장된 행으로 DeadlineService 복원"""
    audit_service = audit_service or AuditService()
    audit_service.load_entries([
        audit_from_db(row)
        for row in db.query(DeadlineRuleAuditLogDB).order_by(DeadlineRuleAuditLogDB.changed_at).all()
    ])

    service = DeadlineService.from_records(
        rules=[rule_from_db(row) for row in db.query(DeadlineRuleDB).all()],
        holidays=[holiday_from_db(row) for row in db.query(PublicHolidayDB).all()],
        extensions=[
            extension_from_db(row)
            for row in db.query(ClientDeadlineExtensionDB).order_by(ClientDeadlineExtensionDB.sequence).all()
        ],
        audit_service=audit_service,
        adjustment_limit=adjustment_limit,
    )
    logger.info("Loaded deadline engine from database: %s", service)
    return service


def save_service(db: Session, service: DeadlineService) -> None:
    """엔진의 전체 상태 기록 (기본 데이터 적재 직후 사용)"""
    save_rules(db, service.rule_store.list_rules(include_deleted=True))
    for holiday in service.holiday_calendar.all_holidays():
        save_holiday(db, holiday)
    save_extensions(db, service.extension_ledger.all_extensions())
    flush_audit(db, service.audit_service)


def bootstrap_service(
    db: Session,
    seed_dir: Optional[Path] = None,
    audit_service: Optional[AuditService] = None,
    adjustment_limit: int = DEFAULT_ADJUSTMENT_LIMIT
) -> DeadlineService:
    """엔진 복원, 저장된 규칙이 없으면 기본 데이터 적재 후 기록 (이미 있는 공휴일은 건너뜀)"""
    service = load_service(db, audit_service, adjustment_limit)

    if seed_dir is not None and len(service.rule_store) == 0:
        counts = apply_seed(service, load_seed_dir(seed_dir))
        if counts['rules'] or counts['holidays']:
            save_service(db, service)
            db.commit()

    return service
