"""데이터베이스 모델 정의"""

from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean,
    Text, Date, JSON, Index
)
from sqlalchemy.orm import declarative_base
from datetime import datetime

Base = declarative_base()


class DeadlineRuleDB(Base):
    """마감일 규칙 테이블

    세목별 기산일 오프셋과 주말/공휴일 조정 정책을 저장합니다.
    삭제된 규칙도 deleted_at과 함께 보존됩니다.
    """
    __tablename__ = "deadline_rules"

    id = Column(String(36), primary_key=True)
    tax_type = Column(String(50), nullable=False, index=True)

    # 규칙 정보
    rule_name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    trigger_type = Column(String(50), nullable=False, default="PeriodEnd")

    # 오프셋과 조정 정책
    offset_amount = Column(Integer, nullable=False, comment="기산일 오프셋 (음수 허용)")
    offset_unit = Column(String(10), nullable=False, comment="days, months")
    policy = Column(String(50), nullable=False, comment="주말/공휴일 조정 정책")
    statutory_minimum_days = Column(Integer, nullable=True)

    # 활성 상태
    is_active = Column(Boolean, default=False, nullable=False)
    activated_at = Column(DateTime, nullable=True)
    activation_sequence = Column(Integer, default=0, nullable=False)

    # 유효기간 (양 끝 포함)
    effective_from = Column(Date, nullable=True)
    effective_to = Column(Date, nullable=True)

    # 추적 정보
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    created_by = Column(String(100), nullable=False)
    updated_at = Column(DateTime, nullable=True)
    updated_by = Column(String(100), nullable=True)
    deleted_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_deadline_rules_type_active", "tax_type", "is_active"),
    )

    def __repr__(self):
        return (
            f"<DeadlineRule(id={self.id}, tax_type={self.tax_type}, "
            f"offset={self.offset_amount} {self.offset_unit}, active={self.is_active})>"
        )


class PublicHolidayDB(Base):
    """공휴일 테이블"""
    __tablename__ = "public_holidays"

    id = Column(String(36), primary_key=True)
    date = Column(Date, nullable=False, unique=True, index=True)
    name = Column(String(200), nullable=False)
    year = Column(Integer, nullable=False, index=True)
    is_recurring = Column(Boolean, default=False, nullable=False, comment="매년 같은 월/일에 적용")
    description = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    created_by = Column(String(100), nullable=False)

    def __repr__(self):
        return f"<PublicHoliday(id={self.id}, date={self.date}, name={self.name})>"


class ClientDeadlineExtensionDB(Base):
    """고객별 마감일 연장 테이블

    철회된 연장도 revoked_at과 함께 보존됩니다.
    """
    __tablename__ = "client_deadline_extensions"

    id = Column(String(36), primary_key=True)
    client_id = Column(String(100), nullable=False, index=True)
    tax_type = Column(String(50), nullable=False)

    original_deadline = Column(Date, nullable=False)
    extended_deadline = Column(Date, nullable=False)
    reason = Column(Text, nullable=True)

    granted_by = Column(String(100), nullable=False)
    granted_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    sequence = Column(Integer, default=0, nullable=False)

    revoked_at = Column(DateTime, nullable=True)
    revoked_by = Column(String(100), nullable=True)
    superseded_by = Column(String(36), nullable=True)

    __table_args__ = (
        Index("ix_extensions_key", "client_id", "tax_type", "original_deadline"),
    )

    def __repr__(self):
        return (
            f"<ClientDeadlineExtension(id={self.id}, client_id={self.client_id}, "
            f"extended_deadline={self.extended_deadline}, revoked={self.revoked_at is not None})>"
        )


class DeadlineRuleAuditLogDB(Base):
    """규칙/공휴일/연장 변경 감사 로그 테이블"""
    __tablename__ = "deadline_rule_audit_logs"

    id = Column(String(36), primary_key=True)
    event_type = Column(String(50), nullable=False)
    entity_type = Column(String(20), nullable=False)
    entity_id = Column(String(100), nullable=False, index=True)
    action = Column(String(50), nullable=False, comment="Created, Updated, Activated ...")

    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)

    changed_by = Column(String(100), nullable=True)
    changed_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<DeadlineRuleAuditLog(id={self.id}, entity={self.entity_type}:{self.entity_id}, action={self.action})>"
