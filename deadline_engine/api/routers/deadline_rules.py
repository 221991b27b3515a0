"""마감일 규칙 및 마감일 계산 API 라우터"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from ...audit.audit_service import AuditEntity
from ...core import DeadlineEngineError, DeadlineService, RuleDefinition, TaxType
from ...database import get_db
from ...database import repository
from ..dependencies import get_engine
from ..errors import to_http_exception
from ..schemas import (
    AuditLogResponse,
    AuditReportResponse,
    CalculateDeadlineRequest,
    CreateRuleRequest,
    DeadlineResponse,
    RuleActionRequest,
    RuleListResponse,
    RuleRequest,
    RuleResponse,
)

router = APIRouter()


def _rule_response(rule) -> RuleResponse:
    return RuleResponse(**rule.to_dict())


def _definition_from_request(request: RuleRequest) -> RuleDefinition:
    return RuleDefinition(
        tax_type=request.tax_type,
        offset=request.offset.model_dump(),
        policy=request.policy,
        rule_name=request.rule_name,
        description=request.description,
        trigger_type=request.trigger_type,
        statutory_minimum_days=request.statutory_minimum_days,
        effective_from=request.effective_from,
        effective_to=request.effective_to,
    )


def _persist_rules(db: Session, engine: DeadlineService, tax_type: TaxType) -> None:
    """세목의 모든 규칙과 감사 로그를 한 트랜잭션으로 기록

    활성화/삭제는 같은 세목의 다른 규칙도 바꾸므로 세목 단위로 저장합니다.
    """
    repository.save_rules(db, engine.rules_for_type(tax_type))
    repository.flush_audit(db, engine.audit_service)
    db.commit()


@router.get("/", response_model=RuleListResponse)
async def list_active_rules(
    tax_type: Optional[str] = Query(None, description="세목 필터"),
    as_of: Optional[date] = Query(None, description="기준일 (기본값: 오늘)"),
    engine: DeadlineService = Depends(get_engine)
):
    """활성 규칙 목록

    기준일에 유효기간이 걸치는 활성 규칙만 반환합니다.
    """
    try:
        parsed = TaxType.parse(tax_type) if tax_type else None
        rules = engine.list_active_rules(parsed, as_of)
    except DeadlineEngineError as e:
        raise to_http_exception(e)

    return RuleListResponse(
        rules=[_rule_response(rule) for rule in rules],
        total=len(rules)
    )


@router.post("/calculate", response_model=DeadlineResponse)
async def calculate_deadline(
    request: CalculateDeadlineRequest,
    engine: DeadlineService = Depends(get_engine)
):
    """마감일 계산

    활성 규칙의 오프셋, 주말/공휴일 조정, 고객별 연장을 차례로 적용합니다.
    """
    try:
        resolution = engine.calculate_deadline(
            request.tax_type,
            request.trigger_date,
            request.client_id
        )
    except DeadlineEngineError as e:
        raise to_http_exception(e)

    return DeadlineResponse(**resolution.to_dict())


@router.get("/{rule_id}", response_model=RuleResponse)
async def get_rule(
    rule_id: str,
    engine: DeadlineService = Depends(get_engine)
):
    """규칙 조회 (삭제된 규칙 포함)"""
    try:
        return _rule_response(engine.get_rule(rule_id))
    except DeadlineEngineError as e:
        raise to_http_exception(e)


@router.post("/", response_model=RuleResponse, status_code=status.HTTP_201_CREATED)
async def create_rule(
    request: CreateRuleRequest,
    engine: DeadlineService = Depends(get_engine),
    db: Session = Depends(get_db)
):
    """규칙 생성

    새 규칙은 기본적으로 비활성입니다.
    """
    try:
        rule = engine.create_rule(
            _definition_from_request(request),
            actor=request.user_id,
            activate=request.activate
        )
    except DeadlineEngineError as e:
        raise to_http_exception(e)

    _persist_rules(db, engine, rule.tax_type)
    return _rule_response(rule)


@router.put("/{rule_id}", response_model=RuleResponse)
async def update_rule(
    rule_id: str,
    request: RuleRequest,
    engine: DeadlineService = Depends(get_engine),
    db: Session = Depends(get_db)
):
    """규칙 수정

    활성 규칙의 수정은 이후 계산부터 바로 반영됩니다.
    """
    try:
        rule = engine.update_rule(rule_id, _definition_from_request(request), actor=request.user_id)
    except DeadlineEngineError as e:
        raise to_http_exception(e)

    _persist_rules(db, engine, rule.tax_type)
    return _rule_response(rule)


@router.delete("/{rule_id}", response_model=RuleResponse)
async def delete_rule(
    rule_id: str,
    replacement_id: Optional[str] = Query(None, description="활성 규칙 삭제 시 대신 활성화할 규칙"),
    user_id: str = Query("system", description="변경자"),
    engine: DeadlineService = Depends(get_engine),
    db: Session = Depends(get_db)
):
    """규칙 삭제

    활성 규칙은 replacement_id가 있어야 삭제할 수 있습니다 (없으면 409).
    """
    try:
        rule = engine.delete_rule(rule_id, replacement_id=replacement_id, actor=user_id)
    except DeadlineEngineError as e:
        raise to_http_exception(e)

    _persist_rules(db, engine, rule.tax_type)
    return _rule_response(rule)


@router.post("/{rule_id}/activate", response_model=RuleResponse)
async def activate_rule(
    rule_id: str,
    request: Optional[RuleActionRequest] = None,
    engine: DeadlineService = Depends(get_engine),
    db: Session = Depends(get_db)
):
    """규칙 활성화 (같은 세목의 기존 활성 규칙은 함께 비활성화)"""
    actor = request.user_id if request else "system"
    try:
        rule = engine.activate_rule(rule_id, actor=actor)
    except DeadlineEngineError as e:
        raise to_http_exception(e)

    _persist_rules(db, engine, rule.tax_type)
    return _rule_response(rule)


@router.post("/{rule_id}/deactivate", response_model=RuleResponse)
async def deactivate_rule(
    rule_id: str,
    request: Optional[RuleActionRequest] = None,
    engine: DeadlineService = Depends(get_engine),
    db: Session = Depends(get_db)
):
    """규칙 비활성화 (이후 해당 세목 계산은 NO_ACTIVE_RULE)"""
    actor = request.user_id if request else "system"
    try:
        rule = engine.deactivate_rule(rule_id, actor=actor)
    except DeadlineEngineError as e:
        raise to_http_exception(e)

    _persist_rules(db, engine, rule.tax_type)
    return _rule_response(rule)


@router.get("/{rule_id}/audit", response_model=List[AuditLogResponse])
async def get_rule_audit_trail(
    rule_id: str,
    engine: DeadlineService = Depends(get_engine)
):
    """규칙 변경 이력"""
    try:
        engine.get_rule(rule_id)
    except DeadlineEngineError as e:
        raise to_http_exception(e)

    return [
        AuditLogResponse(
            entry_id=entry.entry_id,
            event_type=entry.event_type.value,
            action=entry.action,
            entity_id=entry.entity_id,
            user_id=entry.user_id,
            timestamp=entry.timestamp,
            old_values=entry.old_values,
            new_values=entry.new_values,
            notes=entry.notes
        )
        for entry in engine.audit_trail(AuditEntity.RULE, rule_id)
    ]


@router.get("/{rule_id}/audit/report", response_model=AuditReportResponse)
async def get_rule_audit_report(
    rule_id: str,
    engine: DeadlineService = Depends(get_engine)
):
    """규칙 감사 보고서 (변경 이력과 이벤트별 건수, 마지막 변경자)"""
    try:
        engine.get_rule(rule_id)
    except DeadlineEngineError as e:
        raise to_http_exception(e)

    return AuditReportResponse(**engine.audit_report(AuditEntity.RULE, rule_id))
