"""API 요청/응답 스키마 (Pydantic)"""

from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List
from datetime import date, datetime


# ============================================================================
# 마감일 규칙 관련 스키마
# ============================================================================

class OffsetSchema(BaseModel):
    """기산일 오프셋"""
    amount: float = Field(..., description="기간 크기 (정수, 음수 허용)")
    unit: str = Field(default="days", description="days 또는 months")


class RuleRequest(BaseModel):
    """규칙 생성/수정 요청

    세목과 정책은 문자열로 받고 엔진에서 검증합니다.
    """
    tax_type: str = Field(..., description="세목 (예: GST, PAYE, CorporateIncomeTax)")
    offset: OffsetSchema
    policy: str = Field(default="RollForwardToNextBusinessDay", description="주말/공휴일 조정 정책")
    rule_name: str = Field(default="", description="규칙 이름")
    description: Optional[str] = Field(None, description="설명")
    trigger_type: str = Field(default="PeriodEnd", description="기산일 종류")
    statutory_minimum_days: Optional[int] = Field(None, description="법정 최소 일수")
    effective_from: Optional[date] = Field(None, description="유효기간 시작일 (포함)")
    effective_to: Optional[date] = Field(None, description="유효기간 종료일 (포함)")
    user_id: str = Field(default="system", description="변경자")

    class Config:
        json_schema_extra = {
            "example": {
                "tax_type": "GST",
                "offset": {"amount": 21, "unit": "days"},
                "policy": "RollForwardToNextBusinessDay",
                "rule_name": "GST Standard Filing Deadline",
                "trigger_type": "PeriodEnd",
                "statutory_minimum_days": 21,
                "effective_from": "2024-01-01",
                "user_id": "admin"
            }
        }


class CreateRuleRequest(RuleRequest):
    """규칙 생성 요청"""
    activate: bool = Field(default=False, description="생성과 동시에 활성화")


class RuleActionRequest(BaseModel):
    """활성화/비활성화 요청"""
    user_id: str = Field(default="system", description="변경자")


class RuleResponse(BaseModel):
    """규칙 응답"""
    rule_id: str
    tax_type: str
    offset: Dict[str, Any]
    policy: str
    rule_name: str
    description: Optional[str] = None
    trigger_type: str
    statutory_minimum_days: Optional[int] = None
    is_active: bool
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None
    activated_at: Optional[datetime] = None
    activation_sequence: int
    created_by: str
    created_at: datetime
    updated_by: Optional[str] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None


class RuleListResponse(BaseModel):
    """규칙 목록 응답"""
    rules: List[RuleResponse]
    total: int


# ============================================================================
# 마감일 계산 관련 스키마
# ============================================================================

class CalculateDeadlineRequest(BaseModel):
    """마감일 계산 요청"""
    tax_type: str = Field(..., description="세목")
    trigger_date: date = Field(..., description="기산일 (예: 과세기간 종료일)")
    client_id: Optional[str] = Field(None, description="고객 ID (연장 반영)")

    class Config:
        json_schema_extra = {
            "example": {
                "tax_type": "GST",
                "trigger_date": "2024-03-16",
                "client_id": "C-1001"
            }
        }


class ResolutionStepResponse(BaseModel):
    """해석 단계"""
    step_name: str
    description: str
    input_values: Dict[str, Any]
    output_value: Any
    applied_rule: Optional[str] = None
    notes: Optional[str] = None


class DeadlineResponse(BaseModel):
    """마감일 계산 응답"""
    tax_type: str
    trigger_date: date
    client_id: Optional[str] = None
    rule_id: str
    raw_deadline: date
    adjusted_deadline: date
    deadline: date
    extension_id: Optional[str] = None
    adjustments: List[str]
    steps: List[ResolutionStepResponse]
    resolved_at: datetime

    class Config:
        json_schema_extra = {
            "example": {
                "tax_type": "GST",
                "trigger_date": "2024-03-16",
                "client_id": None,
                "rule_id": "5f0c7a52-1d8e-4c1b-9a43-0d1f6c1e2b7a",
                "raw_deadline": "2024-03-31",
                "adjusted_deadline": "2024-04-01",
                "deadline": "2024-04-01",
                "extension_id": None,
                "adjustments": [
                    "Rule 5f0c7a52-1d8e-4c1b-9a43-0d1f6c1e2b7a (GST deadline) applied for GST",
                    "Offset +15 days from 2024-03-16 gives 2024-03-31",
                    "RollForwardToNextBusinessDay: 2024-03-31 (Sunday) moved to 2024-04-01"
                ],
                "steps": [],
                "resolved_at": "2024-03-16T10:30:00"
            }
        }


# ============================================================================
# 공휴일 관련 스키마
# ============================================================================

class HolidayRequest(BaseModel):
    """공휴일 추가 요청"""
    holiday_date: date = Field(..., description="공휴일 날짜")
    name: str = Field(..., description="공휴일 이름")
    recurring: bool = Field(default=False, description="매년 같은 월/일 반복 여부")
    description: Optional[str] = Field(None, description="설명")
    user_id: str = Field(default="system", description="등록자")


class HolidayResponse(BaseModel):
    """공휴일 응답"""
    holiday_id: str
    holiday_date: date
    name: str
    year: int
    recurring: bool
    description: Optional[str] = None
    created_by: str
    created_at: datetime


class HolidayListResponse(BaseModel):
    """연도별 공휴일 목록 응답"""
    year: int
    holidays: List[HolidayResponse]
    total: int


# ============================================================================
# 고객별 연장 관련 스키마
# ============================================================================

class ExtensionRequest(BaseModel):
    """연장 부여 요청"""
    client_id: str = Field(..., description="고객 ID")
    tax_type: str = Field(..., description="세목")
    original_deadline: date = Field(..., description="원래 마감일 (조정 후 법정 마감일)")
    extended_deadline: date = Field(..., description="연장된 마감일")
    granted_by: str = Field(..., description="승인자")
    reason: Optional[str] = Field(None, description="연장 사유")

    class Config:
        json_schema_extra = {
            "example": {
                "client_id": "C-1001",
                "tax_type": "GST",
                "original_deadline": "2024-04-01",
                "extended_deadline": "2024-04-15",
                "granted_by": "officer.kamara",
                "reason": "Supporting documents delayed"
            }
        }


class RevokeExtensionRequest(BaseModel):
    """연장 철회 요청"""
    revoked_by: str = Field(default="system", description="철회자")


class ExtensionResponse(BaseModel):
    """연장 응답"""
    extension_id: str
    client_id: str
    tax_type: str
    original_deadline: date
    extended_deadline: date
    extension_days: int
    granted_by: str
    granted_at: datetime
    reason: Optional[str] = None
    revoked_at: Optional[datetime] = None
    revoked_by: Optional[str] = None
    superseded_by: Optional[str] = None
    is_active: bool


class ExtensionListResponse(BaseModel):
    """고객별 연장 목록 응답 (부여 시각 역순)"""
    client_id: str
    extensions: List[ExtensionResponse]
    total: int


# ============================================================================
# 감사 로그 관련 스키마
# ============================================================================

class AuditLogResponse(BaseModel):
    """감사 로그 항목"""
    entry_id: str
    event_type: str
    action: str
    entity_id: Optional[str] = None
    user_id: Optional[str] = None
    timestamp: datetime
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None


class AuditSummaryResponse(BaseModel):
    """감사 요약"""
    event_counts: Dict[str, int]
    last_action: str
    last_changed_by: Optional[str] = None
    changed_by: List[str]


class AuditReportResponse(BaseModel):
    """감사 보고서"""
    entity_type: str
    entity_id: str
    total_events: int
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    events: List[Dict[str, Any]]
    summary: Optional[AuditSummaryResponse] = None


# ============================================================================
# 에러 응답
# ============================================================================

class ErrorDetail(BaseModel):
    """에러 상세"""
    code: str
    message: str


class ErrorResponse(BaseModel):
    """에러 응답"""
    detail: ErrorDetail
