"""DeadlineTrace: 마감일 해석 과정 추적"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional


@dataclass
class ResolutionStep:
    """마감일 해석의 각 단계를 기록하는 클래스

    이력 화면에서 어떤 규칙과 조정이 적용되었는지 보여주기 위한 감사 추적입니다.

    Attributes:
        step_name: 단계 이름 ("rule", "offset", "adjustment", "extension")
        description: 사람이 읽을 수 있는 설명 (adjustments 목록에 그대로 노출)
        input_values: 단계 입력값
        output_value: 단계 결과
        applied_rule: 적용된 규칙 ID
        notes: 추가 메모
    """

    step_name: str
    description: str
    input_values: Dict[str, Any]
    output_value: Any
    applied_rule: Optional[str] = None
    notes: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'step_name': self.step_name,
            'description': self.description,
            'input_values': {k: _serialize_value(v) for k, v in self.input_values.items()},
            'output_value': _serialize_value(self.output_value),
            'applied_rule': self.applied_rule,
            'notes': self.notes,
        }

    def __str__(self) -> str:
        return f"[{self.step_name}] {self.description}"


@dataclass
class DeadlineResolution:
    """마감일 해석 결과

    캐시하지 않는 파생값입니다. 규칙이 나중에 바뀌어도 이미 반환된 결과는
    그대로 남고, trace로 당시 계산 근거를 재현할 수 있습니다.

    Attributes:
        tax_type: 세목 값
        trigger_date: 기산일
        client_id: 고객 ID (없으면 None)
        rule_id: 사용된 규칙 ID
        raw_deadline: 기산일 + 오프셋
        adjusted_deadline: 주말/공휴일 조정 후 마감일
        deadline: 최종 마감일 (연장 반영)
        extension_id: 적용된 연장 ID
        steps: 단계별 추적
        resolved_at: 해석 시각
    """

    tax_type: str
    trigger_date: date
    client_id: Optional[str]
    rule_id: str
    raw_deadline: date
    adjusted_deadline: date
    deadline: date
    extension_id: Optional[str] = None
    steps: List[ResolutionStep] = field(default_factory=list)
    resolved_at: datetime = field(default_factory=datetime.now)

    @property
    def adjustments(self) -> List[str]:
        """적용된 조정 내역 (순서대로)"""
        return [step.description for step in self.steps]

    def to_dict(self) -> dict:
        return {
            'tax_type': self.tax_type,
            'trigger_date': self.trigger_date.isoformat(),
            'client_id': self.client_id,
            'rule_id': self.rule_id,
            'raw_deadline': self.raw_deadline.isoformat(),
            'adjusted_deadline': self.adjusted_deadline.isoformat(),
            'deadline': self.deadline.isoformat(),
            'extension_id': self.extension_id,
            'adjustments': self.adjustments,
            'steps': [step.to_dict() for step in self.steps],
            'resolved_at': self.resolved_at.isoformat(),
        }

    def get_summary(self) -> str:
        """사람이 읽기 쉬운 형태의 요약"""
        lines = [
            "=== 마감일 계산 결과 ===",
            "",
            f"세목:            {self.tax_type}",
            f"기산일:          {self.trigger_date.isoformat()}",
            f"원 마감일:       {self.raw_deadline.isoformat()}",
            f"조정 마감일:     {self.adjusted_deadline.isoformat()}",
            f"최종 마감일:     {self.deadline.isoformat()} ({self.deadline.strftime('%A')})",
            "",
            f"규칙: {self.rule_id}",
        ]
        if self.extension_id:
            lines.append(f"연장: {self.extension_id}")
        lines.append("")
        for i, step in enumerate(self.steps, 1):
            lines.append(f"{i}. {step}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.get_summary()


def _serialize_value(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return getattr(value, 'value', value)
