"""감사 로그 서비스"""

import json
import logging
import threading
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional
from uuid import uuid4

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_LOG_SIZE = 1000


class AuditEventType(Enum):
    """감사 이벤트 유형"""
    API_REQUEST = "API_REQUEST"
    API_RESPONSE = "API_RESPONSE"
    ERROR_OCCURRED = "ERROR_OCCURRED"
    RULE_CREATED = "RULE_CREATED"
    RULE_UPDATED = "RULE_UPDATED"
    RULE_ACTIVATED = "RULE_ACTIVATED"
    RULE_DEACTIVATED = "RULE_DEACTIVATED"
    RULE_DELETED = "RULE_DELETED"
    HOLIDAY_CREATED = "HOLIDAY_CREATED"
    HOLIDAY_DELETED = "HOLIDAY_DELETED"
    EXTENSION_GRANTED = "EXTENSION_GRANTED"
    EXTENSION_REVOKED = "EXTENSION_REVOKED"
    EXTENSION_SUPERSEDED = "EXTENSION_SUPERSEDED"


class AuditEntity(Enum):
    """감사 대상 유형"""
    RULE = "rule"
    HOLIDAY = "holiday"
    EXTENSION = "extension"
    REQUEST = "request"


@dataclass
class AuditEntry:
    """감사 로그 엔트리

    규칙/공휴일/연장 변경은 변경 전후 값(old_values/new_values)을 함께 기록합니다.
    """
    event_type: AuditEventType
    timestamp: datetime
    entity_type: Optional[AuditEntity] = None
    entity_id: Optional[str] = None
    user_id: Optional[str] = None
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    request_data: Optional[Dict[str, Any]] = None
    response_data: Optional[Dict[str, Any]] = None
    error_data: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    entry_id: str = field(default_factory=lambda: str(uuid4()))

    @property
    def action(self) -> str:
        """변경 동작 이름 (예: RULE_ACTIVATED -> Activated)"""
        return self.event_type.value.split('_', 1)[-1].capitalize()

    def to_dict(self) -> Dict[str, Any]:
        """딕셔너리로 변환"""
        data = asdict(self)
        data['event_type'] = self.event_type.value
        data['entity_type'] = self.entity_type.value if self.entity_type else None
        data['timestamp'] = self.timestamp.isoformat()
        data['action'] = self.action
        return data

    def to_json(self) -> str:
        """JSON 문자열로 변환"""
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)


class AuditService:
    """감사 로그 서비스

    모든 중요한 이벤트를 기록하고 추적합니다.
    """

    def __init__(self, log_file: Optional[str] = None, request_log_size: int = DEFAULT_REQUEST_LOG_SIZE):
        """
        Args:
            log_file: JSON Lines 감사 파일 경로 (None이면 메모리와 로그에만 기록)
            request_log_size: 메모리에 남길 최근 API 요청/응답 엔트리 수

        변경 이력(entries)은 모두 보관하고, API 요청/응답은 최근 것만 보관합니다.
        """
        self.log_file = log_file
        self.entries: List[AuditEntry] = []
        self.request_log: Deque[AuditEntry] = deque(maxlen=request_log_size)
        self._pending_changes: List[AuditEntry] = []
        self._lock = threading.Lock()

    def log_entry(self, entry: AuditEntry) -> AuditEntry:
        """감사 엔트리 기록

        Args:
            entry: 기록할 감사 엔트리
        """
        with self._lock:
            if entry.entity_type is AuditEntity.REQUEST:
                self.request_log.append(entry)
            else:
                self.entries.append(entry)
            if self.log_file:
                self._write_to_file(entry)

        logger.info(
            "[AUDIT] %s %s %s by %s",
            entry.event_type.value,
            entry.entity_type.value if entry.entity_type else "-",
            entry.entity_id or "-",
            entry.user_id or "system"
        )
        return entry

    def load_entries(self, entries: List[AuditEntry]) -> None:
        """저장소에서 읽은 과거 엔트리 적재 (파일에는 다시 쓰지 않음)"""
        with self._lock:
            self.entries.extend(entries)

    def take_pending_changes(self) -> List[AuditEntry]:
        """아직 저장하지 않은 변경 엔트리를 꺼내고 비움"""
        with self._lock:
            pending, self._pending_changes = self._pending_changes, []
        return pending

    def record_change(
        self,
        event_type: AuditEventType,
        entity_type: AuditEntity,
        entity_id: str,
        user_id: Optional[str],
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        notes: Optional[str] = None
    ) -> AuditEntry:
        """규칙/공휴일/연장 변경 기록"""
        entry = self.log_entry(AuditEntry(
            event_type=event_type,
            timestamp=datetime.now(),
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            old_values=old_values,
            new_values=new_values,
            notes=notes,
        ))
        with self._lock:
            self._pending_changes.append(entry)
        return entry

    def _write_to_file(self, entry: AuditEntry):
        """파일에 엔트리 기록"""
        path = Path(self.log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'a', encoding='utf-8') as f:
            f.write(entry.to_json())
            f.write('\n')

    def get_entity_audit_trail(
        self,
        entity_type: AuditEntity,
        entity_id: str
    ) -> List[AuditEntry]:
        """특정 규칙/공휴일/연장의 감사 추적 (시간순)

        Args:
            entity_type: 대상 유형
            entity_id: 대상 ID
        """
        with self._lock:
            return [
                entry for entry in self.entries
                if entry.entity_type == entity_type and entry.entity_id == entity_id
            ]

    def generate_audit_report(
        self,
        entity_type: AuditEntity,
        entity_id: str
    ) -> Dict[str, Any]:
        """감사 보고서 생성

        대상의 변경 이력 전체와 이벤트별 건수, 마지막 변경자를 요약합니다.
        """
        trail = self.get_entity_audit_trail(entity_type, entity_id)

        if not trail:
            return {
                "entity_type": entity_type.value,
                "entity_id": entity_id,
                "total_events": 0,
                "events": [],
                "summary": None
            }

        return {
            "entity_type": entity_type.value,
            "entity_id": entity_id,
            "total_events": len(trail),
            "start_time": trail[0].timestamp.isoformat(),
            "end_time": trail[-1].timestamp.isoformat(),
            "events": [entry.to_dict() for entry in trail],
            "summary": self._generate_summary(trail)
        }

    def _generate_summary(self, trail: List[AuditEntry]) -> Dict[str, Any]:
        """감사 추적 요약 생성"""
        event_counts = {}
        for entry in trail:
            event_type = entry.event_type.value
            event_counts[event_type] = event_counts.get(event_type, 0) + 1

        last = trail[-1]
        return {
            "event_counts": event_counts,
            "last_action": last.action,
            "last_changed_by": last.user_id,
            "changed_by": sorted({entry.user_id for entry in trail if entry.user_id})
        }
