"""감사 엔트리 및 미들웨어 테스트"""

from datetime import datetime

from fastapi import FastAPI
from fastapi.testclient import TestClient

from deadline_engine.audit import (
    AuditEntity,
    AuditEntry,
    AuditEventType,
    AuditMiddleware,
    AuditService,
)


class TestAuditEntry:
    """AuditEntry 테스트"""

    def test_action_name(self):
        entry = AuditEntry(event_type=AuditEventType.RULE_DEACTIVATED, timestamp=datetime.now())
        assert entry.action == "Deactivated"

    def test_to_dict(self):
        entry = AuditEntry(
            event_type=AuditEventType.EXTENSION_GRANTED,
            timestamp=datetime(2024, 3, 16, 10, 30),
            entity_type=AuditEntity.EXTENSION,
            entity_id="ext-1",
            user_id="officer"
        )

        data = entry.to_dict()

        assert data["event_type"] == "EXTENSION_GRANTED"
        assert data["entity_type"] == "extension"
        assert data["timestamp"] == "2024-03-16T10:30:00"
        assert data["action"] == "Granted"


class TestAuditMiddleware:
    """AuditMiddleware 테스트"""

    def test_resource_id_extraction(self):
        middleware = AuditMiddleware(FastAPI(), audit_service=AuditService())

        assert middleware._extract_resource_id("/api/v1/deadline-rules/r-1/activate") == "r-1"
        assert middleware._extract_resource_id("/api/v1/extensions/client/C-1001") == "C-1001"
        assert middleware._extract_resource_id("/api/v1/deadline-rules/calculate") is None
        assert middleware._extract_resource_id("/api/v1/holidays/h-9") == "h-9"
        assert middleware._extract_resource_id("/health") is None

    def test_request_and_response_logged(self):
        audit = AuditService()
        app = FastAPI()
        app.add_middleware(AuditMiddleware, audit_service=audit)

        @app.get("/api/v1/holidays/{year}")
        async def holidays(year: int):
            return {"year": year}

        response = TestClient(app).get("/api/v1/holidays/2025")

        assert response.status_code == 200
        assert [entry.event_type for entry in audit.request_log] == [
            AuditEventType.API_REQUEST,
            AuditEventType.API_RESPONSE,
        ]
        assert audit.request_log[0].entity_id == "2025"
        assert audit.request_log[1].response_data["status_code"] == 200
        assert audit.entries == []
        assert audit.take_pending_changes() == []


class TestRequestLogRetention:
    """요청 로그 보관 한도 테스트"""

    def test_request_log_keeps_most_recent(self):
        audit = AuditService(request_log_size=3)

        for i in range(10):
            audit.log_entry(AuditEntry(
                event_type=AuditEventType.API_REQUEST,
                timestamp=datetime.now(),
                entity_type=AuditEntity.REQUEST,
                entity_id=str(i)
            ))

        assert [entry.entity_id for entry in audit.request_log] == ["7", "8", "9"]

    def test_change_history_not_trimmed(self):
        audit = AuditService(request_log_size=1)

        for i in range(5):
            audit.record_change(AuditEventType.RULE_UPDATED, AuditEntity.RULE, "r-1", "admin")
            audit.log_entry(AuditEntry(
                event_type=AuditEventType.API_RESPONSE,
                timestamp=datetime.now(),
                entity_type=AuditEntity.REQUEST
            ))

        assert len(audit.get_entity_audit_trail(AuditEntity.RULE, "r-1")) == 5
        assert len(audit.request_log) == 1
