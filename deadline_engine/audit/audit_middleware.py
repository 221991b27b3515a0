"""FastAPI 감사 미들웨어"""

import time
from datetime import datetime
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .audit_service import AuditEntity, AuditEntry, AuditEventType, AuditService

_RESOURCE_SEGMENTS = ('deadline-rules', 'holidays', 'extensions')
_NON_ID_SEGMENTS = {'calculate', 'client'}


class AuditMiddleware(BaseHTTPMiddleware):
    """API 요청/응답 감사 미들웨어

    모든 API 요청과 응답을 자동으로 로깅합니다.
    """

    def __init__(self, app: ASGIApp, audit_service: AuditService):
        super().__init__(app)
        self.audit_service = audit_service

    async def dispatch(self, request: Request, call_next):
        """요청 처리 및 감사 로깅

        Args:
            request: HTTP 요청
            call_next: 다음 미들웨어/핸들러

        Returns:
            HTTP 응답
        """
        start_time = time.time()

        request_data = {
            "method": request.method,
            "path": request.url.path,
            "query_params": dict(request.query_params),
            "client_host": request.client.host if request.client else None,
            "user_agent": request.headers.get("user-agent"),
        }

        resource_id = self._extract_resource_id(request.url.path)

        self.audit_service.log_entry(AuditEntry(
            event_type=AuditEventType.API_REQUEST,
            timestamp=datetime.now(),
            entity_type=AuditEntity.REQUEST,
            entity_id=resource_id,
            request_data=request_data
        ))

        try:
            response = await call_next(request)
        except Exception as e:
            self.audit_service.log_entry(AuditEntry(
                event_type=AuditEventType.ERROR_OCCURRED,
                timestamp=datetime.now(),
                entity_type=AuditEntity.REQUEST,
                entity_id=resource_id,
                error_data={
                    "exception_type": type(e).__name__,
                    "processing_time_seconds": time.time() - start_time
                }
            ))
            raise

        self.audit_service.log_entry(AuditEntry(
            event_type=AuditEventType.API_RESPONSE,
            timestamp=datetime.now(),
            entity_type=AuditEntity.REQUEST,
            entity_id=resource_id,
            response_data={
                "status_code": response.status_code,
                "processing_time_seconds": time.time() - start_time
            }
        ))

        return response

    def _extract_resource_id(self, path: str) -> Optional[str]:
        """URL 경로에서 규칙/공휴일/연장 ID 추출

        /api/v1/deadline-rules/<id>/activate 같은 패턴에서 <id>를 꺼냅니다.
        """
        parts = [part for part in path.split('/') if part]

        for i, part in enumerate(parts):
            if part in _RESOURCE_SEGMENTS and i + 1 < len(parts):
                candidate = parts[i + 1]
                if candidate in _NON_ID_SEGMENTS:
                    return parts[i + 2] if i + 2 < len(parts) else None
                return candidate

        return None
