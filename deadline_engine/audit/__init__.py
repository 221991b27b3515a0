"""감사 추적 모듈"""

from .audit_middleware import AuditMiddleware
from .audit_service import AuditEntity, AuditEntry, AuditEventType, AuditService

__all__ = [
    'AuditMiddleware',
    'AuditService',
    'AuditEntry',
    'AuditEntity',
    'AuditEventType',
]
