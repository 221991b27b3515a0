"""데이터베이스 모듈"""

from .models import (
    Base,
    DeadlineRuleDB,
    PublicHolidayDB,
    ClientDeadlineExtensionDB,
    DeadlineRuleAuditLogDB
)
from .connection import (
    engine,
    SessionLocal,
    get_db,
    init_db
)

__all__ = [
    'Base',
    'DeadlineRuleDB',
    'PublicHolidayDB',
    'ClientDeadlineExtensionDB',
    'DeadlineRuleAuditLogDB',
    'engine',
    'SessionLocal',
    'get_db',
    'init_db'
]
