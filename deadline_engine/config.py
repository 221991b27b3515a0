"""환경 변수 기반 설정"""

import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _get_int(name: str, default: int) -> int:
    """정수 환경 변수 (잘못된 값이면 기본값 사용)"""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid integer for %s=%r, using default %d", name, raw, default)
        return default


def _get_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# 데이터베이스
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./deadline_engine.db")
SQL_ECHO = _get_bool("SQL_ECHO")

# 영업일 탐색 한도 (일)
DEADLINE_ADJUSTMENT_LIMIT = _get_int("DEADLINE_ADJUSTMENT_LIMIT", 14)

# 기본 규칙/공휴일 YAML 디렉토리
DEADLINE_RULES_DIR = Path(os.getenv("DEADLINE_RULES_DIR", str(PROJECT_ROOT / "rules")))

# API 서버
API_HOST = os.getenv("API_HOST", "127.0.0.1")
API_PORT = _get_int("API_PORT", 8000)

# 로그
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
AUDIT_LOG_FILE: Optional[str] = os.getenv("AUDIT_LOG_FILE") or None
AUDIT_REQUEST_LOG_SIZE = _get_int("AUDIT_REQUEST_LOG_SIZE", 1000)


def configure_logging(level: Optional[str] = None) -> None:
    """루트 로거 설정 (애플리케이션 시작 시 한 번 호출)"""
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format=LOG_FORMAT,
    )
