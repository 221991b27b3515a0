"""데이터베이스 연결 설정"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from typing import Generator

from .. import config
from .models import Base


def _engine_options(database_url: str) -> dict:
    """URL에 맞는 엔진 옵션

    SQLite는 요청 스레드와 생성 스레드가 달라도 연결을 쓸 수 있어야 합니다.
    """
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,  # 연결 풀 헬스체크
        "pool_size": 5,
        "max_overflow": 10,
    }


# SQLAlchemy 엔진 생성
engine = create_engine(
    config.DATABASE_URL,
    echo=config.SQL_ECHO,
    **_engine_options(config.DATABASE_URL)
)

# 세션 팩토리
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


def get_db() -> Generator[Session, None, None]:
    """데이터베이스 세션 의존성

    FastAPI 의존성으로 사용됩니다.

    Yields:
        데이터베이스 세션
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """데이터베이스 초기화

    모든 테이블을 생성합니다.
    """
    Base.metadata.create_all(bind=bind or engine)
