"""FastAPI 애플리케이션 메인"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from .. import config
from ..audit import AuditMiddleware, AuditService
from ..database import SessionLocal, init_db
from ..database.repository import bootstrap_service
from .routers import deadline_rules, extensions, holidays

logger = logging.getLogger(__name__)

audit_service = AuditService(
    log_file=config.AUDIT_LOG_FILE,
    request_log_size=config.AUDIT_REQUEST_LOG_SIZE
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """애플리케이션 라이프사이클 관리"""
    config.configure_logging()

    # 시작 시 데이터베이스 초기화 및 엔진 복원
    init_db()
    db = SessionLocal()
    try:
        app.state.engine = bootstrap_service(
            db,
            seed_dir=config.DEADLINE_RULES_DIR,
            audit_service=audit_service,
            adjustment_limit=config.DEADLINE_ADJUSTMENT_LIMIT
        )
    finally:
        db.close()

    logger.info("Deadline engine ready: %s", app.state.engine)
    yield


# FastAPI 앱 생성
app = FastAPI(
    title="Deadline Rule Engine API",
    description="세목별 법정 신고 마감일 규칙, 공휴일, 고객별 연장 관리 및 마감일 계산",
    version="0.1.0",
    lifespan=lifespan
)

# CORS 설정
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 프로덕션에서는 특정 도메인만 허용
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 감사 미들웨어
app.add_middleware(AuditMiddleware, audit_service=audit_service)

# 라우터 등록
app.include_router(
    deadline_rules.router,
    prefix="/api/v1/deadline-rules",
    tags=["마감일 규칙"]
)

app.include_router(
    holidays.router,
    prefix="/api/v1/holidays",
    tags=["공휴일"]
)

app.include_router(
    extensions.router,
    prefix="/api/v1/extensions",
    tags=["고객별 연장"]
)


@app.get("/")
async def root():
    """루트 엔드포인트"""
    return {
        "message": "Deadline Rule Engine API",
        "version": "0.1.0",
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    """헬스체크 엔드포인트"""
    return {"status": "healthy"}
