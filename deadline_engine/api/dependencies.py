"""API 의존성"""

from fastapi import Request

from ..core.deadline_service import DeadlineService


def get_engine(request: Request) -> DeadlineService:
    """애플리케이션이 보유한 DeadlineService

    시작 시 lifespan에서 app.state.engine에 설정됩니다.
    """
    return request.app.state.engine
