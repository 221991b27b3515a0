"""공휴일 API 라우터"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ...core import DeadlineEngineError, DeadlineService
from ...database import get_db
from ...database import repository
from ..dependencies import get_engine
from ..errors import to_http_exception
from ..schemas import HolidayListResponse, HolidayRequest, HolidayResponse

router = APIRouter()


def _holiday_response(holiday) -> HolidayResponse:
    return HolidayResponse(
        holiday_id=holiday.holiday_id,
        holiday_date=holiday.holiday_date,
        name=holiday.name,
        year=holiday.year,
        recurring=holiday.recurring,
        description=holiday.description,
        created_by=holiday.created_by,
        created_at=holiday.created_at
    )


@router.get("/{year}", response_model=HolidayListResponse)
async def get_holidays(
    year: int,
    engine: DeadlineService = Depends(get_engine)
):
    """연도별 공휴일 목록

    반복 공휴일은 해당 연도의 날짜로 표시됩니다. 연도는 1..9999 범위여야 합니다.
    """
    try:
        holidays = engine.get_holidays(year)
    except DeadlineEngineError as e:
        raise to_http_exception(e)

    return HolidayListResponse(
        year=year,
        holidays=[_holiday_response(holiday) for holiday in holidays],
        total=len(holidays)
    )


@router.post("/", response_model=HolidayResponse, status_code=status.HTTP_201_CREATED)
async def add_holiday(
    request: HolidayRequest,
    engine: DeadlineService = Depends(get_engine),
    db: Session = Depends(get_db)
):
    """공휴일 추가 (같은 날짜가 이미 있으면 409)"""
    try:
        holiday = engine.add_holiday(
            request.holiday_date,
            request.name,
            recurring=request.recurring,
            description=request.description,
            actor=request.user_id
        )
    except DeadlineEngineError as e:
        raise to_http_exception(e)

    repository.save_holiday(db, holiday)
    repository.flush_audit(db, engine.audit_service)
    db.commit()
    return _holiday_response(holiday)


@router.delete("/{holiday_id}", response_model=HolidayResponse)
async def delete_holiday(
    holiday_id: str,
    user_id: str = Query("system", description="변경자"),
    engine: DeadlineService = Depends(get_engine),
    db: Session = Depends(get_db)
):
    """공휴일 삭제"""
    try:
        holiday = engine.delete_holiday(holiday_id, actor=user_id)
    except DeadlineEngineError as e:
        raise to_http_exception(e)

    repository.delete_holiday(db, holiday.holiday_id)
    repository.flush_audit(db, engine.audit_service)
    db.commit()
    return _holiday_response(holiday)
