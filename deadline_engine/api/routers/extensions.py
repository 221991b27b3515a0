"""고객별 마감일 연장 API 라우터"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import Optional

from ...core import DeadlineEngineError, DeadlineService
from ...database import get_db
from ...database import repository
from ..dependencies import get_engine
from ..errors import to_http_exception
from ..schemas import (
    ExtensionListResponse,
    ExtensionRequest,
    ExtensionResponse,
    RevokeExtensionRequest,
)

router = APIRouter()


def _extension_response(extension) -> ExtensionResponse:
    return ExtensionResponse(**extension.to_dict())


@router.post("/", response_model=ExtensionResponse, status_code=status.HTTP_201_CREATED)
async def grant_extension(
    request: ExtensionRequest,
    engine: DeadlineService = Depends(get_engine),
    db: Session = Depends(get_db)
):
    """연장 부여

    같은 고객/세목/원래 마감일에 활성 연장이 있으면 새 연장으로 대체합니다.
    """
    try:
        extension, superseded = engine.grant_extension_with_supersession(
            request.client_id,
            request.tax_type,
            request.original_deadline,
            request.extended_deadline,
            request.granted_by,
            request.reason
        )
    except DeadlineEngineError as e:
        raise to_http_exception(e)

    repository.save_extensions(db, [extension, superseded])
    repository.flush_audit(db, engine.audit_service)
    db.commit()
    return _extension_response(extension)


@router.get("/client/{client_id}", response_model=ExtensionListResponse)
async def get_client_extensions(
    client_id: str,
    engine: DeadlineService = Depends(get_engine)
):
    """고객의 연장 이력 (철회 포함, 최근 부여 순)"""
    try:
        extensions = engine.get_client_extensions(client_id)
    except DeadlineEngineError as e:
        raise to_http_exception(e)

    return ExtensionListResponse(
        client_id=client_id,
        extensions=[_extension_response(extension) for extension in extensions],
        total=len(extensions)
    )


@router.post("/{extension_id}/revoke", response_model=ExtensionResponse)
async def revoke_extension(
    extension_id: str,
    request: Optional[RevokeExtensionRequest] = None,
    engine: DeadlineService = Depends(get_engine),
    db: Session = Depends(get_db)
):
    """연장 철회 (이미 철회된 연장은 그대로 반환)"""
    revoked_by = request.revoked_by if request else "system"
    try:
        extension = engine.revoke_extension(extension_id, actor=revoked_by)
    except DeadlineEngineError as e:
        raise to_http_exception(e)

    repository.save_extensions(db, [extension])
    repository.flush_audit(db, engine.audit_service)
    db.commit()
    return _extension_response(extension)
