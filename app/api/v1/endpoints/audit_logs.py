"""Audit log endpoints."""
from typing import Optional, List
from uuid import UUID
from datetime import datetime, date

from fastapi import APIRouter, Depends, Query

from app.api.deps import DB, require_permissions
from app.schemas.audit_log import AuditLogListResponse, AuditLogResponse
from app.schemas.base import page_count
from app.services.audit_service import AuditService

router = APIRouter()


@router.get("", response_model=AuditLogListResponse, dependencies=[Depends(require_permissions("audit:view"))])
async def list_audit_logs(
    db: DB,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    user_id: Optional[UUID] = None,
    action: Optional[str] = Query(None, description="CREATE, UPDATE, GENERATE, FINALIZE, ..."),
    entity_type: Optional[str] = Query(None, description="EMPLOYEE, PAY_RUN, LOAN, ..."),
    entity_id: Optional[UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    """List audit entries, newest first. Filters are case-insensitive."""
    logs, total = await AuditService(db).get_audit_logs(
        entity_type=entity_type,
        entity_id=entity_id,
        user_id=user_id,
        action=action,
        start_date=datetime.combine(start_date, datetime.min.time()) if start_date else None,
        end_date=datetime.combine(end_date, datetime.max.time()) if end_date else None,
        skip=(page - 1) * size,
        limit=size,
    )

    return AuditLogListResponse(
        items=[AuditLogResponse.model_validate(log) for log in logs],
        total=total,
        page=page,
        size=size,
        pages=page_count(total, size),
    )


@router.get("/{entity_type}/{entity_id}", response_model=List[AuditLogResponse], dependencies=[Depends(require_permissions("audit:view"))])
async def entity_history(
    entity_type: str,
    entity_id: UUID,
    db: DB,
):
    """Full history of one record, oldest first."""
    return await AuditService(db).entity_history(entity_type, entity_id)
