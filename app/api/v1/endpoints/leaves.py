"""Leave request endpoints and the two-stage approval workflow."""
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status, Query

from app.api.deps import DB, CurrentUser, Permissions, require_permissions, ensure_employee_access
from app.models.leave import LeaveStatus
from app.models.user import UserRole
from app.schemas.leave import (
    LeaveRequestCreate,
    LeaveActionRequest,
    LeaveRejectRequest,
    LeaveRequestResponse,
    LeaveRequestListResponse,
    LeaveStatisticsResponse,
)
from app.schemas.base import page_count
from app.services.leave_service import LeaveService, LeaveError

router = APIRouter()


def _raise_http(e: LeaveError):
    raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("", response_model=LeaveRequestResponse, status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_permissions("leaves:create"))])
async def apply_leave(
    leave_in: LeaveRequestCreate,
    db: DB,
    current_user: CurrentUser,
    checker: Permissions,
):
    """Apply for leave. Without employee_id the request is for the caller's own record."""
    employee_id = leave_in.employee_id or current_user.employee_id
    if employee_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="employee_id is required for accounts without an employee record"
        )
    ensure_employee_access(checker, employee_id)

    try:
        leave = await LeaveService(db).create(
            employee_id=employee_id,
            leave_type=leave_in.leave_type,
            start_date=leave_in.start_date,
            end_date=leave_in.end_date,
            reason=leave_in.reason,
            user_id=current_user.id,
        )
    except LeaveError as e:
        _raise_http(e)

    await db.commit()
    await db.refresh(leave)
    return leave


@router.get("", response_model=LeaveRequestListResponse, dependencies=[Depends(require_permissions("leaves:view"))])
async def list_leave_requests(
    db: DB,
    current_user: CurrentUser,
    checker: Permissions,
    employee_id: Optional[UUID] = None,
    status: Optional[LeaveStatus] = None,
    team: bool = Query(False, description="Only requests from the caller's direct reports"),
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=100),
):
    """
    List leave requests.

    Employees only see their own requests; managers can narrow the list to
    their direct reports with team=true.
    """
    if not checker.has_role_level(UserRole.MANAGER):
        if current_user.employee_id is None:
            return LeaveRequestListResponse(items=[], total=0, page=page, size=size, pages=0)
        employee_id = current_user.employee_id

    leaves, total = await LeaveService(db).list_requests(
        employee_id=employee_id,
        status=status.value if status else None,
        reporting_manager_id=current_user.employee_id if team else None,
        skip=(page - 1) * size,
        limit=size,
    )
    return LeaveRequestListResponse(
        items=[LeaveRequestResponse.model_validate(lr) for lr in leaves],
        total=total,
        page=page,
        size=size,
        pages=page_count(total, size),
    )


@router.get("/statistics/{employee_id}", response_model=LeaveStatisticsResponse, dependencies=[Depends(require_permissions("leaves:view"))])
async def leave_statistics(
    employee_id: UUID,
    db: DB,
    checker: Permissions,
    year: Optional[int] = Query(None, ge=1900, le=9999),
):
    """Approved leave days per type for a year, plus the pending request count."""
    ensure_employee_access(checker, employee_id)
    return await LeaveService(db).statistics(employee_id, year or date.today().year)


@router.get("/{leave_id}", response_model=LeaveRequestResponse, dependencies=[Depends(require_permissions("leaves:view"))])
async def get_leave_request(
    leave_id: UUID,
    db: DB,
    checker: Permissions,
):
    try:
        leave = await LeaveService(db).get(leave_id)
    except LeaveError as e:
        _raise_http(e)
    ensure_employee_access(checker, leave.employee_id)
    return leave


@router.post("/{leave_id}/manager-approve", response_model=LeaveRequestResponse, dependencies=[Depends(require_permissions("leaves:approve"))])
async def manager_approve_leave(
    leave_id: UUID,
    data: LeaveActionRequest,
    db: DB,
    current_user: CurrentUser,
):
    """First approval stage (reporting manager)."""
    try:
        leave = await LeaveService(db).manager_approve(leave_id, current_user.id, data.comments)
    except LeaveError as e:
        _raise_http(e)

    await db.commit()
    await db.refresh(leave)
    return leave


@router.post("/{leave_id}/admin-approve", response_model=LeaveRequestResponse, dependencies=[Depends(require_permissions("leaves:final_approve"))])
async def admin_approve_leave(
    leave_id: UUID,
    data: LeaveActionRequest,
    db: DB,
    current_user: CurrentUser,
):
    """Final approval stage (HR or admin), after manager approval."""
    try:
        leave = await LeaveService(db).admin_approve(leave_id, current_user.id, data.comments)
    except LeaveError as e:
        _raise_http(e)

    await db.commit()
    await db.refresh(leave)
    return leave


@router.post("/{leave_id}/reject", response_model=LeaveRequestResponse, dependencies=[Depends(require_permissions("leaves:approve"))])
async def reject_leave(
    leave_id: UUID,
    data: LeaveRejectRequest,
    db: DB,
    current_user: CurrentUser,
):
    try:
        leave = await LeaveService(db).reject(leave_id, current_user.id, data.reason)
    except LeaveError as e:
        _raise_http(e)

    await db.commit()
    await db.refresh(leave)
    return leave


@router.post("/{leave_id}/cancel", response_model=LeaveRequestResponse, dependencies=[Depends(require_permissions("leaves:create"))])
async def cancel_leave(
    leave_id: UUID,
    db: DB,
    current_user: CurrentUser,
    checker: Permissions,
):
    """Cancel an open request. Requesters cancel their own; HR can cancel any."""
    service = LeaveService(db)
    try:
        leave = await service.get(leave_id)
        if not checker.has_role_level(UserRole.HR) and leave.employee_id != current_user.employee_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the requester or HR can cancel a leave request"
            )
        leave = await service.cancel(leave_id, user_id=current_user.id)
    except LeaveError as e:
        _raise_http(e)

    await db.commit()
    await db.refresh(leave)
    return leave
