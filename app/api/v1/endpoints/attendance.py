"""Monthly attendance endpoints."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy import select, func

from app.api.deps import DB, CurrentUser, require_permissions
from app.models.attendance import AttendanceRecord
from app.models.hr import Employee, Month
from app.schemas.attendance import (
    AttendanceCreate,
    AttendanceUpdate,
    AttendanceResponse,
    AttendanceListResponse,
    check_day_counts,
)
from app.schemas.base import page_count
from app.services.audit_service import AuditService
from app.services.payrun_service import PayRunService

router = APIRouter()

DAY_FIELDS = ("total_working_days", "present_days", "absent_days", "paid_leave", "unpaid_leave")


async def _get_or_404(db, attendance_id: UUID) -> AttendanceRecord:
    record = await db.get(AttendanceRecord, attendance_id)
    if not record:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Attendance record not found"
        )
    return record


async def _ensure_period_open(db, record: AttendanceRecord) -> None:
    if await PayRunService(db).is_period_finalized(record.month, record.year):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Payroll for {record.month} {record.year} is finalized; attendance is locked"
        )


def _day_values(record: AttendanceRecord) -> dict:
    return {field: getattr(record, field) for field in DAY_FIELDS}


@router.get("", response_model=AttendanceListResponse, dependencies=[Depends(require_permissions("attendance:view"))])
async def list_attendance(
    db: DB,
    employee_id: Optional[UUID] = None,
    month: Optional[Month] = None,
    year: Optional[str] = None,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=100),
):
    """List attendance records."""
    query = select(AttendanceRecord)
    if employee_id:
        query = query.where(AttendanceRecord.employee_id == employee_id)
    if month:
        query = query.where(AttendanceRecord.month == month.value)
    if year:
        query = query.where(AttendanceRecord.year == year)

    total = await db.scalar(select(func.count()).select_from(query.subquery())) or 0

    result = await db.execute(
        query.order_by(AttendanceRecord.year.desc(), AttendanceRecord.created_at.desc())
        .offset((page - 1) * size).limit(size)
    )
    items = [AttendanceResponse.model_validate(r) for r in result.scalars().all()]

    return AttendanceListResponse(items=items, total=total, page=page, size=size, pages=page_count(total, size))


@router.post("", response_model=AttendanceResponse, status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_permissions("attendance:manage"))])
async def create_attendance(
    attendance_in: AttendanceCreate,
    db: DB,
    current_user: CurrentUser,
):
    """Record an employee's attendance for a month (one record per period)."""
    if await db.get(Employee, attendance_in.employee_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Employee not found")

    existing = await db.execute(
        select(AttendanceRecord.id).where(
            AttendanceRecord.employee_id == attendance_in.employee_id,
            AttendanceRecord.month == attendance_in.month.value,
            AttendanceRecord.year == attendance_in.year,
        )
    )
    if existing.first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Attendance for {attendance_in.month.value} {attendance_in.year} already recorded"
        )

    data = attendance_in.model_dump()
    data["month"] = attendance_in.month.value
    record = AttendanceRecord(**data)
    db.add(record)
    await db.flush()

    await AuditService(db).log_created(
        "ATTENDANCE",
        record.id,
        {"employee_id": str(record.employee_id), "month": record.month, "year": record.year, **_day_values(record)},
        user_id=current_user.id,
    )
    await db.commit()
    await db.refresh(record)
    return record


@router.get("/{attendance_id}", response_model=AttendanceResponse, dependencies=[Depends(require_permissions("attendance:view"))])
async def get_attendance(
    attendance_id: UUID,
    db: DB,
):
    return await _get_or_404(db, attendance_id)


@router.put("/{attendance_id}", response_model=AttendanceResponse, dependencies=[Depends(require_permissions("attendance:manage"))])
async def update_attendance(
    attendance_id: UUID,
    attendance_in: AttendanceUpdate,
    db: DB,
    current_user: CurrentUser,
):
    """Correct an attendance record while its payroll period is still open."""
    record = await _get_or_404(db, attendance_id)
    await _ensure_period_open(db, record)

    update_data = attendance_in.model_dump(exclude_unset=True)
    merged = {**_day_values(record), **{k: v for k, v in update_data.items() if k in DAY_FIELDS}}
    try:
        check_day_counts(
            merged["total_working_days"], merged["present_days"], merged["absent_days"],
            merged["paid_leave"], merged["unpaid_leave"],
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    old_values = _day_values(record)
    for field, value in update_data.items():
        setattr(record, field, value)

    await AuditService(db).log_updated(
        "ATTENDANCE", record.id, old_values, _day_values(record), user_id=current_user.id
    )
    await db.commit()
    await db.refresh(record)
    return record


@router.delete("/{attendance_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_permissions("attendance:manage"))])
async def delete_attendance(
    attendance_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    record = await _get_or_404(db, attendance_id)
    await _ensure_period_open(db, record)

    await AuditService(db).log_deleted(
        "ATTENDANCE",
        record.id,
        {"employee_id": str(record.employee_id), "month": record.month, "year": record.year},
        user_id=current_user.id,
    )
    await db.delete(record)
    await db.commit()
