"""Salary advance endpoints."""
from enum import Enum
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy import select, func

from app.api.deps import DB, CurrentUser, require_permissions
from app.models.advance import AdvanceRecord, AdvanceStatus
from app.models.hr import Employee
from app.schemas.advance import (
    AdvanceCreate,
    AdvanceUpdate,
    AdvanceResponse,
    AdvanceListResponse,
)
from app.schemas.base import page_count
from app.services.audit_service import AuditService

router = APIRouter()


async def _get_or_404(db, advance_id: UUID) -> AdvanceRecord:
    advance = await db.get(AdvanceRecord, advance_id)
    if not advance:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Advance not found"
        )
    return advance


def _snapshot(advance: AdvanceRecord) -> dict:
    return {
        "employee_id": str(advance.employee_id),
        "advance_paid_amount": advance.advance_paid_amount,
        "deduction_period": f"{advance.advance_deduction_month} {advance.advance_deduction_year}",
        "status": advance.status,
        "remaining_amount": advance.remaining_amount,
    }


@router.get("", response_model=AdvanceListResponse, dependencies=[Depends(require_permissions("advances:view"))])
async def list_advances(
    db: DB,
    employee_id: Optional[UUID] = None,
    status: Optional[AdvanceStatus] = None,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=100),
):
    """List salary advances."""
    query = select(AdvanceRecord)
    if employee_id:
        query = query.where(AdvanceRecord.employee_id == employee_id)
    if status:
        query = query.where(AdvanceRecord.status == status.value)

    total = await db.scalar(select(func.count()).select_from(query.subquery())) or 0

    result = await db.execute(
        query.order_by(AdvanceRecord.created_at.desc()).offset((page - 1) * size).limit(size)
    )
    items = [AdvanceResponse.model_validate(a) for a in result.scalars().all()]

    return AdvanceListResponse(items=items, total=total, page=page, size=size, pages=page_count(total, size))


@router.post("", response_model=AdvanceResponse, status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_permissions("advances:manage"))])
async def create_advance(
    advance_in: AdvanceCreate,
    db: DB,
    current_user: CurrentUser,
):
    """Record a salary advance and the month it is recovered in."""
    if await db.get(Employee, advance_in.employee_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Employee not found")

    advance = AdvanceRecord(
        employee_id=advance_in.employee_id,
        advance_month=advance_in.advance_month.value,
        advance_year=advance_in.advance_year,
        advance_paid_amount=advance_in.advance_paid_amount,
        advance_deduction_month=advance_in.advance_deduction_month.value,
        advance_deduction_year=advance_in.advance_deduction_year,
        status=AdvanceStatus.PENDING.value,
        remaining_amount=(
            advance_in.remaining_amount
            if advance_in.remaining_amount is not None
            else advance_in.advance_paid_amount
        ),
        remarks=advance_in.remarks,
    )
    db.add(advance)
    await db.flush()

    await AuditService(db).log_created("ADVANCE", advance.id, _snapshot(advance), user_id=current_user.id)
    await db.commit()
    await db.refresh(advance)
    return advance


@router.get("/{advance_id}", response_model=AdvanceResponse, dependencies=[Depends(require_permissions("advances:view"))])
async def get_advance(
    advance_id: UUID,
    db: DB,
):
    return await _get_or_404(db, advance_id)


@router.put("/{advance_id}", response_model=AdvanceResponse, dependencies=[Depends(require_permissions("advances:manage"))])
async def update_advance(
    advance_id: UUID,
    advance_in: AdvanceUpdate,
    db: DB,
    current_user: CurrentUser,
):
    """Manual HR edit of an advance."""
    advance = await _get_or_404(db, advance_id)
    old_values = _snapshot(advance)

    for field, value in advance_in.model_dump(exclude_unset=True).items():
        if isinstance(value, Enum):
            value = value.value
        setattr(advance, field, value)

    await AuditService(db).log_updated("ADVANCE", advance.id, old_values, _snapshot(advance), user_id=current_user.id)
    await db.commit()
    await db.refresh(advance)
    return advance


@router.delete("/{advance_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_permissions("advances:manage"))])
async def delete_advance(
    advance_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    advance = await _get_or_404(db, advance_id)
    if advance.status == AdvanceStatus.DEDUCTED.value:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Deducted advances cannot be deleted"
        )

    await AuditService(db).log_deleted("ADVANCE", advance.id, _snapshot(advance), user_id=current_user.id)
    await db.delete(advance)
    await db.commit()
