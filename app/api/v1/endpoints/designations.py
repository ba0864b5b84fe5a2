"""Designation endpoints."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy import select, func, update

from app.api.deps import DB, CurrentUser, require_permissions
from app.models.hr import Department, Designation, Employee
from app.schemas.hr import (
    DesignationCreate,
    DesignationUpdate,
    DesignationResponse,
    DesignationListResponse,
)
from app.schemas.base import page_count
from app.services.audit_service import AuditService

router = APIRouter()


async def _get_or_404(db, designation_id: UUID) -> Designation:
    designation = await db.get(Designation, designation_id)
    if not designation:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Designation not found"
        )
    return designation


async def _validate(db, data: dict, designation: Optional[Designation] = None) -> None:
    title = data.get("title")
    if title:
        query = select(Designation.id).where(func.lower(Designation.title) == title.lower())
        if designation is not None:
            query = query.where(Designation.id != designation.id)
        if (await db.execute(query)).first() is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Designation {title} already exists"
            )

    if data.get("department_id") and await db.get(Department, data["department_id"]) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Department not found")

    reporting_to_id = data.get("reporting_to_id")
    if reporting_to_id:
        if designation is not None and reporting_to_id == designation.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="A designation cannot report to itself"
            )
        if await db.get(Designation, reporting_to_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reporting designation not found")

    min_salary = data.get("min_salary", designation.min_salary if designation else None)
    max_salary = data.get("max_salary", designation.max_salary if designation else None)
    if min_salary is not None and max_salary is not None and min_salary > max_salary:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="min_salary cannot exceed max_salary"
        )


@router.get("", response_model=DesignationListResponse, dependencies=[Depends(require_permissions("designations:view"))])
async def list_designations(
    db: DB,
    department_id: Optional[UUID] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=100),
):
    """List designations, lowest level first."""
    query = select(Designation)
    if department_id:
        query = query.where(Designation.department_id == department_id)
    if search:
        query = query.where(Designation.title.ilike(f"%{search}%"))

    total = await db.scalar(select(func.count()).select_from(query.subquery())) or 0

    result = await db.execute(
        query.order_by(Designation.level, Designation.title).offset((page - 1) * size).limit(size)
    )
    items = [DesignationResponse.model_validate(d) for d in result.scalars().all()]

    return DesignationListResponse(items=items, total=total, page=page, size=size, pages=page_count(total, size))


@router.post("", response_model=DesignationResponse, status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_permissions("designations:manage"))])
async def create_designation(
    designation_in: DesignationCreate,
    db: DB,
    current_user: CurrentUser,
):
    data = designation_in.model_dump()
    await _validate(db, data)

    designation = Designation(**data)
    db.add(designation)
    await db.flush()

    await AuditService(db).log_created(
        "DESIGNATION", designation.id, {"title": designation.title, "level": designation.level},
        user_id=current_user.id,
    )
    await db.commit()
    await db.refresh(designation)
    return designation


@router.get("/{designation_id}", response_model=DesignationResponse, dependencies=[Depends(require_permissions("designations:view"))])
async def get_designation(
    designation_id: UUID,
    db: DB,
):
    return await _get_or_404(db, designation_id)


@router.put("/{designation_id}", response_model=DesignationResponse, dependencies=[Depends(require_permissions("designations:manage"))])
async def update_designation(
    designation_id: UUID,
    designation_in: DesignationUpdate,
    db: DB,
    current_user: CurrentUser,
):
    designation = await _get_or_404(db, designation_id)
    update_data = designation_in.model_dump(exclude_unset=True)
    await _validate(db, update_data, designation)

    old_values = {k: getattr(designation, k) for k in update_data}
    for field, value in update_data.items():
        setattr(designation, field, value)

    await AuditService(db).log_updated(
        "DESIGNATION", designation.id, old_values, update_data, user_id=current_user.id
    )
    await db.commit()
    await db.refresh(designation)
    return designation


@router.delete("/{designation_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_permissions("designations:manage"))])
async def delete_designation(
    designation_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    """Delete a designation; employees and child designations keep no title."""
    designation = await _get_or_404(db, designation_id)

    await db.execute(
        update(Employee).where(Employee.designation_id == designation.id).values(designation_id=None)
    )
    await db.execute(
        update(Designation).where(Designation.reporting_to_id == designation.id).values(reporting_to_id=None)
    )
    await AuditService(db).log_deleted(
        "DESIGNATION", designation.id, {"title": designation.title}, user_id=current_user.id
    )
    await db.delete(designation)
    await db.commit()
