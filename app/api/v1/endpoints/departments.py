"""Department endpoints."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy import select, func, update

from app.api.deps import DB, CurrentUser, require_permissions
from app.models.hr import Department, Designation, Employee
from app.schemas.hr import (
    DepartmentCreate,
    DepartmentUpdate,
    DepartmentResponse,
    DepartmentListResponse,
)
from app.schemas.base import page_count
from app.services.audit_service import AuditService

router = APIRouter()


async def _employee_count(db, department_id: UUID) -> int:
    result = await db.execute(
        select(func.count(Employee.id)).where(Employee.department_id == department_id)
    )
    return result.scalar() or 0


async def _to_response(db, dept: Department) -> DepartmentResponse:
    response = DepartmentResponse.model_validate(dept)
    response.employee_count = await _employee_count(db, dept.id)
    return response


async def _get_or_404(db, department_id: UUID) -> Department:
    dept = await db.get(Department, department_id)
    if not dept:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Department not found"
        )
    return dept


async def _ensure_unique_name(db, name: str, exclude_id: Optional[UUID] = None) -> None:
    query = select(Department.id).where(func.lower(Department.name) == name.lower())
    if exclude_id:
        query = query.where(Department.id != exclude_id)
    if (await db.execute(query)).first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Department {name} already exists"
        )


@router.get("", response_model=DepartmentListResponse, dependencies=[Depends(require_permissions("departments:view"))])
async def list_departments(
    db: DB,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=100),
):
    """List all departments."""
    query = select(Department)

    if is_active is not None:
        query = query.where(Department.is_active == is_active)

    if search:
        query = query.where(Department.name.ilike(f"%{search}%"))

    total = await db.scalar(select(func.count()).select_from(query.subquery())) or 0

    result = await db.execute(
        query.order_by(Department.name).offset((page - 1) * size).limit(size)
    )
    items = [await _to_response(db, d) for d in result.scalars().all()]

    return DepartmentListResponse(items=items, total=total, page=page, size=size, pages=page_count(total, size))


@router.post("", response_model=DepartmentResponse, status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_permissions("departments:manage"))])
async def create_department(
    dept_in: DepartmentCreate,
    db: DB,
    current_user: CurrentUser,
):
    """Create a new department."""
    await _ensure_unique_name(db, dept_in.name)

    dept = Department(**dept_in.model_dump())
    db.add(dept)
    await db.flush()

    await AuditService(db).log_created("DEPARTMENT", dept.id, {"name": dept.name}, user_id=current_user.id)
    await db.commit()
    await db.refresh(dept)

    return await _to_response(db, dept)


@router.get("/{department_id}", response_model=DepartmentResponse, dependencies=[Depends(require_permissions("departments:view"))])
async def get_department(
    department_id: UUID,
    db: DB,
):
    """Get department by ID."""
    return await _to_response(db, await _get_or_404(db, department_id))


@router.put("/{department_id}", response_model=DepartmentResponse, dependencies=[Depends(require_permissions("departments:manage"))])
async def update_department(
    department_id: UUID,
    dept_in: DepartmentUpdate,
    db: DB,
    current_user: CurrentUser,
):
    """Update department."""
    dept = await _get_or_404(db, department_id)

    update_data = dept_in.model_dump(exclude_unset=True)
    if update_data.get("name"):
        await _ensure_unique_name(db, update_data["name"], exclude_id=dept.id)

    old_values = {k: getattr(dept, k) for k in update_data}
    for field, value in update_data.items():
        setattr(dept, field, value)

    await AuditService(db).log_updated("DEPARTMENT", dept.id, old_values, update_data, user_id=current_user.id)
    await db.commit()
    await db.refresh(dept)

    return await _to_response(db, dept)


@router.delete("/{department_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_permissions("departments:manage"))])
async def delete_department(
    department_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    """Delete a department that has no employees."""
    dept = await _get_or_404(db, department_id)

    if await _employee_count(db, dept.id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Department still has employees"
        )

    await db.execute(
        update(Designation).where(Designation.department_id == dept.id).values(department_id=None)
    )
    await AuditService(db).log_deleted("DEPARTMENT", dept.id, {"name": dept.name}, user_id=current_user.id)
    await db.delete(dept)
    await db.commit()
