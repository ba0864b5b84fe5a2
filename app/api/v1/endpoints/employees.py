"""Employee endpoints, including the CTC salary breakdown preview."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status, Query

from app.api.deps import DB, CurrentUser, require_permissions
from app.models.hr import EmployeeStatus
from app.schemas.hr import (
    EmployeeCreate,
    EmployeeUpdate,
    EmployeeResponse,
    EmployeeListResponse,
    SalaryBreakdownRequest,
    SalaryBreakdownResponse,
)
from app.schemas.base import page_count
from app.services.employee_service import EmployeeService, EmployeeError
from app.services.salary_service import compute_ctc_breakdown

router = APIRouter()


def _raise_http(e: EmployeeError):
    raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/salary-breakdown", response_model=SalaryBreakdownResponse, dependencies=[Depends(require_permissions("employees:view"))])
async def salary_breakdown(
    data: SalaryBreakdownRequest,
):
    """
    Split an annual CTC into monthly and annual salary components.

    The special allowance balances the CTC after employer PF, employer ESI
    and gratuity are accounted for.
    """
    breakdown = compute_ctc_breakdown(**data.model_dump())
    return SalaryBreakdownResponse(
        ctc=breakdown.ctc_annual,
        monthly=breakdown.monthly(),
        annual=breakdown.annual(),
        net_monthly=breakdown.net,
    )


@router.get("", response_model=EmployeeListResponse, dependencies=[Depends(require_permissions("employees:view"))])
async def list_employees(
    db: DB,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=100),
    status: Optional[EmployeeStatus] = None,
    department_id: Optional[UUID] = None,
    search: Optional[str] = None,
):
    """List employees with filters and pagination."""
    employees, total = await EmployeeService(db).list_employees(
        status=status.value if status else None,
        department_id=department_id,
        search=search,
        skip=(page - 1) * size,
        limit=size,
    )

    return EmployeeListResponse(
        items=[EmployeeResponse.model_validate(e) for e in employees],
        total=total,
        page=page,
        size=size,
        pages=page_count(total, size),
    )


@router.post("", response_model=EmployeeResponse, status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_permissions("employees:create"))])
async def create_employee(
    employee_in: EmployeeCreate,
    db: DB,
    current_user: CurrentUser,
):
    """
    Create a new employee.

    The employee code is generated (EMP-0001, EMP-0002, ...) when not supplied.
    """
    data = employee_in.model_dump(exclude={"auto_compute_salary", "hra_percentage"})
    try:
        employee = await EmployeeService(db).create(
            data,
            auto_compute_salary=employee_in.auto_compute_salary,
            hra_percentage=employee_in.hra_percentage,
            keep_professional_tax="professional_tax" in employee_in.model_fields_set,
            user_id=current_user.id,
        )
    except EmployeeError as e:
        _raise_http(e)

    await db.commit()
    await db.refresh(employee)
    return employee


@router.get("/{employee_id}", response_model=EmployeeResponse, dependencies=[Depends(require_permissions("employees:view"))])
async def get_employee(
    employee_id: UUID,
    db: DB,
):
    """Get employee by ID."""
    try:
        return await EmployeeService(db).get(employee_id)
    except EmployeeError as e:
        _raise_http(e)


@router.put("/{employee_id}", response_model=EmployeeResponse, dependencies=[Depends(require_permissions("employees:update"))])
async def update_employee(
    employee_id: UUID,
    employee_in: EmployeeUpdate,
    db: DB,
    current_user: CurrentUser,
):
    """Update employee details or compensation."""
    try:
        employee = await EmployeeService(db).update(
            employee_id,
            employee_in.model_dump(exclude_unset=True),
            user_id=current_user.id,
        )
    except EmployeeError as e:
        _raise_http(e)

    await db.commit()
    await db.refresh(employee)
    return employee


@router.delete("/{employee_id}", dependencies=[Depends(require_permissions("employees:delete"))])
async def delete_employee(
    employee_id: UUID,
    db: DB,
    current_user: CurrentUser,
    hard: bool = Query(False, description="Remove the record instead of deactivating it"),
):
    """
    Deactivate an employee. With hard=true the record is removed, which is
    only allowed while no pay run references the employee.
    """
    service = EmployeeService(db)
    try:
        if hard:
            await service.hard_delete(employee_id, user_id=current_user.id)
        else:
            await service.deactivate(employee_id, user_id=current_user.id)
    except EmployeeError as e:
        _raise_http(e)

    await db.commit()
    if hard:
        return {"message": "Employee deleted"}
    return {"message": "Employee deactivated"}
