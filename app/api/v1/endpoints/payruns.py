"""Pay run endpoints."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status, Query

from app.api.deps import DB, CurrentUser, require_permissions
from app.models.hr import Month
from app.models.payrun import PayRunStatus
from app.schemas.payrun import (
    PayRunGenerateRequest,
    PayRunResponse,
    PayRunSummary,
    PayRunListResponse,
)
from app.schemas.base import page_count
from app.services.payrun_service import (
    PayRunService,
    PayRunError,
    PayRunNotFoundError,
    PayRunConflictError,
)

router = APIRouter()


def _raise_http(e: PayRunError):
    if isinstance(e, PayRunNotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(e, PayRunConflictError):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_400_BAD_REQUEST
    raise HTTPException(status_code=code, detail=e.message)


@router.post("/generate", response_model=PayRunResponse, status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_permissions("payroll:generate"))])
async def generate_pay_run(
    data: PayRunGenerateRequest,
    db: DB,
    current_user: CurrentUser,
):
    """
    Generate the pay run for a month.

    An existing draft run is only replaced when `regenerate` is true; a
    finalized run is never replaced. Employees whose pay cannot be computed
    are listed in `failures` and the rest of the run is kept.
    """
    try:
        return await PayRunService(db).generate(
            data.month,
            data.year,
            regenerate=data.regenerate,
            user_id=current_user.id,
        )
    except PayRunError as e:
        _raise_http(e)


@router.get("", response_model=PayRunListResponse, dependencies=[Depends(require_permissions("payroll:view"))])
async def list_pay_runs(
    db: DB,
    year: Optional[str] = None,
    status: Optional[PayRunStatus] = None,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=100),
):
    """List pay runs, most recent period first."""
    runs, total = await PayRunService(db).list_pay_runs(
        year=year,
        status=status.value if status else None,
        skip=(page - 1) * size,
        limit=size,
    )
    return PayRunListResponse(
        items=[PayRunSummary.model_validate(r) for r in runs],
        total=total,
        page=page,
        size=size,
        pages=page_count(total, size),
    )


@router.get("/period/{month}/{year}", response_model=Optional[PayRunResponse], dependencies=[Depends(require_permissions("payroll:view"))])
async def get_pay_run_for_period(
    month: Month,
    year: str,
    db: DB,
):
    """Pay run for a period; null when none has been generated."""
    return await PayRunService(db).get_by_period(month, year)


@router.get("/{pay_run_id}", response_model=PayRunResponse, dependencies=[Depends(require_permissions("payroll:view"))])
async def get_pay_run(
    pay_run_id: UUID,
    db: DB,
):
    pay_run = await PayRunService(db).get_pay_run(pay_run_id)
    if not pay_run:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pay run not found")
    return pay_run


@router.post("/{pay_run_id}/finalize", response_model=PayRunResponse, dependencies=[Depends(require_permissions("payroll:finalize"))])
async def finalize_pay_run(
    pay_run_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    """
    Finalize a draft pay run: the advances and EMIs it deducted are settled
    and the period's attendance is locked.
    """
    try:
        return await PayRunService(db).finalize(pay_run_id, user_id=current_user.id)
    except PayRunError as e:
        _raise_http(e)


@router.delete("/{pay_run_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_permissions("payroll:generate"))])
async def delete_pay_run(
    pay_run_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    """Delete a draft pay run."""
    try:
        await PayRunService(db).delete_pay_run(pay_run_id, user_id=current_user.id)
    except PayRunError as e:
        _raise_http(e)

    await db.commit()
