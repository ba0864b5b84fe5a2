"""Employee loan endpoints."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status, Query

from app.api.deps import DB, CurrentUser, require_permissions
from app.models.loan import LoanStatus
from app.schemas.loan import LoanCreate, LoanResponse, LoanListResponse
from app.schemas.base import page_count
from app.services.loan_service import LoanService, LoanError

router = APIRouter()


def _raise_http(e: LoanError):
    raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=LoanListResponse, dependencies=[Depends(require_permissions("loans:view"))])
async def list_loans(
    db: DB,
    employee_id: Optional[UUID] = None,
    status: Optional[LoanStatus] = None,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=100),
):
    """List loans with their EMI schedules."""
    loans, total = await LoanService(db).list_loans(
        employee_id=employee_id,
        status=status.value if status else None,
        skip=(page - 1) * size,
        limit=size,
    )
    return LoanListResponse(
        items=[LoanResponse.model_validate(loan) for loan in loans],
        total=total,
        page=page,
        size=size,
        pages=page_count(total, size),
    )


@router.post("", response_model=LoanResponse, status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_permissions("loans:manage"))])
async def create_loan(
    loan_in: LoanCreate,
    db: DB,
    current_user: CurrentUser,
):
    """
    Create a loan and its EMI schedule.

    total = amount + amount x interest_rate / 100, split into equal monthly
    EMIs from the start month; the last EMI absorbs the rounding remainder.
    """
    try:
        loan = await LoanService(db).create_loan(
            employee_id=loan_in.employee_id,
            loan_amount=loan_in.loan_amount,
            interest_rate=loan_in.interest_rate,
            number_of_emis=loan_in.number_of_emis,
            start_month=loan_in.start_month,
            start_year=loan_in.start_year,
            remarks=loan_in.remarks,
            user_id=current_user.id,
        )
    except LoanError as e:
        _raise_http(e)

    await db.commit()
    return loan


@router.get("/{loan_id}", response_model=LoanResponse, dependencies=[Depends(require_permissions("loans:view"))])
async def get_loan(
    loan_id: UUID,
    db: DB,
):
    loan = await LoanService(db).get_loan(loan_id)
    if not loan:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Loan not found")
    return loan


@router.post("/{loan_id}/cancel", response_model=LoanResponse, dependencies=[Depends(require_permissions("loans:manage"))])
async def cancel_loan(
    loan_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    """Cancel an active loan; its pending EMIs stop being deducted."""
    try:
        loan = await LoanService(db).cancel_loan(loan_id, user_id=current_user.id)
    except LoanError as e:
        _raise_http(e)

    await db.commit()
    return loan


@router.post("/{loan_id}/emis/{installment_number}/pay", response_model=LoanResponse, dependencies=[Depends(require_permissions("loans:manage"))])
async def pay_emi(
    loan_id: UUID,
    installment_number: int,
    db: DB,
    current_user: CurrentUser,
):
    """Mark one installment as paid outside payroll."""
    try:
        loan = await LoanService(db).pay_emi(loan_id, installment_number, user_id=current_user.id)
    except LoanError as e:
        _raise_http(e)

    await db.commit()
    return loan


@router.delete("/{loan_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_permissions("loans:manage"))])
async def delete_loan(
    loan_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    try:
        await LoanService(db).delete_loan(loan_id, user_id=current_user.id)
    except LoanError as e:
        _raise_http(e)

    await db.commit()
