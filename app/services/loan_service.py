"""Employee loans and their EMI schedules."""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional
import uuid
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.hr import Employee, Month, next_period
from app.models.loan import LoanRecord, LoanEMI, LoanStatus, EMIStatus
from app.services.audit_service import AuditService
from app.services.payroll_calculator import to_money, ZERO


logger = logging.getLogger(__name__)


class LoanError(Exception):
    """Custom exception for loan errors."""
    def __init__(self, message: str, details: Dict = None, status_code: int = 400):
        self.message = message
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)


def calculate_loan_terms(
    loan_amount: Decimal,
    interest_rate: Decimal,
    number_of_emis: int,
) -> tuple[Decimal, Decimal]:
    """Flat interest: total = amount + amount x rate / 100, split evenly into EMIs.

    Returns (total_amount, emi_amount).
    """
    if number_of_emis <= 0:
        raise LoanError("Number of EMIs must be greater than 0")
    total = to_money(Decimal(loan_amount) + Decimal(loan_amount) * Decimal(interest_rate) / 100)
    return total, to_money(total / number_of_emis)


def build_emi_schedule(
    start_month: Month,
    start_year: str,
    number_of_emis: int,
    emi_amount: Decimal,
    total_amount: Decimal,
) -> List[LoanEMI]:
    """
    One EMI per consecutive month from the start period.
    The last installment absorbs the rounding remainder so the schedule sums to the total.
    """
    schedule = []
    month, year = start_month, start_year
    for number in range(1, number_of_emis + 1):
        amount = emi_amount
        if number == number_of_emis:
            amount = total_amount - emi_amount * (number_of_emis - 1)
        schedule.append(LoanEMI(
            installment_number=number,
            month=month.value,
            year=year,
            emi_amount=amount,
            status=EMIStatus.PENDING.value,
        ))
        month, year = next_period(month, year)
    return schedule


def refresh_loan_progress(loan: LoanRecord) -> None:
    """Recompute paid count, remaining balance and completion from the schedule."""
    paid = [emi for emi in loan.emi_schedule if emi.status == EMIStatus.PAID.value]
    loan.total_paid_emis = len(paid)
    paid_amount = sum((emi.emi_amount for emi in paid), ZERO)
    loan.remaining_balance = max(ZERO, loan.total_amount - paid_amount)
    if loan.status == LoanStatus.ACTIVE.value and len(paid) == loan.number_of_emis:
        loan.status = LoanStatus.COMPLETED.value


def mark_emi_paid(emi: LoanEMI, paid_at: Optional[datetime] = None) -> bool:
    """Flip an EMI to paid. Returns False if it was already paid."""
    if emi.status == EMIStatus.PAID.value:
        return False
    emi.status = EMIStatus.PAID.value
    emi.paid_date = paid_at or datetime.now(timezone.utc)
    return True


class LoanService:
    """Service for loan records and manual EMI settlement."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    async def get_loan(self, loan_id: uuid.UUID) -> Optional[LoanRecord]:
        result = await self.db.execute(
            select(LoanRecord)
            .options(selectinload(LoanRecord.emi_schedule))
            .where(LoanRecord.id == loan_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_loans(
        self,
        employee_id: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[List[LoanRecord], int]:
        stmt = select(LoanRecord).options(selectinload(LoanRecord.emi_schedule))
        if employee_id:
            stmt = stmt.where(LoanRecord.employee_id == employee_id)
        if status:
            stmt = stmt.where(LoanRecord.status == status)

        total = (await self.db.execute(select(func.count()).select_from(stmt.subquery()))).scalar()

        stmt = stmt.order_by(LoanRecord.created_at.desc()).offset(skip).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def create_loan(
        self,
        employee_id: uuid.UUID,
        loan_amount: Decimal,
        interest_rate: Decimal,
        number_of_emis: int,
        start_month: Month,
        start_year: str,
        remarks: Optional[str] = None,
        user_id: Optional[uuid.UUID] = None,
    ) -> LoanRecord:
        employee = await self.db.get(Employee, employee_id)
        if employee is None:
            raise LoanError("Employee not found", status_code=404)
        if loan_amount <= 0:
            raise LoanError("Loan amount must be greater than 0")
        if interest_rate < 0:
            raise LoanError("Interest rate cannot be negative")

        total_amount, emi_amount = calculate_loan_terms(loan_amount, interest_rate, number_of_emis)

        loan = LoanRecord(
            id=uuid.uuid4(),
            employee_id=employee_id,
            loan_amount=to_money(loan_amount),
            interest_rate=Decimal(interest_rate),
            number_of_emis=number_of_emis,
            emi_amount=emi_amount,
            total_amount=total_amount,
            start_month=start_month.value,
            start_year=start_year,
            total_paid_emis=0,
            remaining_balance=total_amount,
            status=LoanStatus.ACTIVE.value,
            remarks=remarks,
            emi_schedule=build_emi_schedule(start_month, start_year, number_of_emis, emi_amount, total_amount),
        )
        self.db.add(loan)
        await self.db.flush()

        await self.audit.log_created(
            "LOAN",
            loan.id,
            {
                "employee_id": str(employee_id),
                "loan_amount": loan.loan_amount,
                "total_amount": total_amount,
                "number_of_emis": number_of_emis,
            },
            user_id=user_id,
            description=f"Loan of {loan.loan_amount} for {employee.full_name}",
        )
        logger.info("Created loan %s for employee %s (%d EMIs)", loan.id, employee_id, number_of_emis)
        return await self.get_loan(loan.id)

    async def pay_emi(
        self,
        loan_id: uuid.UUID,
        installment_number: int,
        user_id: Optional[uuid.UUID] = None,
    ) -> LoanRecord:
        loan = await self.get_loan(loan_id)
        if loan is None:
            raise LoanError("Loan not found", status_code=404)
        if loan.status != LoanStatus.ACTIVE.value:
            raise LoanError(f"Loan is {loan.status}", status_code=409)

        emi = next((e for e in loan.emi_schedule if e.installment_number == installment_number), None)
        if emi is None:
            raise LoanError(f"Installment {installment_number} not found", status_code=404)
        if not mark_emi_paid(emi):
            raise LoanError(f"Installment {installment_number} is already paid", status_code=409)

        refresh_loan_progress(loan)
        await self.db.flush()

        await self.audit.log(
            action="PAY_EMI",
            entity_type="LOAN",
            entity_id=loan.id,
            user_id=user_id,
            new_values={
                "installment_number": installment_number,
                "total_paid_emis": loan.total_paid_emis,
                "remaining_balance": loan.remaining_balance,
                "status": loan.status,
            },
        )
        return loan

    async def cancel_loan(self, loan_id: uuid.UUID, user_id: Optional[uuid.UUID] = None) -> LoanRecord:
        loan = await self.get_loan(loan_id)
        if loan is None:
            raise LoanError("Loan not found", status_code=404)
        if loan.status != LoanStatus.ACTIVE.value:
            raise LoanError(f"Only active loans can be cancelled, loan is {loan.status}", status_code=409)

        loan.status = LoanStatus.CANCELLED.value
        await self.db.flush()
        await self.audit.log(
            action="CANCEL",
            entity_type="LOAN",
            entity_id=loan.id,
            user_id=user_id,
            old_values={"status": LoanStatus.ACTIVE.value},
            new_values={"status": loan.status},
        )
        return loan

    async def delete_loan(self, loan_id: uuid.UUID, user_id: Optional[uuid.UUID] = None) -> None:
        loan = await self.get_loan(loan_id)
        if loan is None:
            raise LoanError("Loan not found", status_code=404)
        if any(emi.status == EMIStatus.PAID.value for emi in loan.emi_schedule):
            raise LoanError("Loans with paid installments cannot be deleted", status_code=409)

        await self.audit.log_deleted(
            "LOAN",
            loan.id,
            {"employee_id": str(loan.employee_id), "loan_amount": loan.loan_amount},
            user_id=user_id,
        )
        await self.db.delete(loan)
        await self.db.flush()
