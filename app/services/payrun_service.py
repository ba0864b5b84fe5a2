"""
Pay Run Generation Service

Builds the monthly pay run:
- Attendance lookup with a full-month default when nothing is recorded
- Salary pro-ration and statutory deductions (see payroll_calculator)
- Recoverable obligations: advances and loan EMIs due this month
- Aggregation into one pay run per (month, year) with run-level totals

Generation is serialized per period and runs in one transaction. A
period that already has a pay run is only replaced when the caller asks
to regenerate; finalized runs are locked. Advances and EMIs are settled
on finalization, never on generation, so a run can be regenerated any
number of times without deducting anything twice. Finalization recomputes
the draft first and refuses it when attendance, salary, advances or EMIs
moved on since generation.
"""

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional
import uuid
import logging

from sqlalchemy import select, delete, func, case
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.hr import Employee, EmployeeStatus, Month
from app.models.attendance import AttendanceRecord
from app.models.advance import AdvanceRecord, AdvanceStatus
from app.models.loan import LoanRecord, LoanEMI, LoanStatus, EMIStatus
from app.models.payrun import PayRun, PayRunEmployeeRecord, PayRunStatus, AttendanceSource
from app.services.audit_service import AuditService
from app.services.loan_service import mark_emi_paid, refresh_loan_progress
from app.services.payroll_calculator import (
    AttendanceSnapshot,
    EmployeePay,
    Obligations,
    PayrollCalculationError,
    PayrollRules,
    SalaryProfile,
    ZERO,
    compute_employee_pay,
)


logger = logging.getLogger(__name__)


class PayRunError(Exception):
    """Custom exception for pay run errors."""
    def __init__(self, message: str, details: Dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class PayRunNotFoundError(PayRunError):
    pass


class PayRunConflictError(PayRunError):
    """Period already has a run, or the run is finalized."""
    pass


class PeriodLockRegistry:
    """One asyncio.Lock per (month, year), dropped when nobody holds or waits on it."""

    def __init__(self):
        self._locks: Dict[tuple, asyncio.Lock] = {}
        self._holders: Dict[tuple, int] = defaultdict(int)

    @asynccontextmanager
    async def hold(self, month: str, year: str):
        key = (month, year)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                self._locks.pop(key, None)

    def is_held(self, month: str, year: str) -> bool:
        lock = self._locks.get((month, year))
        return lock is not None and lock.locked()


period_locks = PeriodLockRegistry()

# Stored figures a draft record must still match at finalization
RECHECKED_FIELDS = (
    "attendance_source", "total_working_days", "payable_days", "loss_of_pay_days",
    "basic_salary", "gross_salary", "pf_deduction", "esi_deduction", "professional_tax",
    "tds", "advance_deduction", "loan_deduction", "total_deductions", "net_pay",
)


def _run_snapshot(pay_run: PayRun) -> Dict:
    return {
        "version": pay_run.version,
        "status": pay_run.status,
        "employee_count": pay_run.employee_count,
        "total_gross": pay_run.total_gross,
        "total_deductions": pay_run.total_deductions,
        "total_net": pay_run.total_net,
        "generated_at": pay_run.generated_at,
    }


class PayRunService:
    """
    Service for generating, reading and finalizing pay runs.
    """

    def __init__(self, db: AsyncSession, rules: Optional[PayrollRules] = None):
        self.db = db
        self.rules = rules or PayrollRules.from_settings()
        self.audit = AuditService(db)

    # ==================== STORES ====================

    async def find_active_employees(self) -> List[Employee]:
        result = await self.db.execute(
            select(Employee)
            .where(Employee.status == EmployeeStatus.ACTIVE.value)
            .order_by(Employee.employee_code, Employee.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def find_attendance(self, employee_id: uuid.UUID, month: Month, year: str) -> Optional[AttendanceRecord]:
        result = await self.db.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.employee_id == employee_id,
                AttendanceRecord.month == month.value,
                AttendanceRecord.year == year,
            ).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_pending_advances(self, employee_id: uuid.UUID, month: Month, year: str) -> List[AdvanceRecord]:
        result = await self.db.execute(
            select(AdvanceRecord)
            .where(
                AdvanceRecord.employee_id == employee_id,
                AdvanceRecord.advance_deduction_month == month.value,
                AdvanceRecord.advance_deduction_year == year,
                AdvanceRecord.status != AdvanceStatus.DEDUCTED.value,
            )
            .order_by(AdvanceRecord.created_at, AdvanceRecord.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def find_active_emis(self, employee_id: uuid.UUID, month: Month, year: str) -> List[LoanEMI]:
        result = await self.db.execute(
            select(LoanEMI)
            .join(LoanRecord, LoanEMI.loan_id == LoanRecord.id)
            .where(
                LoanRecord.employee_id == employee_id,
                LoanRecord.status == LoanStatus.ACTIVE.value,
                LoanEMI.month == month.value,
                LoanEMI.year == year,
                LoanEMI.status == EMIStatus.PENDING.value,
            )
            .order_by(LoanRecord.created_at, LoanEMI.installment_number)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def find_by_period(self, month: Month, year: str, for_update: bool = False) -> Optional[PayRun]:
        stmt = select(PayRun).where(PayRun.month == month.value, PayRun.year == year)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    # ==================== PIPELINE ====================

    async def lookup_attendance(self, employee_id: uuid.UUID, month: Month, year: str) -> AttendanceSnapshot:
        """Recorded attendance, or a full standard month when none was entered."""
        record = await self.find_attendance(employee_id, month, year)
        if record is None:
            return AttendanceSnapshot.full_month(self.rules)

        return AttendanceSnapshot(
            total_working_days=record.total_working_days,
            payable_days=record.payable_days,
            loss_of_pay_days=record.loss_of_pay_days,
            source=AttendanceSource.RECORDED,
        )

    async def resolve_obligations(self, employee_id: uuid.UUID, month: Month, year: str) -> Obligations:
        """Advances and loan EMIs scheduled for deduction in this period."""
        advances = await self.find_pending_advances(employee_id, month, year)
        emis = await self.find_active_emis(employee_id, month, year)

        return Obligations(
            advance_total=sum((a.advance_paid_amount for a in advances), ZERO),
            loan_total=sum((e.emi_amount for e in emis), ZERO),
            advance_ids=[str(a.id) for a in advances],
            loan_emi_ids=[str(e.id) for e in emis],
        )

    async def compute_for_employee(self, employee: Employee, month: Month, year: str) -> EmployeePay:
        profile = SalaryProfile.from_employee(employee)
        attendance = await self.lookup_attendance(employee.id, month, year)
        obligations = await self.resolve_obligations(employee.id, month, year)
        return compute_employee_pay(profile, attendance, obligations, self.rules)

    @staticmethod
    def _build_record(employee: Employee, pay: EmployeePay, position: int) -> PayRunEmployeeRecord:
        salary = pay.salary
        statutory = pay.statutory
        return PayRunEmployeeRecord(
            employee_id=employee.id,
            position=position,
            employee_code=employee.employee_code,
            employee_name=employee.full_name,
            attendance_source=pay.attendance.source.value,
            total_working_days=pay.attendance.total_working_days,
            payable_days=pay.attendance.payable_days,
            loss_of_pay_days=pay.attendance.loss_of_pay_days,
            basic_salary=salary.basic,
            loss_of_pay_amount=salary.loss_of_pay_amount,
            adjusted_basic=salary.adjusted_basic,
            hra=salary.hra,
            conveyance=salary.conveyance,
            telephone=salary.telephone,
            medical_allowance=salary.medical_allowance,
            special_allowance=salary.special_allowance,
            total_allowances=salary.total_allowances,
            gross_salary=salary.gross_salary,
            pf_deduction=statutory.pf_employee,
            esi_deduction=statutory.esi_employee,
            professional_tax=statutory.professional_tax,
            tds=statutory.tds,
            advance_deduction=pay.obligations.advance_total,
            loan_deduction=pay.obligations.loan_total,
            total_deductions=pay.total_deductions,
            net_pay=pay.net_pay,
            employer_pf=statutory.pf_employer,
            employer_esi=statutory.esi_employer,
            advance_ids=pay.obligations.advance_ids,
            loan_emi_ids=pay.obligations.loan_emi_ids,
        )

    async def generate(
        self,
        month: Month,
        year: str,
        regenerate: bool = False,
        user_id: Optional[uuid.UUID] = None,
    ) -> PayRun:
        """
        Generate (or regenerate) the pay run for a period and commit it.

        Employees whose pay cannot be computed are skipped and listed in
        the run's failures; anything else aborts and rolls back the whole run.
        """
        async with period_locks.hold(month.value, year):
            existing = await self.find_by_period(month, year, for_update=True)
            if existing is not None:
                if existing.status == PayRunStatus.FINALIZED.value:
                    raise PayRunConflictError(
                        f"Pay run for {month.value} {year} is finalized and cannot be regenerated",
                        {"pay_run_id": str(existing.id)}
                    )
                if not regenerate:
                    raise PayRunConflictError(
                        f"Pay run for {month.value} {year} already exists; set regenerate to replace it",
                        {"pay_run_id": str(existing.id), "version": existing.version}
                    )

            employees = await self.find_active_employees()
            logger.info("Generating pay run for %s %s: %d active employees", month.value, year, len(employees))

            records: List[PayRunEmployeeRecord] = []
            failures: List[Dict] = []
            for employee in employees:
                try:
                    pay = await self.compute_for_employee(employee, month, year)
                except PayrollCalculationError as e:
                    logger.warning(
                        "Skipping employee %s in pay run %s %s: %s",
                        employee.employee_code, month.value, year, e.message
                    )
                    failures.append({
                        "employee_id": str(employee.id),
                        "employee_code": employee.employee_code,
                        "employee_name": employee.full_name,
                        "reason": e.message,
                    })
                    continue
                records.append(self._build_record(employee, pay, position=len(records) + 1))

            totals = {
                "employee_count": len(records),
                "eligible_count": len(employees),
                "total_gross": sum((r.gross_salary for r in records), ZERO),
                "total_deductions": sum((r.total_deductions for r in records), ZERO),
                "total_net": sum((r.net_pay for r in records), ZERO),
            }
            now = datetime.now(timezone.utc)

            if existing is not None:
                replaced = _run_snapshot(existing)
                self.db.expire(existing, ["records"])
                await self.db.execute(
                    delete(PayRunEmployeeRecord).where(PayRunEmployeeRecord.pay_run_id == existing.id)
                )
                pay_run = existing
                pay_run.version += 1
                pay_run.status = PayRunStatus.DRAFT.value
            else:
                replaced = None
                pay_run = PayRun(
                    id=uuid.uuid4(),
                    month=month.value,
                    year=year,
                    status=PayRunStatus.DRAFT.value,
                    version=1,
                )
                self.db.add(pay_run)

            for key, value in totals.items():
                setattr(pay_run, key, value)
            pay_run.failures = failures
            pay_run.generated_by = user_id
            pay_run.generated_at = now
            try:
                await self.db.flush()

                for record in records:
                    record.pay_run_id = pay_run.id
                self.db.add_all(records)
                await self.db.flush()

                if replaced is not None:
                    await self.audit.log(
                        action="REGENERATE",
                        entity_type="PAY_RUN",
                        entity_id=pay_run.id,
                        user_id=user_id,
                        old_values=replaced,
                        new_values=_run_snapshot(pay_run),
                        description=f"Regenerated pay run {month.value} {year} (v{pay_run.version})",
                    )
                else:
                    await self.audit.log(
                        action="GENERATE",
                        entity_type="PAY_RUN",
                        entity_id=pay_run.id,
                        user_id=user_id,
                        new_values=_run_snapshot(pay_run),
                        description=f"Generated pay run {month.value} {year}",
                    )

                await self.db.commit()
            except IntegrityError:
                # Another process created the period's run first
                await self.db.rollback()
                logger.warning("Concurrent generation of pay run %s %s", month.value, year)
                raise PayRunConflictError(
                    f"Pay run for {month.value} {year} was generated concurrently; retry with regenerate",
                    {"month": month.value, "year": year}
                )
            logger.info(
                "Pay run %s %s v%d: processed %d of %d employees, %d failed",
                month.value, year, pay_run.version, len(records), len(employees), len(failures)
            )

        return await self.get_pay_run(pay_run.id)

    # ==================== READ ====================

    async def get_pay_run(self, pay_run_id: uuid.UUID) -> Optional[PayRun]:
        result = await self.db.execute(
            select(PayRun)
            .options(selectinload(PayRun.records))
            .where(PayRun.id == pay_run_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_period(self, month: Month, year: str) -> Optional[PayRun]:
        """Pay run for the period, or None when nothing was generated yet."""
        result = await self.db.execute(
            select(PayRun)
            .options(selectinload(PayRun.records))
            .where(PayRun.month == month.value, PayRun.year == year)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_pay_runs(
        self,
        year: Optional[str] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[List[PayRun], int]:
        stmt = select(PayRun)
        if year:
            stmt = stmt.where(PayRun.year == year)
        if status:
            stmt = stmt.where(PayRun.status == status)

        total = (await self.db.execute(select(func.count()).select_from(stmt.subquery()))).scalar()

        month_number = case({m.value: m.number for m in Month}, value=PayRun.month)
        stmt = stmt.order_by(PayRun.year.desc(), month_number.desc()).offset(skip).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    # ==================== FINALIZE / DELETE ====================

    async def find_changed_records(self, pay_run: PayRun, records: List[PayRunEmployeeRecord]) -> List[Dict]:
        """
        Recompute every employee of a draft run against current data.

        Returns one entry per employee whose attendance, salary, advances
        or EMIs no longer produce the stored figures, plus employees who
        joined or left the active roster after generation. An empty list
        means the run can be settled as it stands.
        """
        month = Month(pay_run.month)
        changed: List[Dict] = []

        def flag(employee_id, employee_code, reason: str) -> None:
            changed.append({"employee_id": str(employee_id), "employee_code": employee_code, "reason": reason})

        active = {e.id: e for e in await self.find_active_employees()}
        covered = set()

        for record in records:
            covered.add(record.employee_id)
            employee = active.get(record.employee_id)
            if employee is None:
                flag(record.employee_id, record.employee_code, "employee is no longer active")
                continue
            try:
                pay = await self.compute_for_employee(employee, month, pay_run.year)
            except PayrollCalculationError as e:
                flag(employee.id, employee.employee_code, e.message)
                continue
            current = self._build_record(employee, pay, position=record.position)
            for field in RECHECKED_FIELDS:
                if getattr(current, field) != getattr(record, field):
                    flag(employee.id, employee.employee_code, f"{field} changed")
                    break
            else:
                if (set(current.advance_ids) != set(record.advance_ids or [])
                        or set(current.loan_emi_ids) != set(record.loan_emi_ids or [])):
                    flag(employee.id, employee.employee_code, "advances or loan EMIs changed")

        for failure in pay_run.failures or []:
            employee_id = uuid.UUID(failure["employee_id"])
            covered.add(employee_id)
            employee = active.get(employee_id)
            if employee is None:
                continue
            try:
                await self.compute_for_employee(employee, month, pay_run.year)
            except PayrollCalculationError:
                continue
            flag(employee.id, employee.employee_code, "pay can now be computed")

        for employee_id, employee in active.items():
            if employee_id not in covered:
                flag(employee_id, employee.employee_code, "employee became active after generation")

        return changed

    async def finalize(self, pay_run_id: uuid.UUID, user_id: Optional[uuid.UUID] = None) -> PayRun:
        """
        Lock the run and settle the advances and EMIs it deducted.

        A run can be finalized once; a second call raises PayRunConflictError,
        as does a draft whose figures no longer match current data.
        """
        pay_run = await self.get_pay_run(pay_run_id)
        if pay_run is None:
            raise PayRunNotFoundError("Pay run not found")

        async with period_locks.hold(pay_run.month, pay_run.year):
            result = await self.db.execute(
                select(PayRun).where(PayRun.id == pay_run_id).with_for_update()
                .execution_options(populate_existing=True)
            )
            pay_run = result.scalar_one()
            if pay_run.status == PayRunStatus.FINALIZED.value:
                raise PayRunConflictError(
                    f"Pay run for {pay_run.month} {pay_run.year} is already finalized",
                    {"pay_run_id": str(pay_run.id)}
                )

            records = (await self.get_pay_run(pay_run_id)).records
            changed = await self.find_changed_records(pay_run, records)
            if changed:
                logger.warning(
                    "Refusing to finalize pay run %s %s: %d employees changed since generation",
                    pay_run.month, pay_run.year, len(changed)
                )
                raise PayRunConflictError(
                    f"Attendance, salary or obligations changed since the pay run for "
                    f"{pay_run.month} {pay_run.year} was generated; regenerate it first",
                    {"pay_run_id": str(pay_run.id), "version": pay_run.version, "changed": changed}
                )

            advance_ids = [uuid.UUID(a) for r in records for a in (r.advance_ids or [])]
            emi_ids = [uuid.UUID(e) for r in records for e in (r.loan_emi_ids or [])]
            now = datetime.now(timezone.utc)

            settled_advances = 0
            if advance_ids:
                advances = (await self.db.execute(
                    select(AdvanceRecord).where(AdvanceRecord.id.in_(advance_ids))
                )).scalars().all()
                for advance in advances:
                    if advance.status == AdvanceStatus.DEDUCTED.value:
                        continue
                    advance.status = AdvanceStatus.DEDUCTED.value
                    advance.remaining_amount = Decimal("0.00")
                    settled_advances += 1

            settled_emis = 0
            if emi_ids:
                emis = (await self.db.execute(
                    select(LoanEMI)
                    .options(selectinload(LoanEMI.loan).selectinload(LoanRecord.emi_schedule))
                    .where(LoanEMI.id.in_(emi_ids))
                )).scalars().all()
                loans = {}
                for emi in emis:
                    if mark_emi_paid(emi, now):
                        settled_emis += 1
                    loans[emi.loan_id] = emi.loan
                for loan in loans.values():
                    refresh_loan_progress(loan)

            pay_run.status = PayRunStatus.FINALIZED.value
            pay_run.finalized_by = user_id
            pay_run.finalized_at = now
            await self.db.flush()

            await self.audit.log(
                action="FINALIZE",
                entity_type="PAY_RUN",
                entity_id=pay_run.id,
                user_id=user_id,
                new_values={
                    **_run_snapshot(pay_run),
                    "advances_settled": settled_advances,
                    "emis_settled": settled_emis,
                },
                description=f"Finalized pay run {pay_run.month} {pay_run.year}",
            )
            await self.db.commit()
            logger.info(
                "Finalized pay run %s %s: %d advances and %d EMIs settled",
                pay_run.month, pay_run.year, settled_advances, settled_emis
            )

        return await self.get_pay_run(pay_run_id)

    async def delete_pay_run(self, pay_run_id: uuid.UUID, user_id: Optional[uuid.UUID] = None) -> None:
        pay_run = await self.get_pay_run(pay_run_id)
        if pay_run is None:
            raise PayRunNotFoundError("Pay run not found")
        if pay_run.status == PayRunStatus.FINALIZED.value:
            raise PayRunConflictError("Finalized pay runs cannot be deleted")

        await self.audit.log_deleted(
            "PAY_RUN",
            pay_run.id,
            _run_snapshot(pay_run),
            user_id=user_id,
            description=f"Deleted pay run {pay_run.month} {pay_run.year}",
        )
        await self.db.delete(pay_run)
        await self.db.flush()

    async def is_period_finalized(self, month: str, year: str) -> bool:
        result = await self.db.execute(
            select(PayRun.id).where(
                PayRun.month == month,
                PayRun.year == year,
                PayRun.status == PayRunStatus.FINALIZED.value,
            )
        )
        return result.first() is not None
