"""Pay run generation, regeneration and finalization against a real session."""
import asyncio
from decimal import Decimal
import uuid

import pytest
from sqlalchemy import select

from app.models.advance import AdvanceRecord, AdvanceStatus
from app.models.attendance import AttendanceRecord
from app.models.audit_log import AuditLog
from app.models.hr import EmployeeStatus, Month
from app.models.loan import EMIStatus, LoanStatus
from app.models.payrun import AttendanceSource, PayRunStatus
from app.services.loan_service import LoanService
from app.services.payrun_service import (
    PayRunConflictError,
    PayRunNotFoundError,
    PayRunService,
    period_locks,
)


NUMERIC_FIELDS = (
    "total_working_days", "payable_days", "loss_of_pay_days",
    "basic_salary", "loss_of_pay_amount", "adjusted_basic",
    "hra", "conveyance", "telephone", "medical_allowance", "special_allowance",
    "total_allowances", "gross_salary",
    "pf_deduction", "esi_deduction", "professional_tax", "tds",
    "advance_deduction", "loan_deduction", "total_deductions", "net_pay",
    "employer_pf", "employer_esi",
)


async def add_advance(db, employee, amount="10000", month=Month.JANUARY, year="2026"):
    advance = AdvanceRecord(
        id=uuid.uuid4(),
        employee_id=employee.id,
        advance_month=Month.DECEMBER.value,
        advance_year="2025",
        advance_paid_amount=Decimal(amount),
        advance_deduction_month=month.value,
        advance_deduction_year=year,
        status=AdvanceStatus.PENDING.value,
        remaining_amount=Decimal(amount),
    )
    db.add(advance)
    await db.commit()
    return advance


async def test_missing_attendance_defaults_to_full_month(db, make_employee):
    employee = await make_employee()

    pay_run = await PayRunService(db).generate(Month.JANUARY, "2026")

    assert pay_run.status == PayRunStatus.DRAFT.value
    assert pay_run.version == 1
    assert pay_run.employee_count == 1
    record = pay_run.records[0]
    assert record.employee_id == employee.id
    assert record.attendance_source == AttendanceSource.DEFAULTED.value
    assert record.payable_days == record.total_working_days == 26
    assert record.adjusted_basic == Decimal("80000.00")


async def test_recorded_attendance_drives_loss_of_pay(db, make_employee):
    employee = await make_employee()
    db.add(AttendanceRecord(
        employee_id=employee.id,
        month=Month.JANUARY.value,
        year="2026",
        total_working_days=26,
        present_days=24,
        absent_days=0,
        paid_leave=0,
        unpaid_leave=2,
    ))
    await db.commit()

    pay_run = await PayRunService(db).generate(Month.JANUARY, "2026")

    record = pay_run.records[0]
    assert record.attendance_source == AttendanceSource.RECORDED.value
    assert record.loss_of_pay_days == 2
    assert record.loss_of_pay_amount == Decimal("6153.85")
    assert record.adjusted_basic == Decimal("73846.15")


async def test_advance_is_deducted_and_settled_on_finalize(db, make_employee):
    employee = await make_employee()
    advance = await add_advance(db, employee)
    service = PayRunService(db)

    pay_run = await service.generate(Month.JANUARY, "2026")
    record = pay_run.records[0]
    assert record.advance_deduction == Decimal("10000.00")
    assert record.advance_ids == [str(advance.id)]

    await db.refresh(advance)
    assert advance.status == AdvanceStatus.PENDING.value

    await service.finalize(pay_run.id)
    await db.refresh(advance)
    assert advance.status == AdvanceStatus.DEDUCTED.value
    assert advance.remaining_amount == Decimal("0.00")


async def test_advance_for_another_month_is_ignored(db, make_employee):
    employee = await make_employee()
    await add_advance(db, employee, month=Month.FEBRUARY)

    pay_run = await PayRunService(db).generate(Month.JANUARY, "2026")

    assert pay_run.records[0].advance_deduction == Decimal("0.00")


async def test_loan_emi_is_deducted_and_paid_on_finalize(db, make_employee):
    employee = await make_employee()
    loan = await LoanService(db).create_loan(
        employee_id=employee.id,
        loan_amount=Decimal("12000"),
        interest_rate=Decimal("0"),
        number_of_emis=2,
        start_month=Month.JANUARY,
        start_year="2026",
    )
    await db.commit()
    service = PayRunService(db)

    pay_run = await service.generate(Month.JANUARY, "2026")
    assert pay_run.records[0].loan_deduction == Decimal("6000.00")

    await service.finalize(pay_run.id)
    loan = await LoanService(db).get_loan(loan.id)
    assert loan.total_paid_emis == 1
    assert loan.remaining_balance == Decimal("6000.00")
    assert loan.emi_schedule[0].status == EMIStatus.PAID.value
    assert loan.emi_schedule[1].status == EMIStatus.PENDING.value
    assert loan.status == LoanStatus.ACTIVE.value


async def test_regenerate_without_changes_is_identical(db, make_employee):
    await make_employee(hra=Decimal("8000"), special_allowance=Decimal("5000"))
    await make_employee(basic_salary=Decimal("15000"), include_esi=True)
    service = PayRunService(db)

    first = await service.generate(Month.JANUARY, "2026")
    first_values = [[getattr(r, f) for f in NUMERIC_FIELDS] for r in first.records]
    first_totals = (first.total_gross, first.total_deductions, first.total_net)

    second = await service.generate(Month.JANUARY, "2026", regenerate=True)

    assert second.id == first.id
    assert second.version == 2
    assert [[getattr(r, f) for f in NUMERIC_FIELDS] for r in second.records] == first_values
    assert (second.total_gross, second.total_deductions, second.total_net) == first_totals

    actions = (await db.execute(
        select(AuditLog.action).where(AuditLog.entity_id == first.id).order_by(AuditLog.created_at)
    )).scalars().all()
    assert "GENERATE" in actions
    assert "REGENERATE" in actions


async def test_existing_run_requires_regenerate_flag(db, make_employee):
    await make_employee()
    service = PayRunService(db)
    await service.generate(Month.JANUARY, "2026")

    with pytest.raises(PayRunConflictError):
        await service.generate(Month.JANUARY, "2026")


async def test_employee_without_basic_is_reported_not_fatal(db, make_employee):
    good = await make_employee()
    bad = await make_employee(basic_salary=None)

    pay_run = await PayRunService(db).generate(Month.JANUARY, "2026")

    assert pay_run.eligible_count == 2
    assert pay_run.employee_count == 1
    assert [r.employee_id for r in pay_run.records] == [good.id]
    assert len(pay_run.failures) == 1
    assert pay_run.failures[0]["employee_id"] == str(bad.id)
    assert pay_run.failures[0]["reason"] == "Basic salary is not set"


async def test_inactive_employees_are_excluded(db, make_employee):
    await make_employee()
    await make_employee(status=EmployeeStatus.INACTIVE.value)

    pay_run = await PayRunService(db).generate(Month.JANUARY, "2026")

    assert pay_run.eligible_count == 1
    assert pay_run.employee_count == 1


async def test_totals_match_records(db, make_employee):
    await make_employee()
    await make_employee(basic_salary=Decimal("30000"), hra=Decimal("3000"))

    pay_run = await PayRunService(db).generate(Month.JANUARY, "2026")

    assert pay_run.total_gross == sum(r.gross_salary for r in pay_run.records)
    assert pay_run.total_net == sum(r.net_pay for r in pay_run.records)
    assert pay_run.total_net == pay_run.total_gross - pay_run.total_deductions


async def test_finalize_only_once(db, make_employee):
    await make_employee()
    service = PayRunService(db)
    pay_run = await service.generate(Month.JANUARY, "2026")

    finalized = await service.finalize(pay_run.id)
    assert finalized.status == PayRunStatus.FINALIZED.value
    assert finalized.finalized_at is not None

    with pytest.raises(PayRunConflictError):
        await service.finalize(pay_run.id)


async def test_finalized_run_cannot_be_regenerated_or_deleted(db, make_employee):
    await make_employee()
    service = PayRunService(db)
    pay_run = await service.generate(Month.JANUARY, "2026")
    await service.finalize(pay_run.id)

    with pytest.raises(PayRunConflictError):
        await service.generate(Month.JANUARY, "2026", regenerate=True)
    with pytest.raises(PayRunConflictError):
        await service.delete_pay_run(pay_run.id)
    assert await service.is_period_finalized(Month.JANUARY.value, "2026")


async def test_finalize_unknown_run(db):
    with pytest.raises(PayRunNotFoundError):
        await PayRunService(db).finalize(uuid.uuid4())


async def test_get_by_period_returns_none_before_generation(db):
    assert await PayRunService(db).get_by_period(Month.MARCH, "2026") is None


async def test_period_lock_serializes_same_period():
    order = []

    async def worker(name, delay):
        async with period_locks.hold("January", "2026"):
            order.append(f"{name}-start")
            await asyncio.sleep(delay)
            order.append(f"{name}-end")

    await asyncio.gather(worker("a", 0.02), worker("b", 0))

    assert order == ["a-start", "a-end", "b-start", "b-end"]
    assert not period_locks.is_held("January", "2026")


async def test_period_lock_does_not_block_other_periods():
    async with period_locks.hold("January", "2026"):
        assert period_locks.is_held("January", "2026")
        assert not period_locks.is_held("February", "2026")
        async with period_locks.hold("February", "2026"):
            assert period_locks.is_held("February", "2026")


# ---- drafts that drift from current data are not finalized ----


async def add_loan(db, employee, amount="12000", emis=2):
    loan = await LoanService(db).create_loan(
        employee_id=employee.id,
        loan_amount=Decimal(amount),
        interest_rate=Decimal("0"),
        number_of_emis=emis,
        start_month=Month.JANUARY,
        start_year="2026",
    )
    await db.commit()
    return loan


async def add_attendance(db, employee, present_days=24, unpaid_leave=2):
    record = AttendanceRecord(
        employee_id=employee.id,
        month=Month.JANUARY.value,
        year="2026",
        total_working_days=26,
        present_days=present_days,
        absent_days=0,
        paid_leave=0,
        unpaid_leave=unpaid_leave,
    )
    db.add(record)
    await db.commit()
    return record


async def test_emi_paid_by_hand_blocks_finalize(db, make_employee):
    employee = await make_employee()
    loan = await add_loan(db, employee)
    service = PayRunService(db)
    pay_run = await service.generate(Month.JANUARY, "2026")
    assert pay_run.records[0].loan_deduction == Decimal("6000.00")

    await LoanService(db).pay_emi(loan.id, 1)
    await db.commit()

    with pytest.raises(PayRunConflictError) as exc:
        await service.finalize(pay_run.id)
    assert exc.value.details["changed"][0]["employee_code"] == employee.employee_code

    rerun = await service.generate(Month.JANUARY, "2026", regenerate=True)
    assert rerun.records[0].loan_deduction == Decimal("0.00")
    await service.finalize(rerun.id)

    loan = await LoanService(db).get_loan(loan.id)
    assert loan.total_paid_emis == 1
    assert loan.remaining_balance == Decimal("6000.00")


async def test_deleted_loan_blocks_finalize(db, make_employee):
    employee = await make_employee()
    loan = await add_loan(db, employee)
    service = PayRunService(db)
    pay_run = await service.generate(Month.JANUARY, "2026")

    await LoanService(db).delete_loan(loan.id)
    await db.commit()

    with pytest.raises(PayRunConflictError):
        await service.finalize(pay_run.id)

    rerun = await service.generate(Month.JANUARY, "2026", regenerate=True)
    assert rerun.records[0].loan_deduction == Decimal("0.00")
    assert rerun.records[0].loan_emi_ids == []


async def test_cancelled_loan_blocks_finalize(db, make_employee):
    employee = await make_employee()
    loan = await add_loan(db, employee)
    service = PayRunService(db)
    pay_run = await service.generate(Month.JANUARY, "2026")

    await LoanService(db).cancel_loan(loan.id)
    await db.commit()

    with pytest.raises(PayRunConflictError):
        await service.finalize(pay_run.id)

    loan = await LoanService(db).get_loan(loan.id)
    assert loan.status == LoanStatus.CANCELLED.value
    assert all(e.status == EMIStatus.PENDING.value for e in loan.emi_schedule)


async def test_advance_deducted_by_hand_blocks_finalize(db, make_employee):
    employee = await make_employee()
    advance = await add_advance(db, employee)
    service = PayRunService(db)
    pay_run = await service.generate(Month.JANUARY, "2026")
    assert pay_run.records[0].advance_deduction == Decimal("10000.00")

    advance.status = AdvanceStatus.DEDUCTED.value
    advance.remaining_amount = Decimal("0.00")
    await db.commit()

    with pytest.raises(PayRunConflictError):
        await service.finalize(pay_run.id)

    rerun = await service.generate(Month.JANUARY, "2026", regenerate=True)
    assert rerun.records[0].advance_deduction == Decimal("0.00")
    finalized = await service.finalize(rerun.id)
    assert finalized.status == PayRunStatus.FINALIZED.value


async def test_edited_advance_amount_blocks_finalize(db, make_employee):
    employee = await make_employee()
    advance = await add_advance(db, employee)
    service = PayRunService(db)
    pay_run = await service.generate(Month.JANUARY, "2026")

    advance.advance_paid_amount = Decimal("4000")
    await db.commit()

    with pytest.raises(PayRunConflictError) as exc:
        await service.finalize(pay_run.id)
    assert exc.value.details["changed"][0]["reason"] == "advance_deduction changed"

    await db.refresh(advance)
    assert advance.status == AdvanceStatus.PENDING.value


async def test_edited_attendance_blocks_finalize(db, make_employee):
    employee = await make_employee()
    attendance = await add_attendance(db, employee)
    service = PayRunService(db)
    pay_run = await service.generate(Month.JANUARY, "2026")

    attendance.present_days = 20
    attendance.unpaid_leave = 6
    await db.commit()

    with pytest.raises(PayRunConflictError) as exc:
        await service.finalize(pay_run.id)
    assert exc.value.details["version"] == 1

    rerun = await service.generate(Month.JANUARY, "2026", regenerate=True)
    assert rerun.records[0].loss_of_pay_days == 6
    finalized = await service.finalize(rerun.id)
    assert finalized.status == PayRunStatus.FINALIZED.value


async def test_deleted_attendance_blocks_finalize(db, make_employee):
    employee = await make_employee()
    attendance = await add_attendance(db, employee)
    service = PayRunService(db)
    pay_run = await service.generate(Month.JANUARY, "2026")

    await db.delete(attendance)
    await db.commit()

    with pytest.raises(PayRunConflictError) as exc:
        await service.finalize(pay_run.id)
    assert exc.value.details["changed"][0]["reason"] == "attendance_source changed"


async def test_attendance_remarks_do_not_block_finalize(db, make_employee):
    employee = await make_employee()
    attendance = await add_attendance(db, employee)
    service = PayRunService(db)
    pay_run = await service.generate(Month.JANUARY, "2026")

    attendance.remarks = "Verified by manager"
    await db.commit()

    finalized = await service.finalize(pay_run.id)
    assert finalized.status == PayRunStatus.FINALIZED.value


async def test_roster_change_blocks_finalize(db, make_employee):
    await make_employee()
    service = PayRunService(db)
    pay_run = await service.generate(Month.JANUARY, "2026")

    await make_employee()

    with pytest.raises(PayRunConflictError) as exc:
        await service.finalize(pay_run.id)
    assert exc.value.details["changed"][0]["reason"] == "employee became active after generation"


async def test_concurrent_first_generation_is_a_conflict(db, make_employee, monkeypatch):
    await make_employee()
    service = PayRunService(db)
    first_id = (await service.generate(Month.JANUARY, "2026")).id

    # Simulates another process whose read happened before this run existed
    async def no_run_yet(month, year, for_update=False):
        return None

    monkeypatch.setattr(service, "find_by_period", no_run_yet)

    with pytest.raises(PayRunConflictError):
        await service.generate(Month.JANUARY, "2026")

    kept = await service.get_by_period(Month.JANUARY, "2026")
    assert kept.id == first_id
    assert kept.version == 1


async def test_list_pay_runs_newest_period_first(db, make_employee):
    await make_employee()
    service = PayRunService(db)
    for month, year in (
        (Month.JANUARY, "2026"),
        (Month.NOVEMBER, "2025"),
        (Month.FEBRUARY, "2026"),
        (Month.DECEMBER, "2025"),
    ):
        await service.generate(month, year)

    runs, total = await service.list_pay_runs()
    assert total == 4
    assert [(r.month, r.year) for r in runs] == [
        ("February", "2026"), ("January", "2026"), ("December", "2025"), ("November", "2025"),
    ]

    page, total = await service.list_pay_runs(skip=1, limit=2)
    assert total == 4
    assert [(r.month, r.year) for r in page] == [("January", "2026"), ("December", "2025")]

    only_2025, total = await service.list_pay_runs(year="2025")
    assert total == 2
    assert [r.month for r in only_2025] == ["December", "November"]
