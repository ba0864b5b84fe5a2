from decimal import Decimal
import uuid

import pytest

from app.models.hr import Month
from app.models.loan import EMIStatus, LoanStatus
from app.services.loan_service import (
    LoanError,
    LoanService,
    build_emi_schedule,
    calculate_loan_terms,
)


def test_flat_interest_terms():
    total, emi = calculate_loan_terms(Decimal("100000"), Decimal("10"), 12)
    assert total == Decimal("110000.00")
    assert emi == Decimal("9166.67")


def test_terms_reject_zero_emis():
    with pytest.raises(LoanError):
        calculate_loan_terms(Decimal("1000"), Decimal("0"), 0)


def test_schedule_sums_to_total_and_last_emi_absorbs_remainder():
    total, emi = calculate_loan_terms(Decimal("100000"), Decimal("10"), 12)
    schedule = build_emi_schedule(Month.JANUARY, "2026", 12, emi, total)

    assert len(schedule) == 12
    assert sum(e.emi_amount for e in schedule) == total
    assert schedule[-1].emi_amount == Decimal("9166.63")
    assert [e.installment_number for e in schedule] == list(range(1, 13))


def test_schedule_rolls_over_year_end():
    schedule = build_emi_schedule(Month.NOVEMBER, "2025", 3, Decimal("100"), Decimal("300"))
    assert [(e.month, e.year) for e in schedule] == [
        ("November", "2025"),
        ("December", "2025"),
        ("January", "2026"),
    ]
    assert all(e.status == EMIStatus.PENDING.value for e in schedule)


async def create_loan(db, employee, emis=3):
    loan = await LoanService(db).create_loan(
        employee_id=employee.id,
        loan_amount=Decimal("30000"),
        interest_rate=Decimal("0"),
        number_of_emis=emis,
        start_month=Month.JANUARY,
        start_year="2026",
    )
    await db.commit()
    return loan


async def test_create_loan_builds_schedule(db, make_employee):
    employee = await make_employee()
    loan = await create_loan(db, employee)

    assert loan.status == LoanStatus.ACTIVE.value
    assert loan.remaining_balance == Decimal("30000.00")
    assert [e.emi_amount for e in loan.emi_schedule] == [Decimal("10000.00")] * 3


async def test_create_loan_for_unknown_employee(db):
    with pytest.raises(LoanError) as exc:
        await LoanService(db).create_loan(
            employee_id=uuid.uuid4(),
            loan_amount=Decimal("1000"),
            interest_rate=Decimal("0"),
            number_of_emis=1,
            start_month=Month.JANUARY,
            start_year="2026",
        )
    assert exc.value.status_code == 404


async def test_paying_every_emi_completes_loan(db, make_employee):
    employee = await make_employee()
    loan = await create_loan(db, employee)
    service = LoanService(db)

    loan = await service.pay_emi(loan.id, 1)
    assert loan.total_paid_emis == 1
    assert loan.remaining_balance == Decimal("20000.00")

    with pytest.raises(LoanError) as exc:
        await service.pay_emi(loan.id, 1)
    assert exc.value.status_code == 409

    await service.pay_emi(loan.id, 2)
    loan = await service.pay_emi(loan.id, 3)
    assert loan.status == LoanStatus.COMPLETED.value
    assert loan.remaining_balance == Decimal("0.00")


async def test_cancelled_loan_rejects_payment(db, make_employee):
    employee = await make_employee()
    loan = await create_loan(db, employee)
    service = LoanService(db)

    await service.cancel_loan(loan.id)
    with pytest.raises(LoanError):
        await service.pay_emi(loan.id, 1)
    with pytest.raises(LoanError):
        await service.cancel_loan(loan.id)


async def test_loan_with_paid_emi_cannot_be_deleted(db, make_employee):
    employee = await make_employee()
    loan = await create_loan(db, employee)
    service = LoanService(db)

    await service.pay_emi(loan.id, 1)
    with pytest.raises(LoanError) as exc:
        await service.delete_loan(loan.id)
    assert exc.value.status_code == 409
