"""Monthly pay arithmetic for a single employee."""
from decimal import Decimal

import pytest

from app.models.payrun import AttendanceSource
from app.services.payroll_calculator import (
    AttendanceSnapshot,
    Obligations,
    PayrollCalculationError,
    PayrollRules,
    SalaryProfile,
    calculate_esi,
    compute_employee_pay,
    is_esi_eligible,
    to_money,
)


RULES = PayrollRules()


def full_month(days: int = 26) -> AttendanceSnapshot:
    return AttendanceSnapshot(total_working_days=days, payable_days=days, loss_of_pay_days=0)


def profile(**overrides) -> SalaryProfile:
    values = dict(
        basic=Decimal("80000"),
        hra=Decimal("8000"),
        conveyance=Decimal("1600"),
        telephone=Decimal("500"),
        medical_allowance=Decimal("1250"),
        special_allowance=Decimal("10000"),
        include_pf=True,
        include_esi=False,
    )
    values.update(overrides)
    return SalaryProfile(**values)


def test_to_money_rounds_half_up():
    assert to_money(Decimal("1.005")) == Decimal("1.01")
    assert to_money(Decimal("1.004")) == Decimal("1.00")
    assert to_money(2) == Decimal("2.00")


def test_full_attendance_keeps_basic_and_caps_pf():
    pay = compute_employee_pay(profile(), full_month(), rules=RULES)

    assert pay.salary.loss_of_pay_amount == Decimal("0.00")
    assert pay.salary.adjusted_basic == Decimal("80000.00")
    # 12% of the 15000 PF wage ceiling
    assert pay.statutory.pf_employee == Decimal("1800.00")
    assert pay.statutory.pf_employer == Decimal("1800.00")
    assert pay.statutory.esi_employee == Decimal("0.00")


def test_unpaid_days_reduce_basic_and_scale_allowances():
    attendance = AttendanceSnapshot(total_working_days=26, payable_days=24, loss_of_pay_days=2)
    pay = compute_employee_pay(profile(), attendance, rules=RULES)

    expected_lop = to_money(Decimal("2") * Decimal("80000") / Decimal("26"))
    assert pay.salary.loss_of_pay_amount == expected_lop == Decimal("6153.85")
    assert pay.salary.adjusted_basic == Decimal("80000.00") - expected_lop
    assert pay.salary.hra == to_money(Decimal("8000") * 24 / 26)
    assert pay.salary.special_allowance == to_money(Decimal("10000") * 24 / 26)


def test_gross_and_net_identities_hold_exactly():
    attendance = AttendanceSnapshot(total_working_days=31, payable_days=27, loss_of_pay_days=4)
    obligations = Obligations(advance_total=Decimal("1500"), loan_total=Decimal("2333.33"))
    pay = compute_employee_pay(
        profile(professional_tax=Decimal("200"), tds=Decimal("3100")),
        attendance,
        obligations,
        RULES,
    )

    salary = pay.salary
    assert salary.gross_salary == salary.adjusted_basic + salary.total_allowances
    assert salary.total_allowances == (
        salary.hra + salary.conveyance + salary.telephone + salary.medical_allowance + salary.special_allowance
    )
    assert pay.net_pay == salary.gross_salary - pay.total_deductions
    assert pay.total_deductions == (
        pay.statutory.pf_employee
        + pay.statutory.esi_employee
        + pay.statutory.professional_tax
        + pay.statutory.tds
        + Decimal("1500.00")
        + Decimal("2333.33")
    )


def test_pf_is_zero_when_excluded():
    pay = compute_employee_pay(profile(include_pf=False), full_month(), rules=RULES)
    assert pay.statutory.pf_employee == Decimal("0.00")
    assert pay.statutory.pf_employer == Decimal("0.00")


def test_pf_below_ceiling_uses_adjusted_basic():
    pay = compute_employee_pay(profile(basic=Decimal("10000")), full_month(), rules=RULES)
    assert pay.statutory.pf_employee == Decimal("1200.00")


@pytest.mark.parametrize(
    "gross, eligible",
    [
        (Decimal("20999"), True),
        (Decimal("21000"), False),
        (Decimal("21000.01"), False),
    ],
)
def test_esi_ceiling_is_exclusive(gross, eligible):
    assert is_esi_eligible(gross, True, RULES) is eligible


def test_esi_amounts_just_below_ceiling():
    employee, employer = calculate_esi(Decimal("20999"), True, RULES)
    assert employee == Decimal("157.49")
    assert employer == Decimal("682.47")

    assert calculate_esi(Decimal("21000"), True, RULES) == (Decimal("0.00"), Decimal("0.00"))
    assert calculate_esi(Decimal("20999"), False, RULES) == (Decimal("0.00"), Decimal("0.00"))


def test_esi_follows_monthly_gross():
    low_pay = profile(
        basic=Decimal("15000"),
        hra=Decimal("1500"),
        conveyance=Decimal("0"),
        telephone=Decimal("0"),
        medical_allowance=Decimal("0"),
        special_allowance=Decimal("4499"),
        include_esi=True,
    )
    pay = compute_employee_pay(low_pay, full_month(), rules=RULES)
    assert pay.salary.gross_salary == Decimal("20999.00")
    assert pay.statutory.esi_employee == Decimal("157.49")

    raised = profile(
        basic=Decimal("15000"),
        hra=Decimal("1500"),
        conveyance=Decimal("0"),
        telephone=Decimal("0"),
        medical_allowance=Decimal("0"),
        special_allowance=Decimal("4500"),
        include_esi=True,
    )
    pay = compute_employee_pay(raised, full_month(), rules=RULES)
    assert pay.salary.gross_salary == Decimal("21000.00")
    assert pay.statutory.esi_employee == Decimal("0.00")


def test_default_month_is_flagged():
    attendance = AttendanceSnapshot.full_month(RULES)
    assert attendance.total_working_days == attendance.payable_days == 26
    assert attendance.loss_of_pay_days == 0
    assert attendance.source == AttendanceSource.DEFAULTED


def test_rejects_unusable_attendance():
    with pytest.raises(PayrollCalculationError):
        compute_employee_pay(profile(), AttendanceSnapshot(0, 0, 0), rules=RULES)
    with pytest.raises(PayrollCalculationError):
        compute_employee_pay(profile(), AttendanceSnapshot(26, 27, 0), rules=RULES)


def test_rejects_deductions_above_gross():
    obligations = Obligations(advance_total=Decimal("500000"))
    with pytest.raises(PayrollCalculationError) as exc:
        compute_employee_pay(profile(), full_month(), obligations, RULES)
    assert "exceed" in exc.value.message


def test_profile_requires_basic_salary():
    class Stub:
        id = "x"
        basic_salary = None

    with pytest.raises(PayrollCalculationError):
        SalaryProfile.from_employee(Stub())
