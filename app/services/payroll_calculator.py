"""
Payroll Calculation

Pure arithmetic for one employee's monthly pay, with no database access:
- Salary pro-ration by attendance (loss of pay on basic, payable ratio on allowances)
- Statutory deductions (PF, ESI, Professional Tax, TDS)
- Assembly of recoverable deductions (advances, loan EMIs) into net pay

Every amount is a Decimal rounded half-up to paise at the point it is
produced, so gross = adjusted basic + allowances and
net = gross - deductions hold exactly.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional

from app.config import Settings, settings as app_settings
from app.models.payrun import AttendanceSource


CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Round to 2 decimals, half-up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


class PayrollCalculationError(Exception):
    """Raised when an employee's pay cannot be computed from the data on file."""
    def __init__(self, message: str, details: Dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


@dataclass(frozen=True)
class PayrollRules:
    """Statutory constants used by the calculation."""
    default_working_days: int = 26
    pf_wage_ceiling: Decimal = Decimal("15000")
    pf_employee_rate: Decimal = Decimal("0.12")
    pf_employer_rate: Decimal = Decimal("0.12")
    esi_employee_rate: Decimal = Decimal("0.0075")
    esi_employer_rate: Decimal = Decimal("0.0325")
    esi_wage_ceiling: Decimal = Decimal("21000")

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "PayrollRules":
        s = settings or app_settings
        return cls(
            default_working_days=s.PAYROLL_DEFAULT_WORKING_DAYS,
            pf_wage_ceiling=s.PF_WAGE_CEILING,
            pf_employee_rate=s.PF_EMPLOYEE_RATE,
            pf_employer_rate=s.PF_EMPLOYER_RATE,
            esi_employee_rate=s.ESI_EMPLOYEE_RATE,
            esi_employer_rate=s.ESI_EMPLOYER_RATE,
            esi_wage_ceiling=s.ESI_WAGE_CEILING,
        )


@dataclass(frozen=True)
class AttendanceSnapshot:
    """Attendance figures the calculation needs for one month."""
    total_working_days: int
    payable_days: int
    loss_of_pay_days: int
    source: AttendanceSource = AttendanceSource.RECORDED

    @classmethod
    def full_month(cls, rules: PayrollRules) -> "AttendanceSnapshot":
        """Default used when no attendance was recorded: present every working day."""
        days = rules.default_working_days
        return cls(
            total_working_days=days,
            payable_days=days,
            loss_of_pay_days=0,
            source=AttendanceSource.DEFAULTED,
        )


@dataclass(frozen=True)
class SalaryProfile:
    """Fixed monthly components and statutory settings of an employee."""
    basic: Decimal
    hra: Decimal = ZERO
    conveyance: Decimal = ZERO
    telephone: Decimal = ZERO
    medical_allowance: Decimal = ZERO
    special_allowance: Decimal = ZERO
    include_pf: bool = True
    include_esi: bool = False
    professional_tax: Decimal = ZERO
    tds: Decimal = ZERO

    @classmethod
    def from_employee(cls, employee) -> "SalaryProfile":
        if employee.basic_salary is None:
            raise PayrollCalculationError(
                "Basic salary is not set",
                {"employee_id": str(employee.id)}
            )
        return cls(
            basic=Decimal(employee.basic_salary),
            hra=Decimal(employee.hra or 0),
            conveyance=Decimal(employee.conveyance or 0),
            telephone=Decimal(employee.telephone or 0),
            medical_allowance=Decimal(employee.medical_allowance or 0),
            special_allowance=Decimal(employee.special_allowance or 0),
            include_pf=bool(employee.include_pf),
            include_esi=bool(employee.include_esi),
            professional_tax=Decimal(employee.professional_tax or 0),
            tds=Decimal(employee.tds or 0),
        )


@dataclass(frozen=True)
class ProratedSalary:
    basic: Decimal
    loss_of_pay_amount: Decimal
    adjusted_basic: Decimal
    hra: Decimal
    conveyance: Decimal
    telephone: Decimal
    medical_allowance: Decimal
    special_allowance: Decimal
    total_allowances: Decimal
    gross_salary: Decimal


@dataclass(frozen=True)
class StatutoryDeductions:
    pf_employee: Decimal
    pf_employer: Decimal
    esi_employee: Decimal
    esi_employer: Decimal
    professional_tax: Decimal
    tds: Decimal


@dataclass
class Obligations:
    """Recoverable amounts due this month, with the ids they came from."""
    advance_total: Decimal = ZERO
    loan_total: Decimal = ZERO
    advance_ids: List[str] = field(default_factory=list)
    loan_emi_ids: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class EmployeePay:
    attendance: AttendanceSnapshot
    salary: ProratedSalary
    statutory: StatutoryDeductions
    obligations: Obligations
    total_deductions: Decimal
    net_pay: Decimal


def _check_attendance(attendance: AttendanceSnapshot) -> None:
    if attendance.total_working_days <= 0:
        raise PayrollCalculationError(
            "Total working days must be greater than zero",
            {"total_working_days": attendance.total_working_days}
        )
    if attendance.payable_days < 0 or attendance.loss_of_pay_days < 0:
        raise PayrollCalculationError("Attendance day counts cannot be negative")
    if attendance.payable_days > attendance.total_working_days:
        raise PayrollCalculationError(
            "Payable days exceed total working days",
            {
                "payable_days": attendance.payable_days,
                "total_working_days": attendance.total_working_days,
            }
        )


def prorate_salary(profile: SalaryProfile, attendance: AttendanceSnapshot) -> ProratedSalary:
    """
    Scale fixed components by attendance.

    adjusted basic = basic - loss-of-pay days x (basic / working days)
    each allowance = allowance x payable days / working days
    """
    _check_attendance(attendance)

    total = Decimal(attendance.total_working_days)
    payable = Decimal(attendance.payable_days)
    basic = to_money(profile.basic)

    loss_of_pay_amount = to_money(basic * Decimal(attendance.loss_of_pay_days) / total)
    adjusted_basic = basic - loss_of_pay_amount

    def scale(amount: Decimal) -> Decimal:
        return to_money(Decimal(amount) * payable / total)

    hra = scale(profile.hra)
    conveyance = scale(profile.conveyance)
    telephone = scale(profile.telephone)
    medical = scale(profile.medical_allowance)
    special = scale(profile.special_allowance)
    total_allowances = hra + conveyance + telephone + medical + special

    return ProratedSalary(
        basic=basic,
        loss_of_pay_amount=loss_of_pay_amount,
        adjusted_basic=adjusted_basic,
        hra=hra,
        conveyance=conveyance,
        telephone=telephone,
        medical_allowance=medical,
        special_allowance=special,
        total_allowances=total_allowances,
        gross_salary=adjusted_basic + total_allowances,
    )


def calculate_pf(adjusted_basic: Decimal, include_pf: bool, rules: PayrollRules) -> tuple[Decimal, Decimal]:
    """Employee and employer PF on the basic, capped at the PF wage ceiling."""
    if not include_pf:
        return ZERO, ZERO

    pf_wage = min(adjusted_basic, rules.pf_wage_ceiling)
    return to_money(pf_wage * rules.pf_employee_rate), to_money(pf_wage * rules.pf_employer_rate)


def is_esi_eligible(gross_salary: Decimal, include_esi: bool, rules: PayrollRules) -> bool:
    # Ceiling is exclusive: gross equal to the ceiling is out of ESI
    return include_esi and gross_salary < rules.esi_wage_ceiling


def calculate_esi(gross_salary: Decimal, include_esi: bool, rules: PayrollRules) -> tuple[Decimal, Decimal]:
    """Employee and employer ESI on gross, re-evaluated every month."""
    if not is_esi_eligible(gross_salary, include_esi, rules):
        return ZERO, ZERO

    return (
        to_money(gross_salary * rules.esi_employee_rate),
        to_money(gross_salary * rules.esi_employer_rate),
    )


def calculate_statutory_deductions(
    salary: ProratedSalary,
    profile: SalaryProfile,
    attendance: AttendanceSnapshot,
    rules: PayrollRules,
) -> StatutoryDeductions:
    pf_employee, pf_employer = calculate_pf(salary.adjusted_basic, profile.include_pf, rules)
    esi_employee, esi_employer = calculate_esi(salary.gross_salary, profile.include_esi, rules)

    # Professional tax and TDS are stored monthly figures, pro-rated like allowances
    ratio_num = Decimal(attendance.payable_days)
    ratio_den = Decimal(attendance.total_working_days)
    professional_tax = to_money(profile.professional_tax * ratio_num / ratio_den)
    tds = to_money(profile.tds * ratio_num / ratio_den)

    return StatutoryDeductions(
        pf_employee=pf_employee,
        pf_employer=pf_employer,
        esi_employee=esi_employee,
        esi_employer=esi_employer,
        professional_tax=professional_tax,
        tds=tds,
    )


def compute_employee_pay(
    profile: SalaryProfile,
    attendance: AttendanceSnapshot,
    obligations: Optional[Obligations] = None,
    rules: Optional[PayrollRules] = None,
) -> EmployeePay:
    """
    Full monthly computation for one employee.

    Raises PayrollCalculationError when attendance is unusable or the
    deductions exceed gross salary.
    """
    rules = rules or PayrollRules()
    obligations = obligations or Obligations()

    salary = prorate_salary(profile, attendance)
    statutory = calculate_statutory_deductions(salary, profile, attendance, rules)

    advance = to_money(obligations.advance_total)
    loan = to_money(obligations.loan_total)

    total_deductions = (
        advance
        + loan
        + statutory.pf_employee
        + statutory.esi_employee
        + statutory.professional_tax
        + statutory.tds
    )
    net_pay = salary.gross_salary - total_deductions

    if net_pay < 0:
        raise PayrollCalculationError(
            "Deductions exceed gross salary",
            {"gross_salary": str(salary.gross_salary), "total_deductions": str(total_deductions)}
        )

    return EmployeePay(
        attendance=attendance,
        salary=salary,
        statutory=statutory,
        obligations=Obligations(
            advance_total=advance,
            loan_total=loan,
            advance_ids=list(obligations.advance_ids),
            loan_emi_ids=list(obligations.loan_emi_ids),
        ),
        total_deductions=total_deductions,
        net_pay=net_pay,
    )
