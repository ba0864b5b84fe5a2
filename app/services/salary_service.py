"""Salary structure derived from annual CTC.

Basic is a fixed share of CTC, HRA a percentage of basic, conveyance,
telephone and medical are given monthly amounts, and the special
allowance is the balancing figure so that

    12 x gross + 12 x employer PF + 12 x employer ESI + gratuity == CTC
"""
from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import Optional, Dict

from app.config import Settings, settings as app_settings
from app.services.payroll_calculator import (
    PayrollRules,
    ZERO,
    to_money,
    calculate_pf,
    calculate_esi,
    is_esi_eligible,
)


MAX_BALANCING_ITERATIONS = 10
BALANCE_TOLERANCE = Decimal("0.5")


@dataclass(frozen=True)
class SalaryBreakdown:
    """Monthly salary components for a CTC."""
    ctc_annual: Decimal
    ctc_monthly: Decimal
    basic: Decimal
    hra: Decimal
    conveyance: Decimal
    telephone: Decimal
    medical_allowance: Decimal
    special_allowance: Decimal
    gross: Decimal
    employee_pf: Decimal
    employer_pf: Decimal
    employee_esi: Decimal
    employer_esi: Decimal
    gratuity_monthly: Decimal
    professional_tax: Decimal
    tds: Decimal
    net: Decimal

    def monthly(self) -> Dict[str, Decimal]:
        values = asdict(self)
        values.pop("ctc_annual")
        values["ctc"] = values.pop("ctc_monthly")
        return values

    def annual(self) -> Dict[str, Decimal]:
        return {key: to_money(value * 12) for key, value in self.monthly().items()}


def compute_ctc_breakdown(
    ctc: Decimal,
    hra_percentage: Decimal = Decimal("10"),
    conveyance: Decimal = ZERO,
    telephone: Decimal = ZERO,
    medical_allowance: Decimal = ZERO,
    include_pf: bool = True,
    include_esi: bool = False,
    professional_tax: Optional[Decimal] = None,
    tds_percentage: Optional[Decimal] = None,
    settings: Optional[Settings] = None,
) -> SalaryBreakdown:
    s = settings or app_settings
    rules = PayrollRules.from_settings(s)

    ctc = Decimal(ctc)
    ctc_monthly = ctc / 12
    basic = ctc * s.BASIC_PERCENT_OF_CTC / 12
    hra = basic * Decimal(hra_percentage) / 100
    conveyance = Decimal(conveyance)
    telephone = Decimal(telephone)
    medical_allowance = Decimal(medical_allowance)

    # Gratuity provision only applies when both PF and ESI are included
    gratuity_annual = basic * 12 * s.GRATUITY_RATE if (include_pf and include_esi) else ZERO

    pf_wage = min(basic, rules.pf_wage_ceiling)
    employer_pf = pf_wage * rules.pf_employer_rate if include_pf else ZERO

    special = max(ZERO, ctc_monthly - basic - hra - conveyance - telephone - medical_allowance)

    for _ in range(MAX_BALANCING_ITERATIONS):
        gross = basic + hra + conveyance + telephone + medical_allowance + special
        employer_esi = gross * rules.esi_employer_rate if is_esi_eligible(gross, include_esi, rules) else ZERO
        computed_ctc = gross * 12 + employer_pf * 12 + employer_esi * 12 + gratuity_annual
        diff = ctc - computed_ctc
        if abs(diff) < BALANCE_TOLERANCE:
            break
        special += diff / 12
        if special < 0:
            special = ZERO
            break

    basic = to_money(basic)
    hra = to_money(hra)
    conveyance = to_money(conveyance)
    telephone = to_money(telephone)
    medical_allowance = to_money(medical_allowance)
    special = to_money(special)
    gross = basic + hra + conveyance + telephone + medical_allowance + special

    employee_pf, employer_pf = calculate_pf(basic, include_pf, rules)
    employee_esi, employer_esi = calculate_esi(gross, include_esi, rules)

    if professional_tax is None:
        professional_tax = s.PT_AMOUNT if gross > s.PT_THRESHOLD else ZERO
    professional_tax = to_money(professional_tax)

    tds = to_money(gross * Decimal(tds_percentage) / 100) if tds_percentage else ZERO

    net = gross - employee_pf - employee_esi - professional_tax - tds

    return SalaryBreakdown(
        ctc_annual=to_money(ctc),
        ctc_monthly=to_money(ctc_monthly),
        basic=basic,
        hra=hra,
        conveyance=conveyance,
        telephone=telephone,
        medical_allowance=medical_allowance,
        special_allowance=special,
        gross=gross,
        employee_pf=employee_pf,
        employer_pf=employer_pf,
        employee_esi=employee_esi,
        employer_esi=employer_esi,
        gratuity_monthly=to_money(gratuity_annual / 12),
        professional_tax=professional_tax,
        tds=tds,
        net=net,
    )


def apply_breakdown(employee, breakdown: SalaryBreakdown) -> None:
    """Copy a computed breakdown onto an employee's compensation profile."""
    employee.basic_salary = breakdown.basic
    employee.hra = breakdown.hra
    employee.conveyance = breakdown.conveyance
    employee.telephone = breakdown.telephone
    employee.medical_allowance = breakdown.medical_allowance
    employee.special_allowance = breakdown.special_allowance
    employee.pf_deduction = breakdown.employee_pf
    employee.esi_deduction = breakdown.employee_esi
    employee.professional_tax = breakdown.professional_tax
    employee.tds = breakdown.tds
