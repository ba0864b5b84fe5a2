from decimal import Decimal

from app.services.salary_service import compute_ctc_breakdown, apply_breakdown


def test_breakdown_for_six_lakh_ctc():
    b = compute_ctc_breakdown(Decimal("600000"))

    assert b.ctc_monthly == Decimal("50000.00")
    assert b.basic == Decimal("25000.00")
    assert b.hra == Decimal("2500.00")
    assert b.employer_pf == Decimal("1800.00")
    assert b.special_allowance == Decimal("20700.00")
    assert b.gross == Decimal("48200.00")
    assert b.employee_pf == Decimal("1800.00")
    assert b.professional_tax == Decimal("200.00")
    assert b.net == Decimal("46200.00")


def test_breakdown_balances_back_to_ctc():
    b = compute_ctc_breakdown(Decimal("600000"))
    assert abs((b.gross + b.employer_pf + b.employer_esi + b.gratuity_monthly) * 12 - Decimal("600000")) < 1


def test_professional_tax_threshold():
    low = compute_ctc_breakdown(Decimal("240000"), include_pf=False)
    assert low.gross <= Decimal("25000")
    assert low.professional_tax == Decimal("0.00")

    explicit = compute_ctc_breakdown(Decimal("240000"), include_pf=False, professional_tax=Decimal("150"))
    assert explicit.professional_tax == Decimal("150.00")


def test_gratuity_only_with_pf_and_esi():
    assert compute_ctc_breakdown(Decimal("240000"), include_esi=False).gratuity_monthly == Decimal("0.00")
    assert compute_ctc_breakdown(Decimal("240000"), include_esi=True).gratuity_monthly > 0


def test_tds_percentage_of_gross():
    b = compute_ctc_breakdown(Decimal("600000"), tds_percentage=Decimal("10"))
    assert b.tds == Decimal("4820.00")
    assert b.net == Decimal("41380.00")


def test_annual_view_is_twelve_months():
    b = compute_ctc_breakdown(Decimal("600000"))
    annual = b.annual()
    assert annual["basic"] == Decimal("300000.00")
    assert annual["ctc"] == Decimal("600000.00")
    assert "ctc_annual" not in b.monthly()


def test_apply_breakdown_sets_employee_components():
    class Target:
        pass

    target = Target()
    apply_breakdown(target, compute_ctc_breakdown(Decimal("600000")))

    assert target.basic_salary == Decimal("25000.00")
    assert target.special_allowance == Decimal("20700.00")
    assert target.pf_deduction == Decimal("1800.00")
    assert target.professional_tax == Decimal("200.00")
