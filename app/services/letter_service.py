"""
Employee Letter Generation Service

Generates HR documents as HTML:
- Appointment letter (designation, joining date, headline compensation)
- Salary annexure (monthly and annual breakdown of the CTC)

Documents are returned both as HTML and base64 encoded so the front end
can offer them for download.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from html import escape
from typing import Dict, Optional
from uuid import UUID
import base64

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.models.hr import Employee
from app.services.salary_service import SalaryBreakdown, compute_ctc_breakdown


class LetterType(str, Enum):
    APPOINTMENT = "appointment"
    ANNEXURE = "annexure"


class LetterError(Exception):
    """Custom exception for letter generation errors."""
    def __init__(self, message: str, details: Dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


ANNEXURE_ROWS = [
    ("Basic", "basic"),
    ("House Rent Allowance", "hra"),
    ("Conveyance", "conveyance"),
    ("Telephone", "telephone"),
    ("Medical Allowance", "medical_allowance"),
    ("Special Allowance", "special_allowance"),
    ("Gross Salary", "gross"),
    ("Employee PF", "employee_pf"),
    ("Employee ESI", "employee_esi"),
    ("Professional Tax", "professional_tax"),
    ("TDS", "tds"),
    ("Net Salary", "net"),
    ("Employer PF", "employer_pf"),
    ("Employer ESI", "employer_esi"),
    ("Gratuity Provision", "gratuity_monthly"),
    ("Cost to Company", "ctc"),
]


def _money(value: Decimal) -> str:
    return f"{value:,.2f}"


class LetterService:
    """Service for appointment letters and salary annexures."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_employee(self, employee_id: UUID) -> Employee:
        result = await self.db.execute(
            select(Employee)
            .options(selectinload(Employee.designation), selectinload(Employee.department))
            .where(Employee.id == employee_id)
        )
        employee = result.scalar_one_or_none()
        if employee is None:
            raise LetterError("Employee not found", {"employee_id": str(employee_id)})
        return employee

    @staticmethod
    def salary_breakdown_for(employee: Employee) -> SalaryBreakdown:
        """Rebuild the CTC breakdown using the employee's own allowance figures."""
        hra_percentage = Decimal("10")
        if employee.basic_salary:
            hra_percentage = Decimal(employee.hra) * 100 / Decimal(employee.basic_salary)
        return compute_ctc_breakdown(
            employee.ctc,
            hra_percentage=hra_percentage,
            conveyance=employee.conveyance,
            telephone=employee.telephone,
            medical_allowance=employee.medical_allowance,
            include_pf=employee.include_pf,
            include_esi=employee.include_esi,
            professional_tax=employee.professional_tax,
        )

    async def generate(
        self,
        employee_id: UUID,
        letter_type: LetterType,
        letter_date: Optional[date] = None,
    ) -> Dict:
        employee = await self._get_employee(employee_id)
        breakdown = self.salary_breakdown_for(employee)

        if letter_type == LetterType.APPOINTMENT:
            html = self._generate_appointment_html(employee, breakdown, letter_date or date.today())
        else:
            html = self._generate_annexure_html(employee, breakdown)

        filename = f"{letter_type.value}_letter_{employee.employee_code}.html"
        return {
            "employee_id": employee.id,
            "letter_type": letter_type.value,
            "filename": filename,
            "html": html,
            "content_base64": base64.b64encode(html.encode("utf-8")).decode("ascii"),
        }

    def _letterhead(self) -> str:
        return f"""
            <div class="header">
                <h1>{escape(settings.COMPANY_NAME)}</h1>
                <p>{escape(settings.COMPANY_ADDRESS)}</p>
            </div>
        """

    def _generate_appointment_html(self, employee: Employee, breakdown: SalaryBreakdown, letter_date: date) -> str:
        """Generate HTML for the appointment letter."""
        designation = employee.designation.title if employee.designation else "Employee"
        department = employee.department.name if employee.department else ""
        name = escape(employee.full_name)

        html = f"""
        <!DOCTYPE html>
        <html>
        <head>
            <title>Appointment Letter - {name}</title>
            <style>
                body {{ font-family: Arial, sans-serif; font-size: 13px; margin: 30px; }}
                .header {{ text-align: center; margin-bottom: 25px; }}
                .header h1 {{ margin: 5px 0; font-size: 20px; }}
                .section {{ margin: 15px 0; }}
                .details-table td {{ padding: 4px 10px 4px 0; }}
                .signature {{ margin-top: 50px; }}
            </style>
        </head>
        <body>
            {self._letterhead()}
            <p>Date: {letter_date.strftime('%d/%m/%Y')}</p>
            <p><strong>Subject: Appointment Letter - {escape(designation)}</strong></p>
            <p>Dear {name},</p>
            <p>We are pleased to confirm your appointment as <strong>{escape(designation)}</strong>
               {f'in the {escape(department)} department ' if department else ''}at {escape(settings.COMPANY_NAME)}.</p>

            <div class="section">
                <strong>Compensation</strong>
                <table class="details-table">
                    <tr><td>CTC (annual)</td><td>{_money(breakdown.ctc_annual)}</td></tr>
                    <tr><td>Gross (monthly)</td><td>{_money(breakdown.gross)}</td></tr>
                    <tr><td>Net (monthly, approx.)</td><td>{_money(breakdown.net)}</td></tr>
                    <tr><td>Basic (monthly)</td><td>{_money(breakdown.basic)}</td></tr>
                    <tr><td>HRA (monthly)</td><td>{_money(breakdown.hra)}</td></tr>
                </table>
            </div>

            <p>Your appointment will commence on {employee.date_of_joining.strftime('%d/%m/%Y')}.</p>

            <div class="section">
                <strong>Terms of Employment</strong>
                <ul>
                    <li>This appointment is subject to company policies and background verification.</li>
                    <li>The detailed salary structure is provided in the annexure.</li>
                </ul>
            </div>

            <p>Please sign and return a copy of this letter to indicate your acceptance.</p>

            <div class="signature">
                <p>Sincerely,</p>
                <p>HR Department<br>{escape(settings.COMPANY_NAME)}</p>
            </div>
        </body>
        </html>
        """
        return html

    def _generate_annexure_html(self, employee: Employee, breakdown: SalaryBreakdown) -> str:
        """Generate HTML for the salary annexure."""
        monthly = breakdown.monthly()
        annual = breakdown.annual()

        rows_html = ""
        for label, key in ANNEXURE_ROWS:
            rows_html += f"""
            <tr>
                <td>{label}</td>
                <td style="text-align: right;">{_money(monthly[key])}</td>
                <td style="text-align: right;">{_money(annual[key])}</td>
            </tr>
            """

        html = f"""
        <!DOCTYPE html>
        <html>
        <head>
            <title>Salary Annexure - {escape(employee.full_name)}</title>
            <style>
                body {{ font-family: Arial, sans-serif; font-size: 12px; margin: 30px; }}
                .header {{ text-align: center; margin-bottom: 20px; }}
                .data-table {{ width: 100%; border-collapse: collapse; margin-top: 10px; }}
                .data-table th, .data-table td {{ border: 1px solid #000; padding: 5px; }}
                .data-table th {{ background: #f0f0f0; }}
            </style>
        </head>
        <body>
            {self._letterhead()}
            <h2>Annexure - Salary Breakdown for {escape(employee.full_name)}</h2>
            <p>Employee Code: {escape(employee.employee_code)}</p>
            <table class="data-table">
                <tr>
                    <th>Component</th>
                    <th>Monthly</th>
                    <th>Annual</th>
                </tr>
                {rows_html}
            </table>
            <p>This annexure is generated automatically by EcoVale HR.</p>
        </body>
        </html>
        """
        return html
