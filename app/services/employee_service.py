from enum import Enum
from typing import Any, Dict, List, Optional
import uuid
import logging

from sqlalchemy import select, func, or_, delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.hr import Employee, EmployeeStatus, Department, Designation
from app.models.leave import LeaveRequest
from app.models.loan import LoanRecord
from app.models.payrun import PayRunEmployeeRecord
from app.models.user import User
from app.services.audit_service import AuditService
from app.services.salary_service import compute_ctc_breakdown, apply_breakdown


logger = logging.getLogger(__name__)

# Fields whose changes are captured in the audit trail
AUDITED_FIELDS = (
    "status", "department_id", "designation_id", "reporting_manager_id",
    "ctc", "basic_salary", "hra", "conveyance", "telephone", "medical_allowance",
    "special_allowance", "include_pf", "include_esi", "professional_tax", "tds",
)


class EmployeeError(Exception):
    """Custom exception for employee errors."""
    def __init__(self, message: str, details: Dict = None, status_code: int = 400):
        self.message = message
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)


def _column_values(data: Dict[str, Any]) -> Dict[str, Any]:
    """Enum members become their stored string values."""
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in data.items()}


def _audit_values(employee: Employee) -> Dict[str, Any]:
    values = {}
    for field in AUDITED_FIELDS:
        value = getattr(employee, field)
        values[field] = str(value) if isinstance(value, uuid.UUID) else value
    return values


async def generate_employee_code(db: AsyncSession) -> str:
    """Generate next employee code."""
    result = await db.execute(
        select(Employee.employee_code)
        .where(Employee.employee_code.like("EMP-%"))
        .order_by(Employee.employee_code.desc())
        .limit(1)
    )
    last_code = result.scalar_one_or_none()

    if last_code:
        try:
            num = int(last_code.split("-")[-1])
            return f"EMP-{str(num + 1).zfill(4)}"
        except (IndexError, ValueError):
            pass

    return "EMP-0001"


class EmployeeService:
    """Service for employee records and their compensation profile."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    async def get(self, employee_id: uuid.UUID) -> Employee:
        employee = await self.db.get(Employee, employee_id)
        if employee is None:
            raise EmployeeError("Employee not found", status_code=404)
        return employee

    async def _check_references(self, data: Dict[str, Any]) -> None:
        for key, model, label in (
            ("department_id", Department, "Department"),
            ("designation_id", Designation, "Designation"),
            ("reporting_manager_id", Employee, "Reporting manager"),
        ):
            ref_id = data.get(key)
            if ref_id is not None and await self.db.get(model, ref_id) is None:
                raise EmployeeError(f"{label} not found", {key: str(ref_id)}, status_code=404)

    async def list_employees(
        self,
        status: Optional[str] = None,
        department_id: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[List[Employee], int]:
        stmt = select(Employee)
        if status:
            stmt = stmt.where(Employee.status == status)
        if department_id:
            stmt = stmt.where(Employee.department_id == department_id)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(
                    Employee.first_name.ilike(pattern),
                    Employee.last_name.ilike(pattern),
                    Employee.employee_code.ilike(pattern),
                    Employee.official_email.ilike(pattern),
                    Employee.personal_email.ilike(pattern),
                )
            )

        total = (await self.db.execute(select(func.count()).select_from(stmt.subquery()))).scalar()

        stmt = stmt.order_by(Employee.employee_code).offset(skip).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def create(
        self,
        data: Dict[str, Any],
        auto_compute_salary: bool = False,
        hra_percentage=None,
        keep_professional_tax: bool = False,
        user_id: Optional[uuid.UUID] = None,
    ) -> Employee:
        """
        Create an employee. With auto_compute_salary the compensation profile
        is filled from the CTC breakdown; professional tax follows the
        threshold rule unless keep_professional_tax is set, and a given TDS
        figure is kept.
        """
        data = _column_values(data)
        await self._check_references(data)

        if not data.get("employee_code"):
            data["employee_code"] = await generate_employee_code(self.db)
        else:
            clash = await self.db.execute(
                select(Employee.id).where(Employee.employee_code == data["employee_code"])
            )
            if clash.first() is not None:
                raise EmployeeError(
                    f"Employee code {data['employee_code']} already exists",
                    status_code=409
                )

        employee = Employee(id=uuid.uuid4(), status=EmployeeStatus.ACTIVE.value, **data)

        if auto_compute_salary:
            kwargs = {} if hra_percentage is None else {"hra_percentage": hra_percentage}
            breakdown = compute_ctc_breakdown(
                employee.ctc,
                conveyance=employee.conveyance or 0,
                telephone=employee.telephone or 0,
                medical_allowance=employee.medical_allowance or 0,
                include_pf=employee.include_pf,
                include_esi=employee.include_esi,
                professional_tax=data.get("professional_tax") if keep_professional_tax else None,
                **kwargs,
            )
            apply_breakdown(employee, breakdown)
            if data.get("tds"):
                employee.tds = data["tds"]

        self.db.add(employee)
        await self.db.flush()

        await self.audit.log_created(
            "EMPLOYEE",
            employee.id,
            {"employee_code": employee.employee_code, **_audit_values(employee)},
            user_id=user_id,
            description=f"Created employee {employee.full_name}",
        )
        logger.info("Created employee %s", employee.employee_code)
        return employee

    async def update(
        self,
        employee_id: uuid.UUID,
        data: Dict[str, Any],
        user_id: Optional[uuid.UUID] = None,
    ) -> Employee:
        data = _column_values(data)
        employee = await self.get(employee_id)
        await self._check_references(data)
        if data.get("reporting_manager_id") == employee.id:
            raise EmployeeError("An employee cannot report to themselves")

        old_values = _audit_values(employee)
        for field, value in data.items():
            setattr(employee, field, value)
        await self.db.flush()

        await self.audit.log_updated(
            "EMPLOYEE", employee.id, old_values, _audit_values(employee), user_id=user_id
        )
        return employee

    async def deactivate(self, employee_id: uuid.UUID, user_id: Optional[uuid.UUID] = None) -> Employee:
        """Soft delete: the employee drops out of future pay runs, history stays."""
        return await self.update(employee_id, {"status": EmployeeStatus.INACTIVE.value}, user_id=user_id)

    async def hard_delete(self, employee_id: uuid.UUID, user_id: Optional[uuid.UUID] = None) -> None:
        """Remove an employee with no payroll history, along with their own records."""
        result = await self.db.execute(
            select(Employee)
            .options(
                selectinload(Employee.attendance_records),
                selectinload(Employee.advances),
                selectinload(Employee.loans).selectinload(LoanRecord.emi_schedule),
            )
            .where(Employee.id == employee_id)
        )
        employee = result.scalar_one_or_none()
        if employee is None:
            raise EmployeeError("Employee not found", status_code=404)

        referenced = await self.db.execute(
            select(PayRunEmployeeRecord.id)
            .where(PayRunEmployeeRecord.employee_id == employee_id)
            .limit(1)
        )
        if referenced.first() is not None:
            raise EmployeeError(
                "Employee has payroll history and can only be deactivated",
                status_code=409
            )

        await self.audit.log_deleted(
            "EMPLOYEE",
            employee.id,
            {"employee_code": employee.employee_code, "name": employee.full_name},
            user_id=user_id,
        )
        await self.db.execute(delete(LeaveRequest).where(LeaveRequest.employee_id == employee.id))
        await self.db.execute(update(User).where(User.employee_id == employee.id).values(employee_id=None))
        await self.db.execute(
            update(Employee).where(Employee.reporting_manager_id == employee.id).values(reporting_manager_id=None)
        )
        await self.db.delete(employee)
        await self.db.flush()
