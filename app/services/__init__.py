# Services module
from app.services.auth_service import AuthService
from app.services.audit_service import AuditService

# HR
from app.services.employee_service import EmployeeService
from app.services.leave_service import LeaveService
from app.services.letter_service import LetterService

# Payroll
from app.services.loan_service import LoanService
from app.services.payrun_service import PayRunService

__all__ = [
    "AuthService",
    "AuditService",
    # HR
    "EmployeeService",
    "LeaveService",
    "LetterService",
    # Payroll
    "LoanService",
    "PayRunService",
]
