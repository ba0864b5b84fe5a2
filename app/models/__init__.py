# Models module: importing here registers every table on Base.metadata
from app.models.user import User, UserRole
from app.models.hr import (
    Month,
    EmployeeStatus,
    EmploymentType,
    Gender,
    Department,
    Designation,
    Employee,
)
from app.models.attendance import AttendanceRecord
from app.models.advance import AdvanceRecord, AdvanceStatus
from app.models.loan import LoanRecord, LoanEMI, LoanStatus, EMIStatus
from app.models.payrun import PayRun, PayRunEmployeeRecord, PayRunStatus, AttendanceSource
from app.models.leave import LeaveRequest, LeaveType, LeaveStatus
from app.models.audit_log import AuditLog

__all__ = [
    "User",
    "UserRole",
    "Month",
    "EmployeeStatus",
    "EmploymentType",
    "Gender",
    "Department",
    "Designation",
    "Employee",
    "AttendanceRecord",
    "AdvanceRecord",
    "AdvanceStatus",
    "LoanRecord",
    "LoanEMI",
    "LoanStatus",
    "EMIStatus",
    "PayRun",
    "PayRunEmployeeRecord",
    "PayRunStatus",
    "AttendanceSource",
    "LeaveRequest",
    "LeaveType",
    "LeaveStatus",
    "AuditLog",
]
