from fastapi import APIRouter

from app.api.v1.endpoints import (
    # Access Control
    auth,
    audit_logs,
    # HR master data
    departments,
    designations,
    employees,
    # Payroll inputs
    attendance,
    advances,
    loans,
    # Payroll
    payruns,
    # Leave & documents
    leaves,
    letters,
)

api_router = APIRouter(prefix="/api/v1")

# Access Control Routes
api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Authentication"]
)
api_router.include_router(
    audit_logs.router,
    prefix="/audit-logs",
    tags=["Audit Logs"]
)

# HR Master Data Routes
api_router.include_router(
    departments.router,
    prefix="/departments",
    tags=["Departments"]
)
api_router.include_router(
    designations.router,
    prefix="/designations",
    tags=["Designations"]
)
api_router.include_router(
    employees.router,
    prefix="/employees",
    tags=["Employees"]
)

# Payroll Input Routes
api_router.include_router(
    attendance.router,
    prefix="/attendance",
    tags=["Attendance"]
)
api_router.include_router(
    advances.router,
    prefix="/advances",
    tags=["Advances"]
)
api_router.include_router(
    loans.router,
    prefix="/loans",
    tags=["Loans"]
)

# Payroll Routes
api_router.include_router(
    payruns.router,
    prefix="/payruns",
    tags=["Pay Runs"]
)

# Leave & Letters Routes
api_router.include_router(
    leaves.router,
    prefix="/leaves",
    tags=["Leaves"]
)
api_router.include_router(
    letters.router,
    prefix="/letters",
    tags=["Letters"]
)
