"""HR master data: departments, designations and employees.

Employees carry the monthly compensation profile that the payroll
pipeline reads (basic, HRA, fixed allowances, PF/ESI flags and the
stored monthly professional tax and TDS figures).
"""
import uuid
from datetime import datetime, date, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional, List
from decimal import Decimal

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Integer, Text, Date
from sqlalchemy import CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType, Money

if TYPE_CHECKING:
    from app.models.attendance import AttendanceRecord
    from app.models.advance import AdvanceRecord
    from app.models.loan import LoanRecord


# ==================== Enums ====================

class Month(str, Enum):
    """Calendar months as used for payroll periods."""
    JANUARY = "January"
    FEBRUARY = "February"
    MARCH = "March"
    APRIL = "April"
    MAY = "May"
    JUNE = "June"
    JULY = "July"
    AUGUST = "August"
    SEPTEMBER = "September"
    OCTOBER = "October"
    NOVEMBER = "November"
    DECEMBER = "December"

    @property
    def number(self) -> int:
        return list(Month).index(self) + 1

    @classmethod
    def from_number(cls, number: int) -> "Month":
        return list(cls)[number - 1]


def next_period(month: Month, year: str) -> tuple[Month, str]:
    """Month following (month, year), rolling the year after December."""
    if month == Month.DECEMBER:
        return Month.JANUARY, str(int(year) + 1)
    return Month.from_number(month.number + 1), year


class EmployeeStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class EmploymentType(str, Enum):
    FULL_TIME = "FULL_TIME"
    PART_TIME = "PART_TIME"
    CONTRACT = "CONTRACT"


class Gender(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"
    OTHER = "OTHER"


# ==================== Department ====================

class Department(Base):
    """Organisational department (IT, HR, Finance, ...)."""
    __tablename__ = "departments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    employees: Mapped[List["Employee"]] = relationship("Employee", back_populates="department", passive_deletes=True)
    designations: Mapped[List["Designation"]] = relationship("Designation", back_populates="department", passive_deletes=True)

    def __repr__(self) -> str:
        return f"<Department(name='{self.name}')>"


# ==================== Designation ====================

class Designation(Base):
    """Job title with its level in the reporting hierarchy."""
    __tablename__ = "designations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    title: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("departments.id", ondelete="SET NULL"),
        nullable=True
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    level: Mapped[int] = mapped_column(Integer, default=1, nullable=False, comment="1 = entry level")
    reporting_to_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("designations.id", ondelete="SET NULL"),
        nullable=True
    )
    min_salary: Mapped[Optional[Decimal]] = mapped_column(Money(), nullable=True)
    max_salary: Mapped[Optional[Decimal]] = mapped_column(Money(), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    department: Mapped[Optional["Department"]] = relationship("Department", back_populates="designations")
    reporting_to: Mapped[Optional["Designation"]] = relationship("Designation", remote_side=[id])

    __table_args__ = (
        CheckConstraint("level >= 1", name="ck_designation_level"),
    )

    def __repr__(self) -> str:
        return f"<Designation(title='{self.title}', level={self.level})>"


# ==================== Employee ====================

class Employee(Base):
    """
    Employee record with personal, employment and compensation details.
    Soft-deleted by flipping status to INACTIVE.
    """
    __tablename__ = "employees"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    employee_code: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        index=True,
        comment="EMP-0001"
    )

    # Personal
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    middle_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    gender: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, comment="MALE, FEMALE, OTHER")
    date_of_birth: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    personal_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    official_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    contact_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    current_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    permanent_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Employment
    department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("departments.id", ondelete="SET NULL"),
        nullable=True
    )
    designation_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("designations.id", ondelete="SET NULL"),
        nullable=True
    )
    reporting_manager_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("employees.id", ondelete="SET NULL"),
        nullable=True
    )
    employment_type: Mapped[str] = mapped_column(
        String(20),
        default=EmploymentType.FULL_TIME.value,
        nullable=False,
        comment="FULL_TIME, PART_TIME, CONTRACT"
    )
    work_location: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    date_of_joining: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=EmployeeStatus.ACTIVE.value,
        nullable=False,
        index=True,
        comment="ACTIVE, INACTIVE"
    )

    # Statutory identifiers and bank
    pf_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    esi_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    pan_number: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    bank_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    account_number: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    ifsc_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Compensation profile (monthly unless stated)
    ctc: Mapped[Decimal] = mapped_column(Money(14), nullable=False, comment="Annual cost to company")
    basic_salary: Mapped[Optional[Decimal]] = mapped_column(Money(), nullable=True)
    hra: Mapped[Decimal] = mapped_column(Money(), default=Decimal("0"), nullable=False)
    conveyance: Mapped[Decimal] = mapped_column(Money(), default=Decimal("0"), nullable=False)
    telephone: Mapped[Decimal] = mapped_column(Money(), default=Decimal("0"), nullable=False)
    medical_allowance: Mapped[Decimal] = mapped_column(Money(), default=Decimal("0"), nullable=False)
    special_allowance: Mapped[Decimal] = mapped_column(Money(), default=Decimal("0"), nullable=False)
    include_pf: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    include_esi: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    pf_deduction: Mapped[Decimal] = mapped_column(Money(), default=Decimal("0"), nullable=False)
    esi_deduction: Mapped[Decimal] = mapped_column(Money(), default=Decimal("0"), nullable=False)
    professional_tax: Mapped[Decimal] = mapped_column(Money(), default=Decimal("0"), nullable=False)
    tds: Mapped[Decimal] = mapped_column(Money(), default=Decimal("0"), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    department: Mapped[Optional["Department"]] = relationship("Department", back_populates="employees")
    designation: Mapped[Optional["Designation"]] = relationship("Designation")
    reporting_manager: Mapped[Optional["Employee"]] = relationship("Employee", remote_side=[id])
    attendance_records: Mapped[List["AttendanceRecord"]] = relationship(
        "AttendanceRecord",
        back_populates="employee",
        cascade="all, delete-orphan"
    )
    advances: Mapped[List["AdvanceRecord"]] = relationship(
        "AdvanceRecord",
        back_populates="employee",
        cascade="all, delete-orphan"
    )
    loans: Mapped[List["LoanRecord"]] = relationship(
        "LoanRecord",
        back_populates="employee",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("ctc > 0", name="ck_employee_ctc_positive"),
        Index("ix_employees_name", "first_name", "last_name"),
    )

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.middle_name, self.last_name]
        return " ".join(p for p in parts if p)

    def __repr__(self) -> str:
        return f"<Employee(code='{self.employee_code}')>"
