"""Pay-run models.

One PayRun per (month, year); it owns one PayRunEmployeeRecord per
employee processed at generation time. Records keep the ids of the
advances and EMIs they deducted so finalization can settle exactly
those obligations.
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, DateTime, ForeignKey, Integer
from sqlalchemy import UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType, JSONType, Money

if TYPE_CHECKING:
    from app.models.hr import Employee


class PayRunStatus(str, Enum):
    DRAFT = "DRAFT"
    FINALIZED = "FINALIZED"


class AttendanceSource(str, Enum):
    RECORDED = "RECORDED"
    DEFAULTED = "DEFAULTED"


class PayRun(Base):
    """Payroll batch for one calendar month."""
    __tablename__ = "pay_runs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    month: Mapped[str] = mapped_column(String(10), nullable=False)
    year: Mapped[str] = mapped_column(String(4), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=PayRunStatus.DRAFT.value,
        nullable=False,
        comment="DRAFT, FINALIZED"
    )
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False, comment="Bumped on each regeneration")

    # Totals
    employee_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    eligible_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False, comment="Active employees at generation")
    total_gross: Mapped[Decimal] = mapped_column(Money(14), default=Decimal("0"), nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(Money(14), default=Decimal("0"), nullable=False)
    total_net: Mapped[Decimal] = mapped_column(Money(14), default=Decimal("0"), nullable=False)
    failures: Mapped[Optional[list]] = mapped_column(
        JSONType,
        nullable=True,
        comment="[{employee_id, employee_name, reason}]"
    )

    generated_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    generated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    finalized_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    finalized_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

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

    records: Mapped[List["PayRunEmployeeRecord"]] = relationship(
        "PayRunEmployeeRecord",
        back_populates="pay_run",
        cascade="all, delete-orphan",
        order_by="PayRunEmployeeRecord.position"
    )

    __table_args__ = (
        UniqueConstraint("month", "year", name="uq_pay_run_period"),
    )

    def __repr__(self) -> str:
        return f"<PayRun(period='{self.month} {self.year}', status='{self.status}', v{self.version})>"


class PayRunEmployeeRecord(Base):
    """Computed pay for one employee within a pay run."""
    __tablename__ = "pay_run_employee_records"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    pay_run_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("pay_runs.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    # RESTRICT: payroll history blocks hard deletion of the employee
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("employees.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    employee_code: Mapped[str] = mapped_column(String(20), nullable=False)
    employee_name: Mapped[str] = mapped_column(String(300), nullable=False)

    # Attendance
    attendance_source: Mapped[str] = mapped_column(String(20), nullable=False, comment="RECORDED, DEFAULTED")
    total_working_days: Mapped[int] = mapped_column(Integer, nullable=False)
    payable_days: Mapped[int] = mapped_column(Integer, nullable=False)
    loss_of_pay_days: Mapped[int] = mapped_column(Integer, nullable=False)

    # Earnings
    basic_salary: Mapped[Decimal] = mapped_column(Money(), nullable=False)
    loss_of_pay_amount: Mapped[Decimal] = mapped_column(Money(), nullable=False)
    adjusted_basic: Mapped[Decimal] = mapped_column(Money(), nullable=False)
    hra: Mapped[Decimal] = mapped_column(Money(), nullable=False)
    conveyance: Mapped[Decimal] = mapped_column(Money(), nullable=False)
    telephone: Mapped[Decimal] = mapped_column(Money(), nullable=False)
    medical_allowance: Mapped[Decimal] = mapped_column(Money(), nullable=False)
    special_allowance: Mapped[Decimal] = mapped_column(Money(), nullable=False)
    total_allowances: Mapped[Decimal] = mapped_column(Money(), nullable=False)
    gross_salary: Mapped[Decimal] = mapped_column(Money(), nullable=False)

    # Deductions
    pf_deduction: Mapped[Decimal] = mapped_column(Money(), nullable=False)
    esi_deduction: Mapped[Decimal] = mapped_column(Money(), nullable=False)
    professional_tax: Mapped[Decimal] = mapped_column(Money(), nullable=False)
    tds: Mapped[Decimal] = mapped_column(Money(), nullable=False)
    advance_deduction: Mapped[Decimal] = mapped_column(Money(), nullable=False)
    loan_deduction: Mapped[Decimal] = mapped_column(Money(), nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(Money(), nullable=False)
    net_pay: Mapped[Decimal] = mapped_column(Money(), nullable=False)

    # Employer side, not deducted from net pay
    employer_pf: Mapped[Decimal] = mapped_column(Money(), nullable=False)
    employer_esi: Mapped[Decimal] = mapped_column(Money(), nullable=False)

    # Obligations settled on finalization
    advance_ids: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)
    loan_emi_ids: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)

    pay_run: Mapped["PayRun"] = relationship("PayRun", back_populates="records")
    employee: Mapped["Employee"] = relationship("Employee")

    __table_args__ = (
        UniqueConstraint("pay_run_id", "employee_id", name="uq_pay_run_employee"),
    )

    def __repr__(self) -> str:
        return f"<PayRunEmployeeRecord(employee='{self.employee_code}', net={self.net_pay})>"
