import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, DateTime, ForeignKey, Integer, Text
from sqlalchemy import UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType, Money

if TYPE_CHECKING:
    from app.models.hr import Employee


class LoanStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EMIStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


class LoanRecord(Base):
    """Employee loan repaid through a fixed monthly EMI schedule."""
    __tablename__ = "loan_records"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    loan_amount: Mapped[Decimal] = mapped_column(Money(), nullable=False)
    interest_rate: Mapped[Decimal] = mapped_column(
        Money(5),
        default=Decimal("0"),
        nullable=False,
        comment="Flat percentage on principal"
    )
    number_of_emis: Mapped[int] = mapped_column(Integer, nullable=False)
    emi_amount: Mapped[Decimal] = mapped_column(Money(), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Money(), nullable=False)
    start_month: Mapped[str] = mapped_column(String(10), nullable=False)
    start_year: Mapped[str] = mapped_column(String(4), nullable=False)

    total_paid_emis: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    remaining_balance: Mapped[Decimal] = mapped_column(Money(), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=LoanStatus.ACTIVE.value,
        nullable=False,
        index=True,
        comment="active, completed, cancelled"
    )
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

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

    employee: Mapped["Employee"] = relationship("Employee", back_populates="loans")
    emi_schedule: Mapped[List["LoanEMI"]] = relationship(
        "LoanEMI",
        back_populates="loan",
        cascade="all, delete-orphan",
        order_by="LoanEMI.installment_number"
    )

    def __repr__(self) -> str:
        return f"<LoanRecord(employee_id='{self.employee_id}', amount={self.loan_amount}, status='{self.status}')>"


class LoanEMI(Base):
    """One installment of a loan's schedule."""
    __tablename__ = "loan_emis"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    loan_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("loan_records.id", ondelete="CASCADE"),
        nullable=False
    )
    installment_number: Mapped[int] = mapped_column(Integer, nullable=False, comment="1-based")
    month: Mapped[str] = mapped_column(String(10), nullable=False)
    year: Mapped[str] = mapped_column(String(4), nullable=False)
    emi_amount: Mapped[Decimal] = mapped_column(Money(), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=EMIStatus.PENDING.value,
        nullable=False,
        comment="pending, paid"
    )
    paid_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    loan: Mapped["LoanRecord"] = relationship("LoanRecord", back_populates="emi_schedule")

    __table_args__ = (
        UniqueConstraint("loan_id", "installment_number", name="uq_loan_emi_installment"),
        Index("ix_loan_emis_period", "month", "year", "status"),
    )

    def __repr__(self) -> str:
        return f"<LoanEMI(loan_id='{self.loan_id}', #{self.installment_number} {self.month} {self.year}, status='{self.status}')>"
