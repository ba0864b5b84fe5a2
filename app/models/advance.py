import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, DateTime, ForeignKey, Text, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType, Money

if TYPE_CHECKING:
    from app.models.hr import Employee


class AdvanceStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    DEDUCTED = "deducted"


class AdvanceRecord(Base):
    """
    Salary advance paid out in one month and recovered from the pay run
    of its deduction month.
    """
    __tablename__ = "advance_records"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False
    )

    # When the advance was paid out
    advance_month: Mapped[str] = mapped_column(String(10), nullable=False)
    advance_year: Mapped[str] = mapped_column(String(4), nullable=False)
    advance_paid_amount: Mapped[Decimal] = mapped_column(Money(), nullable=False)

    # When it is recovered
    advance_deduction_month: Mapped[str] = mapped_column(String(10), nullable=False)
    advance_deduction_year: Mapped[str] = mapped_column(String(4), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=AdvanceStatus.PENDING.value,
        nullable=False,
        comment="pending, partial, deducted"
    )
    remaining_amount: Mapped[Decimal] = mapped_column(Money(), nullable=False)
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

    employee: Mapped["Employee"] = relationship("Employee", back_populates="advances")

    __table_args__ = (
        Index(
            "ix_advance_deduction_period",
            "employee_id", "advance_deduction_month", "advance_deduction_year"
        ),
    )

    def __repr__(self) -> str:
        return f"<AdvanceRecord(employee_id='{self.employee_id}', amount={self.advance_paid_amount}, status='{self.status}')>"
