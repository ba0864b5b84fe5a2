import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, DateTime, ForeignKey, Integer, Text
from sqlalchemy import UniqueConstraint, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType

if TYPE_CHECKING:
    from app.models.hr import Employee


class AttendanceRecord(Base):
    """
    Monthly attendance summary for one employee.

    payable days = present + paid leave
    loss of pay days = absent + unpaid leave
    """
    __tablename__ = "attendance_records"

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
    month: Mapped[str] = mapped_column(String(10), nullable=False, comment="January..December")
    year: Mapped[str] = mapped_column(String(4), nullable=False)

    total_working_days: Mapped[int] = mapped_column(Integer, nullable=False)
    present_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    absent_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    paid_leave: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    unpaid_leave: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

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

    employee: Mapped["Employee"] = relationship("Employee", back_populates="attendance_records")

    __table_args__ = (
        UniqueConstraint("employee_id", "month", "year", name="uq_attendance_employee_period"),
        CheckConstraint("total_working_days > 0", name="ck_attendance_working_days"),
    )

    @property
    def payable_days(self) -> int:
        return self.present_days + self.paid_leave

    @property
    def loss_of_pay_days(self) -> int:
        return self.absent_days + self.unpaid_leave

    def __repr__(self) -> str:
        return f"<AttendanceRecord(employee_id='{self.employee_id}', period='{self.month} {self.year}')>"
