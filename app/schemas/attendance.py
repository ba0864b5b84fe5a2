"""Pydantic schemas for monthly attendance."""
from datetime import datetime
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.schemas.base import BaseResponseSchema, BaseUpdateSchema
from app.models.hr import Month


YEAR_PATTERN = r"^\d{4}$"


def check_day_counts(total, present, absent, paid_leave, unpaid_leave):
    if present + absent + paid_leave + unpaid_leave > total:
        raise ValueError("Present, absent and leave days cannot exceed total working days")


class AttendanceCreate(BaseModel):
    employee_id: UUID
    month: Month
    year: str = Field(..., pattern=YEAR_PATTERN)
    total_working_days: int = Field(..., gt=0)
    present_days: int = Field(0, ge=0)
    absent_days: int = Field(0, ge=0)
    paid_leave: int = Field(0, ge=0)
    unpaid_leave: int = Field(0, ge=0)
    remarks: Optional[str] = None

    @model_validator(mode="after")
    def check_days(self):
        check_day_counts(
            self.total_working_days, self.present_days, self.absent_days,
            self.paid_leave, self.unpaid_leave,
        )
        return self


class AttendanceUpdate(BaseUpdateSchema):
    """Day counts are validated against the stored record in the endpoint."""
    total_working_days: Optional[int] = Field(None, gt=0)
    present_days: Optional[int] = Field(None, ge=0)
    absent_days: Optional[int] = Field(None, ge=0)
    paid_leave: Optional[int] = Field(None, ge=0)
    unpaid_leave: Optional[int] = Field(None, ge=0)
    remarks: Optional[str] = None


class AttendanceResponse(BaseResponseSchema):
    id: UUID
    employee_id: UUID
    month: str
    year: str
    total_working_days: int
    present_days: int
    absent_days: int
    paid_leave: int
    unpaid_leave: int
    payable_days: int
    loss_of_pay_days: int
    remarks: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class AttendanceListResponse(BaseModel):
    """Response for listing Attendance."""
    items: List[AttendanceResponse]
    total: int
    page: int = 1
    size: int = 50
    pages: int = 1
