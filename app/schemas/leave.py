"""Pydantic schemas for leave requests."""
from datetime import datetime, date
from typing import Optional, List, Dict
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.base import BaseResponseSchema
from app.models.leave import LeaveType


class LeaveRequestCreate(BaseModel):
    """Employees apply for themselves; HR may pass any employee_id."""
    employee_id: Optional[UUID] = None
    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: str = Field(..., min_length=1)


class LeaveActionRequest(BaseModel):
    comments: Optional[str] = None


class LeaveRejectRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class LeaveRequestResponse(BaseResponseSchema):
    id: UUID
    employee_id: UUID
    leave_type: str
    start_date: date
    end_date: date
    number_of_days: int
    reason: str
    status: str
    manager_approved_by: Optional[UUID] = None
    manager_approved_at: Optional[datetime] = None
    manager_comments: Optional[str] = None
    admin_approved_by: Optional[UUID] = None
    admin_approved_at: Optional[datetime] = None
    admin_comments: Optional[str] = None
    rejected_by: Optional[UUID] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class LeaveRequestListResponse(BaseModel):
    items: List[LeaveRequestResponse]
    total: int
    page: int = 1
    size: int = 50
    pages: int = 1


class LeaveStatisticsResponse(BaseModel):
    employee_id: UUID
    year: int
    approved_days: int
    approved_days_by_type: Dict[str, int]
    pending_requests: int
