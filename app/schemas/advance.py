"""Pydantic schemas for salary advances."""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.base import BaseResponseSchema, BaseUpdateSchema
from app.schemas.attendance import YEAR_PATTERN
from app.models.hr import Month
from app.models.advance import AdvanceStatus


class AdvanceCreate(BaseModel):
    employee_id: UUID
    advance_month: Month
    advance_year: str = Field(..., pattern=YEAR_PATTERN)
    advance_paid_amount: Decimal = Field(..., gt=0)
    advance_deduction_month: Month
    advance_deduction_year: str = Field(..., pattern=YEAR_PATTERN)
    remaining_amount: Optional[Decimal] = Field(None, ge=0, description="Defaults to the paid amount")
    remarks: Optional[str] = None


class AdvanceUpdate(BaseUpdateSchema):
    advance_paid_amount: Optional[Decimal] = Field(None, gt=0)
    advance_deduction_month: Optional[Month] = None
    advance_deduction_year: Optional[str] = Field(None, pattern=YEAR_PATTERN)
    status: Optional[AdvanceStatus] = None
    remaining_amount: Optional[Decimal] = Field(None, ge=0)
    remarks: Optional[str] = None


class AdvanceResponse(BaseResponseSchema):
    id: UUID
    employee_id: UUID
    advance_month: str
    advance_year: str
    advance_paid_amount: Decimal
    advance_deduction_month: str
    advance_deduction_year: str
    status: str
    remaining_amount: Decimal
    remarks: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class AdvanceListResponse(BaseModel):
    items: List[AdvanceResponse]
    total: int
    page: int = 1
    size: int = 50
    pages: int = 1
