"""Pydantic schemas for employee loans and their EMI schedule."""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.base import BaseResponseSchema
from app.schemas.attendance import YEAR_PATTERN
from app.models.hr import Month


class LoanCreate(BaseModel):
    employee_id: UUID
    loan_amount: Decimal = Field(..., gt=0)
    interest_rate: Decimal = Field(Decimal("0"), ge=0, description="Flat percentage on principal")
    number_of_emis: int = Field(..., gt=0)
    start_month: Month
    start_year: str = Field(..., pattern=YEAR_PATTERN)
    remarks: Optional[str] = None


class LoanEMIResponse(BaseResponseSchema):
    id: UUID
    installment_number: int
    month: str
    year: str
    emi_amount: Decimal
    status: str
    paid_date: Optional[datetime] = None


class LoanResponse(BaseResponseSchema):
    id: UUID
    employee_id: UUID
    loan_amount: Decimal
    interest_rate: Decimal
    number_of_emis: int
    emi_amount: Decimal
    total_amount: Decimal
    start_month: str
    start_year: str
    total_paid_emis: int
    remaining_balance: Decimal
    status: str
    remarks: Optional[str] = None
    emi_schedule: List[LoanEMIResponse] = []
    created_at: datetime
    updated_at: datetime


class LoanListResponse(BaseModel):
    items: List[LoanResponse]
    total: int
    page: int = 1
    size: int = 50
    pages: int = 1
