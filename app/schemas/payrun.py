"""Pydantic schemas for pay runs."""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, Field, computed_field, field_validator

from app.schemas.base import BaseResponseSchema
from app.schemas.attendance import YEAR_PATTERN
from app.models.hr import Month


class PayRunGenerateRequest(BaseModel):
    month: Month
    year: str = Field(..., pattern=YEAR_PATTERN)
    regenerate: bool = Field(False, description="Replace an existing draft run for the period")


class PayRunFailure(BaseModel):
    employee_id: UUID
    employee_code: Optional[str] = None
    employee_name: str
    reason: str


class PayRunEmployeeRecordResponse(BaseResponseSchema):
    id: UUID
    employee_id: UUID
    position: int
    employee_code: str
    employee_name: str

    attendance_source: str
    total_working_days: int
    payable_days: int
    loss_of_pay_days: int

    basic_salary: Decimal
    loss_of_pay_amount: Decimal
    adjusted_basic: Decimal
    hra: Decimal
    conveyance: Decimal
    telephone: Decimal
    medical_allowance: Decimal
    special_allowance: Decimal
    total_allowances: Decimal
    gross_salary: Decimal

    pf_deduction: Decimal
    esi_deduction: Decimal
    professional_tax: Decimal
    tds: Decimal
    advance_deduction: Decimal
    loan_deduction: Decimal
    total_deductions: Decimal
    net_pay: Decimal

    employer_pf: Decimal
    employer_esi: Decimal


class PayRunSummary(BaseResponseSchema):
    id: UUID
    month: str
    year: str
    status: str
    version: int
    employee_count: int
    eligible_count: int
    total_gross: Decimal
    total_deductions: Decimal
    total_net: Decimal
    generated_by: Optional[UUID] = None
    generated_at: datetime
    finalized_by: Optional[UUID] = None
    finalized_at: Optional[datetime] = None

    @computed_field
    @property
    def processed_count(self) -> int:
        return self.employee_count


class PayRunResponse(PayRunSummary):
    failures: List[PayRunFailure] = []
    records: List[PayRunEmployeeRecordResponse] = []

    @field_validator("failures", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return v or []


class PayRunListResponse(BaseModel):
    items: List[PayRunSummary]
    total: int
    page: int = 1
    size: int = 50
    pages: int = 1
