"""Pydantic schemas for HR master data: departments, designations and employees."""
from datetime import datetime, date
from typing import Optional, List
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, EmailStr, model_validator

from app.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema
from app.models.hr import EmploymentType, EmployeeStatus, Gender


# ==================== Department Schemas ====================

class DepartmentCreate(BaseCreateSchema):
    """Schema for creating Department."""
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    is_active: bool = True


class DepartmentUpdate(BaseUpdateSchema):
    """Schema for updating Department."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class DepartmentResponse(BaseResponseSchema):
    """Response schema for Department."""
    id: UUID
    name: str
    description: Optional[str] = None
    is_active: bool
    employee_count: int = 0
    created_at: datetime
    updated_at: datetime


class DepartmentListResponse(BaseModel):
    """Response for listing Departments."""
    items: List[DepartmentResponse]
    total: int
    page: int = 1
    size: int = 50
    pages: int = 1


# ==================== Designation Schemas ====================

class DesignationBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    department_id: Optional[UUID] = None
    description: Optional[str] = None
    level: int = Field(1, ge=1)
    reporting_to_id: Optional[UUID] = None
    min_salary: Optional[Decimal] = Field(None, ge=0)
    max_salary: Optional[Decimal] = Field(None, ge=0)

    @model_validator(mode="after")
    def check_salary_band(self):
        if self.min_salary is not None and self.max_salary is not None and self.min_salary > self.max_salary:
            raise ValueError("min_salary cannot exceed max_salary")
        return self


class DesignationCreate(DesignationBase):
    """Schema for creating Designation."""
    pass


class DesignationUpdate(BaseUpdateSchema):
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    department_id: Optional[UUID] = None
    description: Optional[str] = None
    level: Optional[int] = Field(None, ge=1)
    reporting_to_id: Optional[UUID] = None
    min_salary: Optional[Decimal] = Field(None, ge=0)
    max_salary: Optional[Decimal] = Field(None, ge=0)


class DesignationResponse(BaseResponseSchema):
    id: UUID
    title: str
    department_id: Optional[UUID] = None
    description: Optional[str] = None
    level: int
    reporting_to_id: Optional[UUID] = None
    min_salary: Optional[Decimal] = None
    max_salary: Optional[Decimal] = None
    created_at: datetime
    updated_at: datetime


class DesignationListResponse(BaseModel):
    items: List[DesignationResponse]
    total: int
    page: int = 1
    size: int = 50
    pages: int = 1


# ==================== Employee Schemas ====================

class EmployeeBase(BaseModel):
    """Base schema for Employee."""
    # Personal Info
    first_name: str = Field(..., min_length=1, max_length=100)
    middle_name: Optional[str] = Field(None, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    gender: Optional[Gender] = None
    date_of_birth: Optional[date] = None
    personal_email: Optional[EmailStr] = None
    official_email: Optional[EmailStr] = None
    contact_number: Optional[str] = Field(None, max_length=20)
    current_address: Optional[str] = None
    permanent_address: Optional[str] = None

    # Employment
    department_id: Optional[UUID] = None
    designation_id: Optional[UUID] = None
    reporting_manager_id: Optional[UUID] = None
    employment_type: EmploymentType = EmploymentType.FULL_TIME
    work_location: Optional[str] = Field(None, max_length=100)
    date_of_joining: date

    # Indian Documents
    pf_number: Optional[str] = Field(None, max_length=50)
    esi_number: Optional[str] = Field(None, max_length=50)
    pan_number: Optional[str] = Field(None, max_length=10)

    # Bank Details
    bank_name: Optional[str] = Field(None, max_length=100)
    account_number: Optional[str] = Field(None, max_length=30)
    ifsc_code: Optional[str] = Field(None, max_length=20)

    # Compensation (monthly unless stated)
    ctc: Decimal = Field(..., gt=0, description="Annual cost to company")
    basic_salary: Optional[Decimal] = Field(None, ge=0)
    hra: Decimal = Field(Decimal("0"), ge=0)
    conveyance: Decimal = Field(Decimal("0"), ge=0)
    telephone: Decimal = Field(Decimal("0"), ge=0)
    medical_allowance: Decimal = Field(Decimal("0"), ge=0)
    special_allowance: Decimal = Field(Decimal("0"), ge=0)
    include_pf: bool = True
    include_esi: bool = False
    pf_deduction: Decimal = Field(Decimal("0"), ge=0)
    esi_deduction: Decimal = Field(Decimal("0"), ge=0)
    professional_tax: Decimal = Field(Decimal("0"), ge=0)
    tds: Decimal = Field(Decimal("0"), ge=0)


class EmployeeCreate(EmployeeBase):
    """Schema for creating Employee. The code is generated when omitted."""
    employee_code: Optional[str] = Field(None, max_length=20)
    auto_compute_salary: bool = Field(
        False,
        description="Fill the compensation profile from the CTC breakdown"
    )
    hra_percentage: Optional[Decimal] = Field(None, ge=0, le=100)


class EmployeeUpdate(BaseUpdateSchema):
    """Schema for updating Employee."""
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    middle_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    gender: Optional[Gender] = None
    date_of_birth: Optional[date] = None
    personal_email: Optional[EmailStr] = None
    official_email: Optional[EmailStr] = None
    contact_number: Optional[str] = Field(None, max_length=20)
    current_address: Optional[str] = None
    permanent_address: Optional[str] = None

    department_id: Optional[UUID] = None
    designation_id: Optional[UUID] = None
    reporting_manager_id: Optional[UUID] = None
    employment_type: Optional[EmploymentType] = None
    work_location: Optional[str] = Field(None, max_length=100)
    date_of_joining: Optional[date] = None
    status: Optional[EmployeeStatus] = None

    pf_number: Optional[str] = Field(None, max_length=50)
    esi_number: Optional[str] = Field(None, max_length=50)
    pan_number: Optional[str] = Field(None, max_length=10)
    bank_name: Optional[str] = Field(None, max_length=100)
    account_number: Optional[str] = Field(None, max_length=30)
    ifsc_code: Optional[str] = Field(None, max_length=20)

    ctc: Optional[Decimal] = Field(None, gt=0)
    basic_salary: Optional[Decimal] = Field(None, ge=0)
    hra: Optional[Decimal] = Field(None, ge=0)
    conveyance: Optional[Decimal] = Field(None, ge=0)
    telephone: Optional[Decimal] = Field(None, ge=0)
    medical_allowance: Optional[Decimal] = Field(None, ge=0)
    special_allowance: Optional[Decimal] = Field(None, ge=0)
    include_pf: Optional[bool] = None
    include_esi: Optional[bool] = None
    pf_deduction: Optional[Decimal] = Field(None, ge=0)
    esi_deduction: Optional[Decimal] = Field(None, ge=0)
    professional_tax: Optional[Decimal] = Field(None, ge=0)
    tds: Optional[Decimal] = Field(None, ge=0)


class EmployeeResponse(BaseResponseSchema):
    """Response schema for Employee."""
    id: UUID
    employee_code: str
    first_name: str
    middle_name: Optional[str] = None
    last_name: str
    full_name: str
    gender: Optional[str] = None
    date_of_birth: Optional[date] = None
    personal_email: Optional[str] = None
    official_email: Optional[str] = None
    contact_number: Optional[str] = None
    current_address: Optional[str] = None
    permanent_address: Optional[str] = None

    department_id: Optional[UUID] = None
    designation_id: Optional[UUID] = None
    reporting_manager_id: Optional[UUID] = None
    employment_type: str
    work_location: Optional[str] = None
    date_of_joining: date
    status: str

    pf_number: Optional[str] = None
    esi_number: Optional[str] = None
    pan_number: Optional[str] = None
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    ifsc_code: Optional[str] = None

    ctc: Decimal
    basic_salary: Optional[Decimal] = None
    hra: Decimal
    conveyance: Decimal
    telephone: Decimal
    medical_allowance: Decimal
    special_allowance: Decimal
    include_pf: bool
    include_esi: bool
    pf_deduction: Decimal
    esi_deduction: Decimal
    professional_tax: Decimal
    tds: Decimal

    created_at: datetime
    updated_at: datetime


class EmployeeListResponse(BaseModel):
    """Response for listing Employees."""
    items: List[EmployeeResponse]
    total: int
    page: int = 1
    size: int = 50
    pages: int = 1


# ==================== Salary Breakdown Schemas ====================

class SalaryBreakdownRequest(BaseModel):
    """CTC and structure options for a salary breakdown preview."""
    ctc: Decimal = Field(..., gt=0, description="Annual cost to company")
    hra_percentage: Decimal = Field(Decimal("10"), ge=0, le=100)
    conveyance: Decimal = Field(Decimal("0"), ge=0)
    telephone: Decimal = Field(Decimal("0"), ge=0)
    medical_allowance: Decimal = Field(Decimal("0"), ge=0)
    include_pf: bool = True
    include_esi: bool = False
    professional_tax: Optional[Decimal] = Field(None, ge=0)
    tds_percentage: Optional[Decimal] = Field(None, ge=0, le=100)


class SalaryComponents(BaseModel):
    ctc: Decimal
    basic: Decimal
    hra: Decimal
    conveyance: Decimal
    telephone: Decimal
    medical_allowance: Decimal
    special_allowance: Decimal
    gross: Decimal
    employee_pf: Decimal
    employer_pf: Decimal
    employee_esi: Decimal
    employer_esi: Decimal
    gratuity_monthly: Decimal
    professional_tax: Decimal
    tds: Decimal
    net: Decimal


class SalaryBreakdownResponse(BaseModel):
    ctc: Decimal
    monthly: SalaryComponents
    annual: SalaryComponents
    net_monthly: Decimal
