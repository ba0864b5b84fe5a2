"""
Shared pydantic bases.

Response schemas built from ORM rows inherit BaseResponseSchema. Money fields
are Decimal throughout and serialize as strings, so "1800.00" reaches the
client without float rounding.
"""
from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    """Read from ORM attributes (employee.full_name, record.payable_days, ...)."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class BaseCreateSchema(BaseModel):
    """Request bodies; unknown keys from older clients are dropped."""
    model_config = ConfigDict(extra="ignore")


class BaseUpdateSchema(BaseCreateSchema):
    """Partial updates: every field optional, applied with model_dump(exclude_unset=True)."""


def page_count(total: int, size: int) -> int:
    """Number of pages for `total` rows at `size` per page."""
    if size <= 0:
        return 1
    return -(-total // size)
