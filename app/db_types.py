"""Database-agnostic column types shared by the models.

Both types work on PostgreSQL and SQLite, which the test suite runs on.
"""
from decimal import Decimal

from sqlalchemy import JSON, Numeric
from sqlalchemy.dialects.postgresql import UUID as PG_UUID

# JSON instead of JSONB so SQLite can store audit snapshots and pay-run failures
JSONType = JSON

# Stored natively on PostgreSQL, as CHAR(32) on SQLite
UUIDType = PG_UUID


def Money(precision: int = 12):
    """Numeric(precision, 2) that hands back Decimal on every backend."""
    return Numeric(precision, 2, asdecimal=True)


ZERO = Decimal("0.00")
