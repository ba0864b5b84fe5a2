import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")

from datetime import date
from decimal import Decimal
import uuid

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401
from app.core.security import create_access_token, get_password_hash
from app.database import Base, custom_json_dumps, get_db
from app.main import app
from app.models.hr import Employee, EmployeeStatus
from app.models.user import User, UserRole


TEST_PASSWORD = "Secret@123"


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        json_serializer=custom_json_dumps,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def make_employee(db):
    """Insert an active employee with a fixed monthly salary."""
    counter = {"n": 0}

    async def _make(**overrides) -> Employee:
        counter["n"] += 1
        values = dict(
            id=uuid.uuid4(),
            employee_code=f"EMP-{counter['n']:04d}",
            first_name="Asha",
            last_name=f"Rao{counter['n']}",
            date_of_joining=date(2024, 4, 1),
            status=EmployeeStatus.ACTIVE.value,
            ctc=Decimal("1200000"),
            basic_salary=Decimal("80000"),
            hra=Decimal("0"),
            conveyance=Decimal("0"),
            telephone=Decimal("0"),
            medical_allowance=Decimal("0"),
            special_allowance=Decimal("0"),
            include_pf=True,
            include_esi=False,
            professional_tax=Decimal("0"),
            tds=Decimal("0"),
        )
        values.update(overrides)
        employee = Employee(**values)
        db.add(employee)
        await db.commit()
        return employee

    return _make


async def _create_user(db, email: str, role: UserRole, employee_id=None) -> User:
    user = User(
        id=uuid.uuid4(),
        email=email,
        password_hash=get_password_hash(TEST_PASSWORD),
        full_name=email.split("@")[0].title(),
        role=role.value,
        employee_id=employee_id,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    return user


def auth_headers(user: User) -> dict:
    token = create_access_token(user.id, additional_claims={"email": user.email, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def admin_user(db):
    return await _create_user(db, "admin@ecovale.com", UserRole.ADMIN)


@pytest_asyncio.fixture
async def hr_user(db):
    return await _create_user(db, "hr@ecovale.com", UserRole.HR)


@pytest_asyncio.fixture
async def admin_headers(admin_user):
    return auth_headers(admin_user)


@pytest_asyncio.fixture
async def hr_headers(hr_user):
    return auth_headers(hr_user)


@pytest_asyncio.fixture
async def employee_account(db, make_employee):
    """An EMPLOYEE-role user linked to its own employee record."""
    employee = await make_employee()
    user = await _create_user(db, "staff@ecovale.com", UserRole.EMPLOYEE, employee_id=employee.id)
    return user, employee
