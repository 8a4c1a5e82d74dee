"""
Shared test fixtures for the Weekly Schedule Engine test suite.

Services are tested against a sync SQLite session; the API through an
httpx AsyncClient wired to the app with get_db and get_today overridden.
"""

import os
from datetime import date
from typing import AsyncGenerator, Generator

import pytest

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CORS_ORIGINS"] = '["*"]'

from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from weekplan.api.deps import get_today
from weekplan.core.database import Base, get_db
from weekplan.core.security import create_access_token
from weekplan.main import app
from weekplan.models.employee import Employee, EmployeeRole, EmployeeStatus

# A Wednesday; its week starts on Monday 2025-03-10
TODAY = date(2025, 3, 12)
MONDAY = date(2025, 3, 10)
NEXT_MONDAY = date(2025, 3, 17)


test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(bind=test_engine, autocommit=False, autoflush=False)


@pytest.fixture(autouse=True)
def setup_db():
    """Create all tables before usage and drop after."""
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


def _override_get_db() -> Generator[Session, None, None]:
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


def _override_get_today() -> date:
    return TODAY


app.dependency_overrides[get_db] = _override_get_db
app.dependency_overrides[get_today] = _override_get_today


@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    """Return a raw database session for direct queries in tests."""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


# ── Roster ──────────────────────────────────────────────────────────
def make_employee(db: Session, first_name: str, role: EmployeeRole, status=EmployeeStatus.ACTIVE) -> Employee:
    employee = Employee(first_name=first_name, last_name="Test", role=role, status=status)
    db.add(employee)
    db.commit()
    db.refresh(employee)
    return employee


@pytest.fixture
def roster(db_session):
    """One employee per role, plus a second technician and a second supervisor."""
    return {
        "admin": make_employee(db_session, "Ada", EmployeeRole.ADMIN),
        "supervisor": make_employee(db_session, "Sam", EmployeeRole.SUPERVISOR),
        "supervisor2": make_employee(db_session, "Sue", EmployeeRole.SUPERVISOR),
        "technician": make_employee(db_session, "Tom", EmployeeRole.TECHNICIAN),
        "technician2": make_employee(db_session, "Tia", EmployeeRole.TECHNICIAN),
        "helpdesk": make_employee(db_session, "Hal", EmployeeRole.HELPDESK),
        "noc": make_employee(db_session, "Nora", EmployeeRole.NOC),
    }


def auth_headers(employee: Employee) -> dict:
    token = create_access_token(employee.id, employee.role.value)
    return {"Authorization": f"Bearer {token}"}
