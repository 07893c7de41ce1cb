"""
Pytest configuration and fixtures
"""
import itertools
import os
from datetime import date, timedelta

# Settings are read at import time; provide test defaults before importing the app
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402

from personnel_admin.main import app  # noqa: E402
from personnel_admin.db.base import Base  # noqa: E402
from personnel_admin.db.gateway import PersonnelGateway  # noqa: E402
from personnel_admin.core.deps import get_db  # noqa: E402

# Import all models to ensure they're registered with Base.metadata
from personnel_admin.models import (  # noqa: E402
    AuditLog,
    CalendarEvent,
    Employee,
    Role,
    WorkItem,
)


# Use in-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Enable foreign keys for SQLite
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db):
    """Test client fixture with database override"""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def gateway(db):
    """Data-access gateway bound to the test session"""
    return PersonnelGateway(db)


@pytest.fixture
def make_employee(db):
    """Factory for employees with unique usernames"""
    counter = itertools.count(1)

    def _make(full_name="Test Employee", role=Role.USER, active=True, **kwargs):
        n = next(counter)
        employee = Employee(
            full_name=full_name,
            username=kwargs.pop("username", f"user{n}"),
            nip=kwargs.pop("nip", f"19800101200{n:04d}"),
            grade=kwargs.pop("grade", "III/a"),
            position=kwargs.pop("position", "Analyst"),
            email=kwargs.pop("email", f"user{n}@example.org"),
            role=role.value,
            active=active,
            **kwargs
        )
        db.add(employee)
        db.commit()
        db.refresh(employee)
        return employee
    return _make


@pytest.fixture
def make_work_items(db):
    """Factory for work items owned by an employee"""
    def _make(owner_id, count):
        items = [
            WorkItem(
                user_id=owner_id,
                name=f"Work item {i}",
                type="report",
                description="Quarterly report draft",
                status="pending",
                received_date=date.today() - timedelta(days=i),
                function_tag="planning",
            )
            for i in range(count)
        ]
        db.add_all(items)
        db.commit()
        return [item.id for item in items]
    return _make


@pytest.fixture
def make_events(db):
    """Factory for calendar events created by an employee"""
    def _make(creator_id, count):
        events = [
            CalendarEvent(
                creator_id=creator_id,
                title=f"Business trip {i}",
                event_type="business_trip",
                start_date=date.today() + timedelta(days=i),
                end_date=date.today() + timedelta(days=i + 1),
                location="Jakarta",
            )
            for i in range(count)
        ]
        db.add_all(events)
        db.commit()
        return [e.id for e in events]
    return _make


@pytest.fixture
def admin_user(make_employee):
    """The only active admin"""
    return make_employee(full_name="Admin Utama", role=Role.ADMIN, username="admin")

