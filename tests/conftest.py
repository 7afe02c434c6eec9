import pytest
import os
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

from brgy_payroll.database import Base, get_db
from brgy_payroll.main import app
from brgy_payroll.models.personnel import Personnel, Position, UserRole
from fastapi.testclient import TestClient

# SQLite in-memory database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

@pytest.fixture(scope="session", autouse=True)
def setup_database():
    """Create tables once for the whole test session."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture(scope="function")
def db_session():
    """
    Clean database session per test.
    Services commit and roll back on their own, so rows are wiped after each
    test instead of wrapping the test in an outer transaction.
    """
    session = TestingSessionLocal()

    yield session

    session.rollback()
    session.close()
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())

@pytest.fixture(scope="function")
def make_person(db_session):
    """Factory for personnel with a position carrying the given monthly salary."""
    counter = {"n": 0}

    def _make_person(salary="20000.00", name=None, role=UserRole.PERSONNEL, with_position=True, is_active=True):
        counter["n"] += 1
        n = counter["n"]
        position = None
        if with_position:
            position = Position(name=f"Position {n}", department="Barangay Hall", basic_salary=Decimal(str(salary)))
            db_session.add(position)
        person = Personnel(
            name=name or f"Staff {n}",
            email=f"staff{n}@barangay.test",
            role=role,
            is_active=is_active,
            position=position,
        )
        db_session.add(person)
        db_session.commit()
        return person
    return _make_person

@pytest.fixture(scope="function")
def admin_user(make_person):
    """Default ADMIN actor for tests."""
    return make_person(salary="30000.00", name="Barangay Treasurer", role=UserRole.ADMIN)

@pytest.fixture(scope="function")
def admin_headers(admin_user):
    return {"X-Actor-Id": str(admin_user.id)}

@pytest.fixture(scope="function")
def client(db_session):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
