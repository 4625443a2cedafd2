import pytest
import os
import sys
import tempfile
from datetime import date
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Set test environment variables
os.environ["NODE_ENV"] = "test"
os.environ["SQLALCHEMY_TEST_DATABASE_URL"] = "sqlite://"
os.environ["POSTGRES_USER"] = "test_user"
os.environ["POSTGRES_PASSWORD"] = "test_password"
os.environ["POSTGRES_HOST"] = "localhost"
os.environ["POSTGRES_DATABASE"] = "test_db"
os.environ["POSTGRES_PORT"] = "5432"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["ATTACHMENT_DIR"] = tempfile.mkdtemp(prefix="logbook-attachments-")

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from app import app
from db import get_db
from models import Base, DailyLog, LogStatus, StudentProfile, User, UserRole

VALID_CONTENT = (
    "Configured the staging deployment pipeline and paired with the QA team on regression tests."
)


@pytest.fixture(scope="function")
def test_engine():
    """Fresh in-memory database per test"""
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def test_db(test_engine):
    """Create test database session"""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture(scope="function")
def client(test_db):
    """Create test client with test database"""

    def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    # Clean up dependency override
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(test_db):
    """Factory for users of any role"""
    counter = {"n": 0}

    def _make(role: UserRole, first_name: str = "Test", last_name: str = None) -> User:
        counter["n"] += 1
        user = User(
            username=f"{role.value}{counter['n']}",
            first_name=first_name,
            last_name=last_name or role.value.title(),
            email=f"{role.value}{counter['n']}@example.com",
            status=role,
        )
        test_db.add(user)
        test_db.commit()
        test_db.refresh(user)
        return user

    return _make


@pytest.fixture
def mentor(make_user):
    return make_user(UserRole.MENTOR, "Maria")


@pytest.fixture
def advisor(make_user):
    return make_user(UserRole.ADVISOR, "Arjun")


@pytest.fixture
def student(test_db, make_user, mentor, advisor):
    """Student with a gamification profile, assigned to `mentor` and `advisor`"""
    user = make_user(UserRole.STUDENT, "Sam")
    test_db.add(StudentProfile(id=user.id, mentor_id=mentor.id, advisor_id=advisor.id))
    test_db.commit()
    return user


@pytest.fixture
def make_log(test_db):
    """Insert a log directly in the given status"""

    def _make(student: User, log_date: date = date(2026, 3, 2), status: LogStatus = LogStatus.DRAFT, **fields):
        values = {"title": "Deployment day", "content": VALID_CONTENT}
        values.update(fields)
        log = DailyLog(student_id=student.id, date=log_date, status=status, **values)
        test_db.add(log)
        test_db.commit()
        test_db.refresh(log)
        return log

    return _make


@pytest.fixture
def auth():
    """Identity headers for a user"""

    def _headers(user: User) -> dict:
        return {"X-User-ID": str(user.id)}

    return _headers
