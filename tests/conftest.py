import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from datetime import datetime, time, timedelta, UTC
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from jose import jwt

from mess_manager.config import settings
from mess_manager.core.clock import FixedClock
from mess_manager.database import get_db
from mess_manager.dependencies import get_clock
from mess_manager.models import Base, MessMember, MemberRole, MemberStatus, Person
from mess_manager.models.mess_context import MessContext
from mess_manager.schemas.mess_schemas import MessCreate
from mess_manager.services.mess_service import MessService
# Import FastAPI app AFTER model imports
from mess_manager.main import app

# Test database (SQLite in-memory for speed)
# Use StaticPool to ensure all connections share the same in-memory database
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Sunday 15 March 2026, 09:00 mess-local time (before the 10:00 cutoff)
NOW = datetime(2026, 3, 15, 9, 0)


@pytest.fixture(scope="function")
def db_session():
    """Create fresh database for each test"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def manager(db_session):
    person = Person(auth_user_id="manager-1", name="Manager", email="manager@example.com")
    db_session.add(person)
    db_session.commit()
    return person


@pytest.fixture
def mess(db_session, manager, clock):
    """Mess with breakfast 30, lunch 50, dinner 50 and a 10:00 cutoff"""
    service = MessService(db_session, clock)
    return service.create_mess(
        MessCreate(
            name="Green House Mess",
            breakfast_rate=Decimal("30.00"),
            lunch_rate=Decimal("50.00"),
            dinner_rate=Decimal("50.00"),
            meal_cutoff_time=time(10, 0),
        ),
        manager,
    )


@pytest.fixture
def manager_context(db_session, manager, mess):
    return MessService(db_session).build_context(manager, mess.id)


@pytest.fixture
def make_member(db_session, mess, clock):
    """Factory creating an approved member; later calls join later"""
    created = []

    def _make(
        auth_user_id: str,
        role: MemberRole = MemberRole.MEMBER,
        status: MemberStatus = MemberStatus.APPROVED,
        name: str | None = None,
    ) -> MessMember:
        person = Person(auth_user_id=auth_user_id, name=name or auth_user_id)
        db_session.add(person)
        db_session.flush()
        member = MessMember(
            mess_id=mess.id,
            person_id=person.id,
            role=role,
            status=status,
            joined_at=clock.now() + timedelta(minutes=len(created) + 1),
            approved_at=clock.now() if status == MemberStatus.APPROVED else None,
        )
        db_session.add(member)
        db_session.commit()
        created.append(member)
        return member

    return _make


@pytest.fixture
def context_for(db_session, mess):
    """Build the actor context of an existing member"""

    def _context(member: MessMember) -> MessContext:
        return MessContext(person=member.person, mess=mess, member=member)

    return _context


@pytest.fixture(scope="function")
def client(db_session, clock):
    """FastAPI test client with test database and frozen clock"""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def create_test_token(user_id: str = "manager-1", expired: bool = False, **claims) -> str:
    """
    Generate valid JWT token for testing.

    Args:
        user_id: Auth subject to embed in 'sub' claim
        expired: If True, create expired token
        claims: Extra claims (e.g. name, email)

    Returns:
        Encoded JWT token
    """
    if expired:
        exp = datetime.now(UTC) - timedelta(minutes=5)
    else:
        exp = datetime.now(UTC) + timedelta(minutes=15)

    payload = {"sub": user_id, "exp": exp, "iat": datetime.now(UTC), **claims}

    token = jwt.encode(payload, settings.SECRET_KEY, algorithm="HS256")
    return token


@pytest.fixture
def auth_headers():
    """Authorization headers for the mess manager"""
    return {"Authorization": f"Bearer {create_test_token()}"}


@pytest.fixture
def headers_for():
    def _headers(user_id: str) -> dict:
        return {"Authorization": f"Bearer {create_test_token(user_id=user_id)}"}

    return _headers
