import os
from typing import NamedTuple, Optional

# Must be set before the application is imported
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite:///./test.db"

import fakeredis
import pytest
from fastapi.testclient import TestClient

from smartcare.main import app
from smartcare.core.database import Base, SessionLocal, engine, get_redis
from smartcare.core.security import ApprovalStatus, UserRole, create_user_token
from smartcare.models.user import Profile, User


class Account(NamedTuple):
    user_id: int
    profile_id: Optional[int]
    headers: dict


@pytest.fixture(scope="function")
def test_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def redis_client():
    fake = fakeredis.FakeRedis(decode_responses=True)
    app.dependency_overrides[get_redis] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_redis, None)


@pytest.fixture
def client(test_db, redis_client):
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client


@pytest.fixture
def db_session(test_db):
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def make_account(db_session):
    """Create a user (and profile) directly in the database, with auth headers."""
    counter = {"n": 0}

    def _make(
        role: UserRole = UserRole.PATIENT,
        approval_status: ApprovalStatus = ApprovalStatus.APPROVED,
        with_profile: bool = True,
        full_name: Optional[str] = None,
    ) -> Account:
        counter["n"] += 1
        user = User(email=f"{role.value.lower()}{counter['n']}@example.com", is_active=True)
        if with_profile:
            user.profile = Profile(
                full_name=full_name or f"{role.value} {counter['n']}",
                role=role,
                approval_status=approval_status,
            )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)

        token = create_user_token(user.id, user.email, role if with_profile else None)
        return Account(
            user_id=user.id,
            profile_id=user.profile.id if with_profile else None,
            headers={"Authorization": f"Bearer {token.access_token}"},
        )

    return _make
