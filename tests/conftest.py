import os

os.environ.setdefault("HELPDESK_DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from helpdesk.core.roles import Role, RoleSet
from helpdesk.db import Base, build_engine, get_db
from helpdesk.main import app
from helpdesk.models import User
from helpdesk.repositories import Users
from helpdesk.services.helpdesk import HelpDeskService

# Use in-memory SQLite for testing to ensure isolation
SQLALCHEMY_DATABASE_URL = "sqlite://"

engine = build_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "Secret#123"


@pytest.fixture(scope="function")
def session():
    """
    Create a fresh database session for each test.
    """
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(session):
    """
    Create a TestClient that uses the override_get_db dependency.
    """
    def override_get_db():
        try:
            yield session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def service(session):
    return HelpDeskService(session)


@pytest.fixture
def make_user(session):
    """Persist a user holding the given roles and return it."""
    def _make_user(username, *roles, password=PASSWORD):
        user = User(
            username=username,
            first_name="Test",
            last_name="User",
            email=f"{username}@example.edu",
            roles=int(RoleSet.of(*roles)),
        )
        Users(session).create(user, password=password)
        session.commit()
        return user

    return _make_user


@pytest.fixture
def admin(make_user):
    return make_user("admin01", Role.USER, Role.ADMIN)


@pytest.fixture
def instructor(make_user):
    return make_user("teacher01", Role.USER, Role.INSTRUCTOR)


@pytest.fixture
def student(make_user):
    return make_user("student01", Role.USER, Role.STUDENT)


@pytest.fixture
def reviewer(make_user):
    return make_user("reviewer01", Role.USER, Role.STUDENT, Role.REVIEWER)