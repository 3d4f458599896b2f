import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import StaticPool, create_engine
from sqlalchemy.dialects.sqlite import base as sqlite_base
from sqlalchemy.orm import sessionmaker

import formbuilder.models  # noqa: F401  register models with Base.metadata
from formbuilder.core.config import settings
from formbuilder.core.database import Base, get_db
from formbuilder.main import app as fastapi_app
from formbuilder.models import Form, User
from tests.helpers import auth_header, create_test_form, create_test_user

# Enable debug mode for tests (allows non-HTTPS cookies in TestClient)
settings.DEBUG = True
# Never reach the real email provider
settings.RESEND_API_KEY = ""

# ---------------------------------------------------------------------------
# SQLite compatibility for PostgreSQL-specific types (JSONB)
# ---------------------------------------------------------------------------
sqlite_base.SQLiteTypeCompiler.visit_JSONB = lambda self, type_, **kw: self.visit_JSON(type_, **kw)

# In-memory SQLite for tests, no PostgreSQL dependency needed
TEST_DATABASE_URL = "sqlite://"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

CSRF_TOKEN = "test-csrf-token"


@pytest.fixture(autouse=True)
def setup_db():
    """Create all tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Start every test with empty rate-limit windows."""
    fastapi_app.state.api_rate_limiter.reset()
    fastapi_app.state.submission_rate_limiter.reset()
    yield


@pytest.fixture
def db():
    """Provide a test database session."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    """TestClient with overridden DB dependency and a matching CSRF cookie/header pair."""

    def _override_get_db():
        try:
            yield db
        finally:
            pass

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    test_client = TestClient(fastapi_app, headers={"x-csrf-token": CSRF_TOKEN})
    test_client.cookies.set("csrfToken", CSRF_TOKEN)
    yield test_client
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def user(db) -> User:
    return create_test_user(db)


@pytest.fixture
def headers(user) -> dict:
    """Bearer Authorization header for ``user``."""
    return auth_header(user)


@pytest.fixture
def other_user(db) -> User:
    return create_test_user(db, email="intruder@example.com", name="Intruder")


@pytest.fixture
def form(db, user) -> Form:
    return create_test_form(db, user, description="Tell us about your visit")


@pytest.fixture
def nonexistent_id() -> str:
    return str(uuid.uuid4())
