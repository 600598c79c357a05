import os

# Keep the module-level engine off the working directory
os.environ.setdefault("SECURA_DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from secura.api.security import rate_limiter
from secura.api.server import app, get_gateway
from secura.database import Base, get_db
from secura.services.analysis_log_service import record_analysis
from secura.services.auth_service import grant_role, issue_token
from secura.utils.logging_config import metrics


class FakeGateway:
    """Stands in for GatewayClient; returns a canned answer or raises."""

    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    def complete(self, messages, model=None, temperature=None, max_tokens=None):
        self.calls.append({"messages": messages, "model": model, "temperature": temperature})
        if self.error is not None:
            raise self.error
        return self.content


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture
def test_db(engine):
    """Database session bound to the in-memory test engine."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def gateway():
    """Default gateway answer: a confident authentic verdict."""
    return FakeGateway(
        content='{"result": "REAL", "confidence": 90, "summary": "Looks like a photo.", '
        '"details": "Natural noise.", "artifacts": [], "riskLevel": "low"}'
    )


@pytest.fixture
def client(engine, gateway):
    """FastAPI test client with the test database and a fake gateway."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    rate_limiter.reset()
    metrics.reset()

    yield TestClient(app)

    app.dependency_overrides.clear()
    rate_limiter.reset()


@pytest.fixture
def user_token(test_db):
    return issue_token(test_db, "user-1")


@pytest.fixture
def admin_token(test_db):
    grant_role(test_db, "admin-1", "admin")
    return issue_token(test_db, "admin-1")


@pytest.fixture
def auth_headers(user_token):
    return {"Authorization": f"Bearer {user_token}"}


@pytest.fixture
def admin_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def analysis_log(test_db):
    """A stored deepfake verdict that reports can point at."""
    return record_analysis(
        test_db,
        filename="photo.jpg",
        result={
            "classification": "deepfake",
            "confidence": 91.0,
            "details": "GAN fingerprints in the background.",
            "artifacts": ["gan_artifacts"],
        },
        analysis_context="ai-forensics",
    )


@pytest.fixture
def sample_png():
    """A few bytes that pass for an image upload."""
    return b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
