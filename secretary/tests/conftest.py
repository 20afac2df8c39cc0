import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="secretary_test_")
os.environ.update(
    {
        "DATABASE_URL": f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}",
        "LOG_DIR": os.path.join(_TMP_DIR, "logs"),
        "JWT_SECRET": "test-secret",
        "BCRYPT_ROUNDS": "4",
        "GOOGLE_CLIENT_ID": "test-client-id.apps.googleusercontent.com",
        "GOOGLE_CLIENT_SECRET": "test-client-secret",
        "GOOGLE_REDIRECT_URI": "http://testserver/api/auth/google/callback",
        "FIREFLIES_API_KEY": "ff-test-key",
        "N8N_WEBHOOK_URL": "http://automation.test/webhook/fireflies-transcript",
        "RATE_LIMIT_MAX_ATTEMPTS": "1000",
    }
)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from secretary.db import Base, SessionLocal, engine  # noqa: E402
from secretary.main import app, auth_limiter  # noqa: E402
import secretary.models  # noqa: E402,F401


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    auth_limiter.reset()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def register(client):
    def _register(email="alice@example.com", name="Alice", password="secret1"):
        resp = client.post("/api/auth/register", json={"email": email, "name": name, "password": password})
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _register
