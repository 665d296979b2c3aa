import base64
import os
import tempfile

# Settings are read once at import time; configure them before the package loads.
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DB_INIT_MODE"] = "create_all"
os.environ["JWT_SECRET"] = base64.b64encode(b"identity-service-test-signing-key-0123456789").decode("ascii")
os.environ["INTERNAL_SHARED_SECRET"] = "test-internal-shared-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_FILE"] = os.path.join(tempfile.gettempdir(), "identity-service-tests.log")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from identity_service.core.database import Base, build_engine, get_db  # noqa: E402
from identity_service.services.token_blacklist import token_blacklist  # noqa: E402
from identity_service.services.user_service import UserService  # noqa: E402


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    UserService.seed_roles(session)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db, session_factory):
    from identity_service.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    token_blacklist.clear()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        token_blacklist.clear()
