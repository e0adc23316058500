import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client.apps.googleusercontent.com")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from mindlog.core.config import Base, get_db
from mindlog.core.exceptions import InvalidCredentialError
from mindlog.core.security import create_session_token
from mindlog.crud.user import crud_user
from mindlog.services import identity as identity_module
from mindlog.services.identity import GoogleIdentity
from mindlog.services.notifier import LogNotifier


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.state.notifier = LogNotifier()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def google_tokens(monkeypatch):
    """Map of fake Google ID tokens to the identities they verify as."""
    tokens = {}

    def fake_verify(token):
        if token not in tokens:
            raise InvalidCredentialError("Invalid Google token")
        return tokens[token]

    monkeypatch.setattr(identity_module, "verify_google_id_token", fake_verify)
    return tokens


@pytest.fixture()
def user(db):
    return crud_user.upsert_google_identity(
        db,
        google_sub="google-sub-1",
        email="ana@example.com",
        name="Ana",
        picture_url="https://example.com/ana.png",
    )


@pytest.fixture()
def other_user(db):
    return crud_user.upsert_google_identity(
        db, google_sub="google-sub-2", email="ben@example.com", name="Ben"
    )


@pytest.fixture()
def token(user):
    return create_session_token(user.id, user.email)


@pytest.fixture()
def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}

