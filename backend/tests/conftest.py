"""Shared test fixtures for authentication tests."""

import os

# Cheap Argon2 parameters; must be set before app.config is imported
os.environ.setdefault("ARGON2_MEMORY_COST", "1024")
os.environ.setdefault("ARGON2_TIME_COST", "1")
os.environ.setdefault("ARGON2_PARALLELISM", "1")

from datetime import UTC, datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
from cryptography.hazmat.primitives import serialization  # noqa: E402
from cryptography.hazmat.primitives.asymmetric import rsa  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app import database  # noqa: E402
from app.config import settings  # noqa: E402
from app.database import Base, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models import RefreshToken, User  # noqa: E402
from app.rate_limiter import limiter  # noqa: E402
from app.services.auth import AccessTokenCodec, password_service  # noqa: E402

TEST_PASSWORD = "Password123!"


def write_rsa_keys(directory) -> tuple[str, str]:
    """Generate an RSA key pair as PEM files. Returns (private_path, public_path)."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_path = directory / "private.pem"
    public_path = directory / "public.pem"
    private_path.write_bytes(
        key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    public_path.write_bytes(
        key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    )
    return str(private_path), str(public_path)


@pytest.fixture
def rsa_key_paths(tmp_path):
    return write_rsa_keys(tmp_path)


@pytest.fixture
def other_rsa_key_paths(tmp_path):
    """A second, unrelated key pair."""
    other_dir = tmp_path / "other"
    other_dir.mkdir()
    return write_rsa_keys(other_dir)


@pytest.fixture
def codec(rsa_key_paths):
    private_path, public_path = rsa_key_paths
    return AccessTokenCodec.from_pem_files(
        private_path,
        public_path,
        issuer=settings.jwt_issuer,
        audience=settings.jwt_audience,
        access_token_ttl=timedelta(seconds=settings.access_token_expire_seconds),
    )


@pytest.fixture
def engine():
    """In-memory SQLite shared across threads."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(session_factory):
    """Factory that inserts a user and returns it detached from any session."""

    def _make_user(
        email: str = "test@example.com",
        password: str | None = TEST_PASSWORD,
        password_hash: str | None = None,
        **overrides,
    ) -> User:
        if password_hash is None and password is not None:
            password_hash = password_service.hash_password(password)
        fields = {
            "company_id": "company-1",
            "email": email,
            "password_hash": password_hash,
            "first_name": "Test",
            "last_name": "User",
            "roles": ["member"],
            "is_active": True,
            "email_verified": True,
        }
        fields.update(overrides)
        user = User(**fields)
        session = session_factory()
        try:
            session.add(user)
            session.commit()
        finally:
            session.close()
        return user

    return _make_user


@pytest.fixture
def auth_client(monkeypatch, rsa_key_paths, session_factory):
    """Create test client wired to the in-memory database.

    Yields a tuple of (TestClient, SessionMaker) for use in tests. The client
    talks https so Secure refresh cookies round-trip.
    """
    limiter.reset()

    private_path, public_path = rsa_key_paths
    monkeypatch.setattr(settings, "jwt_private_key_path", private_path)
    monkeypatch.setattr(settings, "jwt_public_key_path", public_path)
    monkeypatch.setattr(settings, "token_cleanup_enabled", False)
    monkeypatch.setattr(database, "check_connection", lambda bind=None: None)

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app, base_url="https://testserver") as test_client:
        yield test_client, session_factory

    app.dependency_overrides.clear()


@pytest.fixture
def signed_in(auth_client, make_user):
    """Sign in a fresh user. Returns (client, session_factory, user, body)."""
    test_client, db_session_maker = auth_client
    user = make_user()
    response = test_client.post(
        "/api/auth/signin",
        json={"email": user.email, "password": TEST_PASSWORD},
    )
    assert response.status_code == 200
    return test_client, db_session_maker, user, response.json()


@pytest.fixture
def count_live_tokens():
    """Count a user's unrevoked, unexpired refresh tokens through ``session``."""

    def _count(session, user_id: str) -> int:
        return (
            session.query(RefreshToken)
            .filter(
                RefreshToken.user_id == user_id,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at > datetime.now(UTC),
            )
            .count()
        )

    return _count
