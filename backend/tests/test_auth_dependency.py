"""Tests for auth dependencies."""

from datetime import UTC, datetime, timedelta

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from app.database import get_db
from app.dependencies.auth import get_current_claims, get_current_user, require_roles
from app.models.user import User
from app.services.auth.token_codec import AccessTokenClaims


@pytest.fixture
def test_app(codec, session_factory, make_user):
    """Create test app with protected routes."""
    app = FastAPI()
    app.state.token_codec = codec

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    @app.get("/claims")
    def claims_route(claims: AccessTokenClaims = Depends(get_current_claims)):
        return {"user_id": claims.user_id, "roles": claims.roles}

    @app.get("/protected")
    def protected_route(user: User = Depends(get_current_user)):
        return {"user_id": user.id, "email": user.email}

    @app.get("/admin", dependencies=[Depends(require_roles("admin", "owner"))])
    def admin_route():
        return {"ok": True}

    user = make_user()
    return TestClient(app), user


def _bearer(codec, user_id, roles=("member",), **kwargs) -> dict:
    token = codec.create_access_token(user_id, "company-1", "test@example.com", list(roles), **kwargs)
    return {"Authorization": f"Bearer {token}"}


def test_claims_with_valid_token(test_app, codec):
    client, user = test_app

    response = client.get("/claims", headers=_bearer(codec, user.id))

    assert response.status_code == 200
    assert response.json() == {"user_id": user.id, "roles": ["member"]}


def test_claims_without_header(test_app):
    client, _ = test_app

    response = client.get("/claims")

    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.parametrize("header", ["Bearer ", "Basic abc", "Bearer not-a-jwt", "token"])
def test_claims_with_malformed_header(test_app, header):
    client, _ = test_app

    response = client.get("/claims", headers={"Authorization": header})

    assert response.status_code == 401


def test_claims_with_expired_token(test_app, codec):
    client, user = test_app

    response = client.get(
        "/claims", headers=_bearer(codec, user.id, expires_delta=timedelta(seconds=-5))
    )

    assert response.status_code == 401


def test_protected_route_with_valid_token(test_app, codec):
    client, user = test_app

    response = client.get("/protected", headers=_bearer(codec, user.id))

    assert response.status_code == 200
    assert response.json() == {"user_id": user.id, "email": user.email}


def test_protected_route_unknown_user(test_app, codec):
    client, _ = test_app

    response = client.get("/protected", headers=_bearer(codec, "no-such-user"))

    assert response.status_code == 401


def test_protected_route_inactive_user(test_app, codec, make_user):
    client, _ = test_app
    disabled = make_user("disabled@example.com", is_active=False)

    response = client.get("/protected", headers=_bearer(codec, disabled.id))

    assert response.status_code == 403


def test_protected_route_deleted_user(test_app, codec, make_user):
    client, _ = test_app
    deleted = make_user("deleted@example.com", deleted_at=datetime.now(UTC))

    response = client.get("/protected", headers=_bearer(codec, deleted.id))

    assert response.status_code == 401


@pytest.mark.parametrize(
    "roles, expected_status",
    [
        (["admin"], 200),
        (["owner", "member"], 200),
        (["member"], 403),
        ([], 403),
        (["Admin"], 403),
    ],
)
def test_require_roles(test_app, codec, roles, expected_status):
    client, user = test_app

    response = client.get("/admin", headers=_bearer(codec, user.id, roles=roles))

    assert response.status_code == expected_status


def test_require_roles_without_token(test_app):
    client, _ = test_app

    assert client.get("/admin").status_code == 401
